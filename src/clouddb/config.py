"""Configuration and logging setup for the Cloud Databases client."""

import json
import logging
import os
import pathlib
import sys
from typing import TextIO

import pydantic
import structlog

from .auth import AUTH_USA
from .dispatcher import DEFAULT_MAX_AUTH_RETRIES
from .session import Region
from .transport import DEFAULT_TIMEOUT

CONFIG_ENV_VAR = "CLOUDDB_CONFIG_PATH"
VERBOSE_ENV_VAR = "DATABASES_VERBOSE"
SERVICENET_ENV_VAR = "RACKSPACE_SERVICENET"
LOGGER_NAME = "clouddb"


def env_flag(name: str) -> bool:
    """True when the environment variable is set to anything but an empty/false value."""
    value = os.environ.get(name, "")
    return value.strip().lower() not in ("", "0", "false", "no", "off")


class ClientConfig(pydantic.BaseModel):
    """Connection settings for the Cloud Databases API.

    Credentials are optional here so that a missing one is reported by the
    connection as a ``ConfigurationError`` naming the field.
    """

    username: str | None = pydantic.Field(None, description="Cloud account username")
    api_key: str | None = pydantic.Field(None, description="Cloud account API key")
    region: Region | None = pydantic.Field(
        None,
        description="Datacenter hosting the instances (dfw, ord, lon)",
    )
    auth_url: str = pydantic.Field(AUTH_USA, description="Identity service URL")
    retry_auth: bool = pydantic.Field(
        True,
        description="Re-authenticate when the token expires",
    )
    max_auth_retries: int = pydantic.Field(
        DEFAULT_MAX_AUTH_RETRIES,
        description="Re-authentications allowed per request",
        ge=0,
    )
    account: str | None = pydantic.Field(
        None,
        description="Account scope; sends X-Storage-Token instead of X-Auth-Token",
    )
    servicenet: bool = pydantic.Field(
        default_factory=lambda: env_flag(SERVICENET_ENV_VAR),
        description="Use the internal service network host",
    )
    verbose: bool = pydantic.Field(
        default_factory=lambda: env_flag(VERBOSE_ENV_VAR),
        description="Log request and response bodies",
    )
    uppercase_names: bool = pydantic.Field(
        False,
        description="Upper-case instance names on creation",
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="HTTP request timeout in seconds",
        gt=0,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.field_validator("region", mode="before")
    @classmethod
    def _lowercase_region(cls, value):
        return value.lower() if isinstance(value, str) else value


def _add_library_name(logger, method_name, event_dict):
    event_dict.setdefault("lib", LOGGER_NAME)
    return event_dict


def configure_logging(log_level_name: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure structlog for logfmt output on stderr.

    Library output goes to stderr by default so it never mixes with the
    calling program's stdout. Every line carries ``lib=clouddb``.
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_library_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "lib", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str | None = None) -> ClientConfig:
    """Load configuration from a JSON file.

    Falls back to the path in ``CLOUDDB_CONFIG_PATH`` when none is given.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved_path:
        msg = f"No configuration path given and {CONFIG_ENV_VAR} is not set"
        raise FileNotFoundError(msg)

    path = pathlib.Path(resolved_path)
    if not path.exists():
        msg = f"Configuration file not found: {resolved_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    return ClientConfig(**data)
