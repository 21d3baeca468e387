"""Cloud Databases API client.

Python client for the Rackspace Cloud Databases REST API: authenticates
against the Cloud identity service, keeps the session token fresh, and
manages database instances along with their databases and users.
"""

__version__ = "0.1.0"

from .auth import AUTH_UK, AUTH_USA, Authenticator
from .config import ClientConfig, configure_logging, load_config
from .connection import Connection
from .dispatcher import DispatchStats, RequestDispatcher
from .exceptions import (
    AuthenticationFailed,
    AuthTokenExpiredNoRetry,
    CloudDBError,
    ConfigurationError,
    ConnectionError,
    ExpiredAuthToken,
    MissingArgument,
    UnexpectedResponse,
)
from .instance import Instance
from .session import Region, ServiceEndpoint, SessionState
from .transport import HttpxTransport, Transport

__all__ = [
    "AUTH_UK",
    "AUTH_USA",
    "AuthTokenExpiredNoRetry",
    "Authenticator",
    "AuthenticationFailed",
    "ClientConfig",
    "CloudDBError",
    "ConfigurationError",
    "Connection",
    "ConnectionError",
    "DispatchStats",
    "ExpiredAuthToken",
    "HttpxTransport",
    "Instance",
    "MissingArgument",
    "Region",
    "RequestDispatcher",
    "ServiceEndpoint",
    "SessionState",
    "Transport",
    "UnexpectedResponse",
    "configure_logging",
    "load_config",
]
