"""Credential and session state shared by the authenticator and dispatcher.

The session is a versioned state cell: every token write or invalidation
bumps :attr:`SessionState.version`. A dispatch captures the version it sent
with, so a 401 can tell whether the token it used is still the current one.
"""

import enum
from dataclasses import dataclass
from threading import Lock

import structlog

from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_PORT = 443
DEFAULT_SCHEME = "https"


class Region(str, enum.Enum):
    """Datacenters hosting Cloud Databases."""

    DFW = "dfw"
    ORD = "ord"
    LON = "lon"


@dataclass(frozen=True)
class ServiceEndpoint:
    """Per-session management endpoint resolved at login."""

    host: str
    path: str
    port: int = DEFAULT_PORT
    scheme: str = DEFAULT_SCHEME

    @property
    def base_url(self) -> str:
        """``scheme://host`` with the port appended when it is not the default."""
        default_port = 443 if self.scheme == "https" else 80
        if self.port == default_port:
            return f"{self.scheme}://{self.host}"
        return f"{self.scheme}://{self.host}:{self.port}"


@dataclass(frozen=True)
class TokenSnapshot:
    """A token together with the session version it belongs to."""

    token: str | None
    version: int


def _coerce_region(region: Region | str | None) -> Region | None:
    if not region or isinstance(region, Region):
        return region or None
    try:
        return Region(str(region).lower())
    except ValueError:
        choices = ", ".join(r.value for r in Region)
        msg = f"Unknown region {region!r}, expected one of: {choices}"
        raise ConfigurationError("region", msg) from None


class SessionState:
    """Holds credentials, the current token, and the resolved endpoint.

    Only the authenticator writes the token and endpoint. Reads and writes
    happen under a lock so a token and its version are always seen together.
    """

    def __init__(
        self,
        username: str,
        api_key: str,
        region: Region | str,
        auth_url: str,
        retry_auth: bool = True,
        account: str | None = None,
        servicenet: bool = False,
    ):
        self._username = username
        self._api_key = api_key
        self._region = _coerce_region(region)
        self._auth_url = auth_url
        self._retry_auth = retry_auth
        self._account = account
        self._servicenet = servicenet

        self._lock = Lock()
        self._token: str | None = None
        self._authenticated = False
        self._endpoint: ServiceEndpoint | None = None
        self._version = 0

    @property
    def username(self) -> str:
        return self._username

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def region(self) -> Region:
        return self._region

    @property
    def auth_url(self) -> str:
        return self._auth_url

    @property
    def retry_auth(self) -> bool:
        return self._retry_auth

    @property
    def account(self) -> str | None:
        return self._account

    @property
    def servicenet(self) -> bool:
        return self._servicenet

    @property
    def authenticated(self) -> bool:
        with self._lock:
            return self._authenticated

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def endpoint(self) -> ServiceEndpoint | None:
        with self._lock:
            return self._endpoint

    def snapshot(self) -> TokenSnapshot:
        """Return the current token (``None`` unless authenticated) and version."""
        with self._lock:
            token = self._token if self._authenticated else None
            return TokenSnapshot(token=token, version=self._version)

    def set_credentials(self, token: str, endpoint: ServiceEndpoint) -> int:
        """Store a fresh token and endpoint, returning the new version."""
        with self._lock:
            self._token = token
            self._endpoint = endpoint
            self._authenticated = True
            self._version += 1
            logger.debug("Session token updated", version=self._version)
            return self._version

    def invalidate(self, version: int | None = None) -> bool:
        """Mark the token as expired.

        When ``version`` is given, only invalidate if it is still current.
        Returns True if the session was invalidated by this call.
        """
        with self._lock:
            if version is not None and version != self._version:
                return False
            self._authenticated = False
            self._version += 1
            logger.debug("Session token invalidated", version=self._version)
            return True
