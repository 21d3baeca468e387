"""Login handshake against the Cloud identity service.

Uses the v1.0 identity protocol: a GET to the auth URL carrying
``X-Auth-User``/``X-Auth-Key`` headers. The token comes back in the
``X-Auth-Token`` response header and the account id is the last path
segment of ``X-Server-Management-Url``.
"""

import re
import time
from threading import Lock

import httpx
import structlog

from .exceptions import AuthenticationFailed, ConfigurationError
from .session import DEFAULT_PORT, DEFAULT_SCHEME, ServiceEndpoint, SessionState
from .transport import Transport
from .utils import is_success

logger = structlog.get_logger(__name__)

AUTH_USA = "https://auth.api.rackspacecloud.com/v1.0"
AUTH_UK = "https://lon.auth.api.rackspacecloud.com/v1.0"

SERVICE_HOST_TEMPLATE = "{region}.databases.api.rackspacecloud.com"
SERVICE_PATH_TEMPLATE = "/v1.0/{account}"
SERVICENET_PREFIX = "snet-"

_ACCOUNT_RE = re.compile(r"/(\d+)/?$")


def require_credentials(session: SessionState) -> None:
    """Fail with :class:`ConfigurationError` if a credential is missing."""
    for field in ("username", "api_key", "region"):
        if not getattr(session, field):
            raise ConfigurationError(field)


class Authenticator:
    """Performs logins and writes the resulting token into the session."""

    def __init__(self, transport: Transport):
        self._transport = transport
        self._lock = Lock()

    def authenticate(self, session: SessionState) -> None:
        """Log in and store the token and service endpoint on ``session``.

        Args:
            session: Session with username, api_key, region and auth_url set.

        Raises:
            ConfigurationError: If username, api_key or region is missing.
            AuthenticationFailed: If the identity service rejects the login
                or its response lacks a token or management URL.
        """
        require_credentials(session)

        request = httpx.Request(
            "GET",
            session.auth_url,
            headers={
                "X-Auth-User": session.username,
                "X-Auth-Key": session.api_key,
            },
        )
        start_time = time.time()
        logger.debug("Authenticating", auth_url=session.auth_url, username=session.username)
        try:
            response = self._transport.send(request)
        except httpx.HTTPError as exc:
            msg = f"Unable to reach identity service at {session.auth_url}: {exc}"
            raise AuthenticationFailed(msg) from exc

        if not is_success(response.status_code):
            logger.error(
                "Authentication rejected",
                auth_url=session.auth_url,
                status_code=response.status_code,
            )
            msg = f"Authentication failed with response code {response.status_code}"
            raise AuthenticationFailed(msg, status_code=response.status_code)

        token = response.headers.get("X-Auth-Token")
        if not token:
            msg = "Authentication response did not include a token"
            raise AuthenticationFailed(msg, status_code=response.status_code)

        endpoint = self._resolve_endpoint(session, response)
        version = session.set_credentials(token, endpoint)
        logger.info(
            "Authenticated",
            host=endpoint.host,
            region=session.region.value,
            version=version,
            duration_seconds=round(time.time() - start_time, 3),
        )

    def refresh(self, session: SessionState, stale_version: int) -> None:
        """Re-authenticate unless someone already replaced the stale token.

        Args:
            session: Session whose token was rejected.
            stale_version: Session version the rejected request was sent with.
        """
        with self._lock:
            if session.authenticated and session.version != stale_version:
                logger.debug("Token already refreshed", version=session.version)
                return
            self.authenticate(session)

    def _resolve_endpoint(
        self,
        session: SessionState,
        response: httpx.Response,
    ) -> ServiceEndpoint:
        management_url = response.headers.get("X-Server-Management-Url", "")
        match = _ACCOUNT_RE.search(httpx.URL(management_url).path) if management_url else None
        if match is None:
            msg = f"Cannot determine account from management URL {management_url!r}"
            raise AuthenticationFailed(msg, status_code=response.status_code)

        host = SERVICE_HOST_TEMPLATE.format(region=session.region.value)
        if session.servicenet:
            host = SERVICENET_PREFIX + host
        return ServiceEndpoint(
            host=host,
            path=SERVICE_PATH_TEMPLATE.format(account=match.group(1)),
            port=DEFAULT_PORT,
            scheme=DEFAULT_SCHEME,
        )
