"""Single request-execution path for all resource operations.

Every API call funnels through :meth:`RequestDispatcher.dispatch`, which
adds session headers, sends the request, and classifies the outcome:

- HTTP 401 means the token expired. With ``retry_auth`` the dispatcher
  re-authenticates and resends; otherwise it raises
  :class:`AuthTokenExpiredNoRetry`.
- Dropped connections (broken pipe, early EOF) are retried on a fresh
  connection, up to :data:`MAX_SEND_ATTEMPTS` sends.
- Every other status comes back to the caller untouched.
"""

import time
from dataclasses import dataclass
from typing import IO, Any

import httpx
import structlog

from . import __version__
from .auth import Authenticator
from .exceptions import (
    AuthenticationFailed,
    AuthTokenExpiredNoRetry,
    ConnectionError,
    ExpiredAuthToken,
)
from .session import SessionState, TokenSnapshot
from .transport import Transport

logger = structlog.get_logger(__name__)

MAX_SEND_ATTEMPTS = 5

DEFAULT_MAX_AUTH_RETRIES = 3

USER_AGENT = f"clouddb-python/{__version__}"

RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (
    httpx.RemoteProtocolError,
    httpx.ReadError,
    httpx.WriteError,
    BrokenPipeError,
    EOFError,
)

Body = IO[bytes] | bytes | str | None


@dataclass
class DispatchStats:
    """Running counters kept by a dispatcher."""

    requests: int = 0
    reauthentications: int = 0
    transport_retries: int = 0
    failures: int = 0


def _encode_body(body: Body) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, bytes | bytearray):
        return bytes(body)
    return body.read()


class RequestDispatcher:
    """Sends requests on behalf of a session and recovers from token expiry."""

    def __init__(
        self,
        session: SessionState,
        authenticator: Authenticator,
        transport: Transport,
        max_auth_retries: int = DEFAULT_MAX_AUTH_RETRIES,
        verbose: bool = False,
    ):
        """Initialize the dispatcher.

        Args:
            session: Session state providing the token and retry policy.
            authenticator: Used to refresh the token after a 401.
            transport: Sends the actual HTTP requests.
            max_auth_retries: Re-authentications allowed per request.
            verbose: Log request and response bodies.
        """
        self._session = session
        self._authenticator = authenticator
        self._transport = transport
        self._max_auth_retries = max_auth_retries
        self._verbose = verbose
        self.stats = DispatchStats()

    def build_headers(
        self,
        snapshot: TokenSnapshot,
        content_length: int,
        headers: dict[str, str] | None = None,
    ) -> dict[str, str]:
        """Merge caller headers over the defaults for this session."""
        default_headers = {}
        if snapshot.token is not None:
            if self._session.account is None:
                default_headers["X-Auth-Token"] = snapshot.token
            else:
                default_headers["X-Storage-Token"] = snapshot.token
        default_headers["Connection"] = "Keep-Alive"
        default_headers["Accept"] = "application/json"
        default_headers["Content-Type"] = "application/json"
        default_headers["User-Agent"] = USER_AGENT
        default_headers["Content-Length"] = str(content_length)
        default_headers.update(headers or {})
        return default_headers

    def dispatch(
        self,
        method: str,
        host: str,
        path: str,
        port: int,
        scheme: str,
        headers: dict[str, str] | None = None,
        body: Body = None,
    ) -> httpx.Response:
        """Send a request, handling token expiry and dropped connections.

        Args:
            method: HTTP method (e.g., "GET").
            host: Service host name.
            path: Request path, including any query string.
            port: Service port.
            scheme: "https" or "http".
            headers: Headers overriding the defaults.
            body: Request body; bytes, str, or a binary file object.

        Returns:
            The response, whatever its status other than 401.

        Raises:
            AuthTokenExpiredNoRetry: On 401 when ``retry_auth`` is off.
            AuthenticationFailed: If re-authentication fails or the token
                is still rejected after ``max_auth_retries`` refreshes.
            ConnectionError: After MAX_SEND_ATTEMPTS dropped connections;
                401 resends do not count towards that limit.
        """
        data = _encode_body(body)
        url = self._build_url(host, path, port, scheme)
        transport_failures = 0
        auth_retries = 0
        self.stats.requests += 1

        while True:
            snapshot = self._session.snapshot()
            try:
                return self._send_once(method, url, snapshot, headers, data)
            except RECOVERABLE_ERRORS as exc:
                transport_failures += 1
                if transport_failures >= MAX_SEND_ATTEMPTS:
                    self.stats.failures += 1
                    logger.error(
                        "Giving up after dropped connections",
                        host=host,
                        attempts=transport_failures,
                    )
                    raise ConnectionError(host, transport_failures) from exc
                self.stats.transport_retries += 1
                logger.warning(
                    "Connection dropped, retrying",
                    host=host,
                    attempt=transport_failures,
                    error=repr(exc),
                )
                self._transport.reset()
            except ExpiredAuthToken as exc:
                if not self._session.retry_auth:
                    self.stats.failures += 1
                    msg = "Authentication token expired and you have requested not to retry"
                    raise AuthTokenExpiredNoRetry(msg) from exc
                if auth_retries >= self._max_auth_retries:
                    self.stats.failures += 1
                    msg = (
                        f"Authentication token still rejected after "
                        f"{auth_retries} re-authentication attempts"
                    )
                    raise AuthenticationFailed(msg, status_code=401) from exc
                auth_retries += 1
                self.stats.reauthentications += 1
                logger.info(
                    "Authentication token expired, re-authenticating",
                    host=host,
                    attempt=auth_retries,
                )
                self._session.invalidate(snapshot.version)
                self._authenticator.refresh(self._session, snapshot.version)

    def _send_once(
        self,
        method: str,
        url: str,
        snapshot: TokenSnapshot,
        headers: dict[str, str] | None,
        data: bytes | None,
    ) -> httpx.Response:
        request = httpx.Request(
            method.upper(),
            url,
            headers=self.build_headers(snapshot, len(data) if data else 0, headers),
            content=data,
        )
        if self._verbose and data:
            logger.info("Request body", method=request.method, url=url, body=_preview(data))

        start_time = time.time()
        logger.debug("Making API request", method=request.method, url=url)
        response = self._transport.send(request)
        logger.debug(
            "API request completed",
            method=request.method,
            url=url,
            status_code=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )
        if self._verbose:
            logger.info("Response body", status_code=response.status_code, body=_preview(response.content))

        if response.status_code == 401:  # noqa: PLR2004
            raise ExpiredAuthToken
        return response

    @staticmethod
    def _build_url(host: str, path: str, port: int, scheme: str) -> str:
        default_port = 443 if scheme == "https" else 80
        netloc = host if port in (None, default_port) else f"{host}:{port}"
        return f"{scheme}://{netloc}{path}"


def _preview(data: Any) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)
