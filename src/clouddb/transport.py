"""HTTP transport used by the request dispatcher.

The dispatcher only needs ``send``/``reset``/``close``; anything providing
those (see :class:`Transport`) can be injected, which is how tests swap in
fakes. The default implementation wraps ``httpx.Client``.
"""

import threading
from typing import Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class Transport(Protocol):
    """Minimal interface the dispatcher sends requests through."""

    def send(self, request: httpx.Request) -> httpx.Response: ...

    def reset(self) -> None: ...

    def close(self) -> None: ...


class HttpxTransport:
    """Transport backed by ``httpx.Client``.

    Thread-safe through thread-local storage of httpx.Client instances.
    ``reset`` drops the current thread's client so the next send opens a
    new connection.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds (default: 30.0).
            transport: Optional low-level httpx transport, e.g.
                ``httpx.MockTransport`` in tests.

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        self._timeout = timeout
        self._transport = transport
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Get or create the thread-local httpx client."""
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._local.client

    def send(self, request: httpx.Request) -> httpx.Response:
        return self.client.send(request)

    def reset(self) -> None:
        """Close the current connection; the next send reconnects."""
        logger.debug("Resetting HTTP connection")
        self.close()

    def close(self) -> None:
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()
