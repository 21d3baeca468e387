"""Exception hierarchy for the Cloud Databases client.

Every error raised by the library derives from :class:`CloudDBError` so
callers can catch the whole family with a single ``except`` clause.
"""

from typing import Any


class CloudDBError(Exception):
    """Base class for all Cloud Databases client errors."""


class ConfigurationError(CloudDBError, ValueError):
    """Raised when a required credential or region is missing."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Must supply a {field}")


class AuthenticationFailed(CloudDBError):
    """Raised when the identity endpoint rejects or mangles a login."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ExpiredAuthToken(CloudDBError):
    """Signals a 401 from the service endpoint.

    Handled inside the dispatcher; callers only see it wrapped as
    :class:`AuthTokenExpiredNoRetry` or recovered transparently.
    """


class AuthTokenExpiredNoRetry(CloudDBError):
    """Raised on token expiry when re-authentication is disabled."""


class ConnectionError(CloudDBError):  # noqa: A001
    """Raised when the transport keeps dropping the connection."""

    def __init__(self, host: str, attempts: int):
        self.host = host
        self.attempts = attempts
        super().__init__(f"Unable to reconnect to {host} after {attempts} attempts")


class MissingArgument(CloudDBError):
    """Raised when a creation call lacks a required field."""

    def __init__(self, field: str, resource: str = "an instance"):
        self.field = field
        super().__init__(f"Must provide a {field} to create {resource}")


class UnexpectedResponse(CloudDBError):
    """Raised when an operation receives a status code it does not accept.

    The API reports failures as a single-key JSON object, e.g.
    ``{"itemNotFound": {"message": "...", "code": 404}}``. When the body
    has that shape, the fault name and message are extracted for display.
    """

    def __init__(
        self,
        status_code: int,
        body: bytes | str = b"",
        fault: str | None = None,
        details: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        self.fault = fault
        self.details = details
        msg = f"Unexpected response status {status_code}"
        if fault:
            msg += f" ({fault})"
        if details:
            msg += f": {details}"
        super().__init__(msg)

    @classmethod
    def from_fault(cls, status_code: int, body: bytes, data: Any) -> "UnexpectedResponse":
        """Build the error from a decoded fault body, if it has one."""
        fault = details = None
        if isinstance(data, dict) and len(data) == 1:
            name, payload = next(iter(data.items()))
            if isinstance(payload, dict) and ("code" in payload or "message" in payload):
                fault = name
                details = payload.get("message") or payload.get("details")
        return cls(status_code, body, fault=fault, details=details)
