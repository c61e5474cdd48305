"""Wren exception hierarchy.

Shared across Router, App, dispatcher, and middleware so every module
raises and catches the same types.

HTTP failures form a closed set of kinds. Each ``ErrorKind`` member owns
its status code, machine-readable code, and default message; the named
subclasses below are constructors for one kind each and cannot change
that mapping.
"""

import math
from enum import Enum
from typing import Any


class WrenError(Exception):
    """Base for all wren-specific errors."""


class ConfigurationError(WrenError):
    """Raised when app configuration is invalid.

    Typically raised during route registration or ``App._freeze()`` at
    startup, never while serving requests.
    """


class ErrorKind(Enum):
    """Closed enumeration of HTTP failure kinds.

    Value layout: ``(status, code, default_message)``.
    """

    VALIDATION = (400, "VALIDATION_ERROR", "Validation failed")
    AUTHENTICATION = (401, "AUTHENTICATION_ERROR", "Authentication required")
    AUTHORIZATION = (403, "AUTHORIZATION_ERROR", "Insufficient permissions")
    NOT_FOUND = (404, "NOT_FOUND", "Resource not found")
    REQUEST_TIMEOUT = (408, "REQUEST_TIMEOUT", "Request timeout")
    CONFLICT = (409, "CONFLICT", "Resource conflict")
    PAYLOAD_TOO_LARGE = (413, "PAYLOAD_TOO_LARGE", "Payload too large")
    RATE_LIMITED = (429, "RATE_LIMIT_EXCEEDED", "Rate limit exceeded")
    INTERNAL = (500, "INTERNAL_SERVER_ERROR", "Internal server error")
    BAD_GATEWAY = (502, "BAD_GATEWAY", "Bad gateway")
    SERVICE_UNAVAILABLE = (503, "SERVICE_UNAVAILABLE", "Service unavailable")
    GATEWAY_TIMEOUT = (504, "GATEWAY_TIMEOUT", "Gateway timeout")

    @property
    def status(self) -> int:
        return self.value[0]

    @property
    def code(self) -> str:
        return self.value[1]

    @property
    def default_message(self) -> str:
        return self.value[2]


class HTTPError(WrenError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The dispatcher catches
    these at its outer boundary and translates them into a JSON response.

    ``status`` and ``code`` are derived from ``kind`` and read-only.
    """

    __slots__ = ("detail", "headers", "kind", "message")

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        detail: Any = None,
        headers: tuple[tuple[str, str], ...] = (),
    ) -> None:
        self.kind = kind
        self.message = message or kind.default_message
        self.detail = detail
        self.headers = headers
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return self.kind.status

    @property
    def code(self) -> str:
        return self.kind.code

    def to_payload(self, *, include_detail: bool) -> dict[str, Any]:
        """Resolve to the JSON error body ``{code, message, detail?}``."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if include_detail and self.detail is not None:
            payload["detail"] = self.detail
        return payload

    def __str__(self) -> str:
        return f"{self.status} {self.code}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ValidationError(HTTPError):
    """400: the request is malformed or fails validation."""

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        super().__init__(ErrorKind.VALIDATION, message, detail=details)

    @property
    def details(self) -> Any:
        return self.detail


class AuthenticationError(HTTPError):
    """401: credentials missing or invalid."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.AUTHENTICATION, message, detail=detail)


class AuthorizationError(HTTPError):
    """403: authenticated but not permitted."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.AUTHORIZATION, message, detail=detail)


class NotFoundError(HTTPError):
    """404: no route matched, or the resource does not exist."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.NOT_FOUND, message, detail=detail)


class RequestTimeoutError(HTTPError):
    """408: the per-request deadline expired before a response was written."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.REQUEST_TIMEOUT, message, detail=detail)


class ConflictError(HTTPError):
    """409: the request conflicts with current resource state."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.CONFLICT, message, detail=detail)


class PayloadTooLargeError(HTTPError):
    """413: the request body exceeds the configured byte limit."""

    def __init__(self, message: str | None = None, *, limit: int | None = None) -> None:
        detail = {"limit": limit} if limit is not None else None
        super().__init__(ErrorKind.PAYLOAD_TOO_LARGE, message, detail=detail)
        self.limit = limit


class RateLimitError(HTTPError):
    """429: the client exceeded its request budget.

    ``retry_after`` is in seconds and is sent as a ``Retry-After`` header,
    rounded up to a whole second.
    """

    def __init__(self, message: str | None = None, retry_after: float | None = None) -> None:
        headers: tuple[tuple[str, str], ...] = ()
        detail = None
        if retry_after is not None:
            seconds = max(1, math.ceil(retry_after))
            headers = (("Retry-After", str(seconds)),)
            detail = {"retry_after": retry_after}
        super().__init__(ErrorKind.RATE_LIMITED, message, detail=detail, headers=headers)
        self.retry_after = retry_after


class InternalServerError(HTTPError):
    """500: an unexpected failure inside the server."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.INTERNAL, message, detail=detail)


class BadGatewayError(HTTPError):
    """502: an upstream dependency returned an invalid response."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.BAD_GATEWAY, message, detail=detail)


class ServiceUnavailableError(HTTPError):
    """503: the server cannot handle the request right now."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.SERVICE_UNAVAILABLE, message, detail=detail)


class GatewayTimeoutError(HTTPError):
    """504: an upstream dependency did not answer in time."""

    def __init__(self, message: str | None = None, *, detail: Any = None) -> None:
        super().__init__(ErrorKind.GATEWAY_TIMEOUT, message, detail=detail)


class ClientDisconnect(WrenError):  # noqa: N818
    """The peer closed the connection before the request finished."""
