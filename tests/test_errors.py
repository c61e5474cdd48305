"""Tests for wren.errors: closed error taxonomy."""

import pytest

from wren.errors import (
    AuthenticationError,
    AuthorizationError,
    BadGatewayError,
    ConfigurationError,
    ConflictError,
    ErrorKind,
    GatewayTimeoutError,
    HTTPError,
    InternalServerError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    ValidationError,
    WrenError,
)


class TestHierarchy:
    def test_http_error_is_wren_error(self) -> None:
        assert issubclass(HTTPError, WrenError)

    def test_configuration_error_is_wren_error(self) -> None:
        assert issubclass(ConfigurationError, WrenError)

    def test_configuration_error_is_not_http_error(self) -> None:
        assert not issubclass(ConfigurationError, HTTPError)


class TestErrorKind:
    @pytest.mark.parametrize(
        ("kind", "status", "code"),
        [
            (ErrorKind.VALIDATION, 400, "VALIDATION_ERROR"),
            (ErrorKind.AUTHENTICATION, 401, "AUTHENTICATION_ERROR"),
            (ErrorKind.AUTHORIZATION, 403, "AUTHORIZATION_ERROR"),
            (ErrorKind.NOT_FOUND, 404, "NOT_FOUND"),
            (ErrorKind.REQUEST_TIMEOUT, 408, "REQUEST_TIMEOUT"),
            (ErrorKind.CONFLICT, 409, "CONFLICT"),
            (ErrorKind.PAYLOAD_TOO_LARGE, 413, "PAYLOAD_TOO_LARGE"),
            (ErrorKind.RATE_LIMITED, 429, "RATE_LIMIT_EXCEEDED"),
            (ErrorKind.INTERNAL, 500, "INTERNAL_SERVER_ERROR"),
            (ErrorKind.BAD_GATEWAY, 502, "BAD_GATEWAY"),
            (ErrorKind.SERVICE_UNAVAILABLE, 503, "SERVICE_UNAVAILABLE"),
            (ErrorKind.GATEWAY_TIMEOUT, 504, "GATEWAY_TIMEOUT"),
        ],
    )
    def test_status_and_code(self, kind: ErrorKind, status: int, code: str) -> None:
        assert kind.status == status
        assert kind.code == code
        assert kind.default_message

    def test_codes_are_unique(self) -> None:
        codes = [kind.code for kind in ErrorKind]
        assert len(codes) == len(set(codes))


class TestNamedConstructors:
    @pytest.mark.parametrize(
        ("cls", "kind"),
        [
            (AuthenticationError, ErrorKind.AUTHENTICATION),
            (AuthorizationError, ErrorKind.AUTHORIZATION),
            (NotFoundError, ErrorKind.NOT_FOUND),
            (RequestTimeoutError, ErrorKind.REQUEST_TIMEOUT),
            (ConflictError, ErrorKind.CONFLICT),
            (InternalServerError, ErrorKind.INTERNAL),
            (BadGatewayError, ErrorKind.BAD_GATEWAY),
            (ServiceUnavailableError, ErrorKind.SERVICE_UNAVAILABLE),
            (GatewayTimeoutError, ErrorKind.GATEWAY_TIMEOUT),
        ],
    )
    def test_kind_is_fixed(self, cls: type[HTTPError], kind: ErrorKind) -> None:
        err = cls()
        assert err.kind is kind
        assert err.status == kind.status
        assert err.message == kind.default_message

    def test_custom_message(self) -> None:
        err = NotFoundError("User 42 does not exist")
        assert err.message == "User 42 does not exist"
        assert err.status == 404

    def test_validation_error_details(self) -> None:
        err = ValidationError("Invalid input", {"field": "email"})
        assert err.status == 400
        assert err.code == "VALIDATION_ERROR"
        assert err.details == {"field": "email"}
        assert err.detail == {"field": "email"}

    def test_payload_too_large_carries_limit(self) -> None:
        err = PayloadTooLargeError(limit=1024)
        assert err.status == 413
        assert err.detail == {"limit": 1024}


class TestRateLimitError:
    def test_retry_after_header_rounds_up(self) -> None:
        err = RateLimitError("slow down", retry_after=0.2)
        assert err.status == 429
        assert err.retry_after == 0.2
        assert ("Retry-After", "1") in err.headers

    def test_retry_after_whole_seconds(self) -> None:
        err = RateLimitError(retry_after=30)
        assert ("Retry-After", "30") in err.headers
        assert err.detail == {"retry_after": 30}

    def test_without_retry_after(self) -> None:
        err = RateLimitError()
        assert err.headers == ()
        assert err.detail is None


class TestPayload:
    def test_payload_without_detail(self) -> None:
        err = ConflictError("Email taken", detail={"email": "a@b.c"})
        assert err.to_payload(include_detail=False) == {
            "code": "CONFLICT",
            "message": "Email taken",
        }

    def test_payload_with_detail(self) -> None:
        err = ConflictError("Email taken", detail={"email": "a@b.c"})
        payload = err.to_payload(include_detail=True)
        assert payload["detail"] == {"email": "a@b.c"}

    def test_payload_omits_missing_detail(self) -> None:
        err = NotFoundError()
        assert "detail" not in err.to_payload(include_detail=True)

    def test_str(self) -> None:
        assert str(NotFoundError("gone")) == "404 NOT_FOUND: gone"
