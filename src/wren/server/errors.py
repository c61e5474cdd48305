"""Error translation for wren requests.

Maps ``HTTPError`` exceptions and unexpected failures to JSON error
responses of the shape ``{"code": ..., "message": ..., "detail": ...}``.
"""

import logging

from wren.errors import ErrorKind, HTTPError
from wren.http.request import Request
from wren.http.response import Response

logger = logging.getLogger("wren.server")


def handle_http_error(
    exc: HTTPError,
    request: Request,
    *,
    debug: bool,
    expose_detail: bool = False,
) -> Response:
    """Map an HTTPError to its status and error document."""
    if exc.status >= 500:
        logger.error("%d %s %s: %s", exc.status, request.method, request.path, exc.message)
    else:
        logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.message)

    payload = exc.to_payload(include_detail=debug or expose_detail)
    response = Response.json(payload, status=exc.status)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def handle_internal_error(exc: BaseException, request: Request, *, debug: bool) -> Response:
    """Handle unexpected exceptions as 500 errors.

    The exception type and message are only revealed in development mode.
    """
    logger.exception("500 %s %s", request.method, request.path, exc_info=exc)

    kind = ErrorKind.INTERNAL
    payload: dict[str, object] = {"code": kind.code, "message": kind.default_message}
    if debug:
        payload["detail"] = {"type": type(exc).__name__, "message": str(exc)}
    return Response.json(payload, status=kind.status)


def translate_error(
    exc: BaseException,
    request: Request,
    *,
    debug: bool,
    expose_detail: bool = False,
) -> Response:
    """Translate any exception into exactly one error response."""
    if isinstance(exc, HTTPError):
        return handle_http_error(exc, request, debug=debug, expose_detail=expose_detail)
    return handle_internal_error(exc, request, debug=debug)
