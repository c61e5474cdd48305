"""Access logging middleware."""

import logging
import time

from wren.context import Context
from wren.middleware.protocol import Next

access_logger = logging.getLogger("wren.access")


class RequestLogger:
    """Log one line per request: method, path, status, duration.

    Runs its logging after ``next`` returns. When a later unit raises,
    the error is logged as ``ERR`` and re-raised for the dispatcher to
    translate.
    """

    __slots__ = ("level", "logger")

    def __init__(self, logger: logging.Logger | None = None, *, level: int = logging.INFO) -> None:
        self.logger = logger or access_logger
        self.level = level

    async def __call__(self, ctx: Context, next: Next) -> None:
        start = time.perf_counter()
        try:
            await next()
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self.logger.log(
                self.level,
                "%s %s ERR %s %.1fms",
                ctx.method,
                ctx.path,
                type(exc).__name__,
                elapsed_ms,
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        self.logger.log(
            self.level,
            "%s %s %d %.1fms",
            ctx.method,
            ctx.path,
            ctx.status,
            elapsed_ms,
            extra={"request_id": ctx.state.get("request_id")},
        )
