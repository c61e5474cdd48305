"""Request dispatcher.

Turns one ``Request`` into exactly one ``Response``::

    Context -> (eager body) -> global chain -> route match
            -> route middleware -> handler -> negotiation

Every failure on that path is caught here, at the outer boundary, and
translated by ``wren.server.errors``. The dispatcher also enforces the
per-request deadline and keeps the request counters behind
``App.metrics()``.
"""

import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import anyio

from wren._internal.invoke import invoke
from wren.context import Context, context_var
from wren.errors import (
    ClientDisconnect,
    InternalServerError,
    NotFoundError,
    PayloadTooLargeError,
    RequestTimeoutError,
)
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.chain import ChainEntry, run_chain
from wren.routing.router import Router
from wren.server.errors import translate_error
from wren.server.negotiation import negotiate

logger = logging.getLogger("wren.server")


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Point-in-time copy of the dispatcher's request counters."""

    in_flight: int
    total: int
    by_status: Mapping[int, int] = field(default_factory=dict)
    started_at: float = 0.0

    @property
    def uptime(self) -> float:
        return max(0.0, time.monotonic() - self.started_at)

    def to_dict(self) -> dict[str, object]:
        return {
            "in_flight": self.in_flight,
            "total": self.total,
            "by_status": {str(status): count for status, count in sorted(self.by_status.items())},
            "uptime": round(self.uptime, 3),
        }


class _Metrics:
    __slots__ = ("_by_status", "_in_flight", "_lock", "_total", "started_at")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight = 0
        self._total = 0
        self._by_status: dict[int, int] = {}
        self.started_at = time.monotonic()

    def enter(self) -> None:
        with self._lock:
            self._in_flight += 1
            self._total += 1

    def leave(self, status: int | None) -> None:
        with self._lock:
            self._in_flight -= 1
            if status is not None:
                self._by_status[status] = self._by_status.get(status, 0) + 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                in_flight=self._in_flight,
                total=self._total,
                by_status=MappingProxyType(dict(self._by_status)),
                started_at=self.started_at,
            )


class Dispatcher:
    """Runs the frozen middleware chain and router for each request.

    Created once by ``App._freeze()``; shared by every request and never
    mutated afterwards except for its counters.
    """

    __slots__ = (
        "_metrics",
        "debug",
        "expose_detail",
        "middleware",
        "parse_body",
        "request_timeout",
        "router",
    )

    def __init__(
        self,
        *,
        router: Router,
        middleware: tuple[ChainEntry, ...] = (),
        debug: bool = False,
        expose_detail: bool = False,
        parse_body: bool = True,
        request_timeout: float | None = None,
    ) -> None:
        self.router = router
        self.middleware = middleware
        self.debug = debug
        self.expose_detail = expose_detail
        self.parse_body = parse_body
        self.request_timeout = request_timeout
        self._metrics = _Metrics()

    def snapshot(self) -> MetricsSnapshot:
        return self._metrics.snapshot()

    async def dispatch(self, request: Request) -> Response:
        """Process *request* and return the single response for it.

        Raises ``ClientDisconnect`` if the peer went away while the body
        was being read; nothing should be sent in that case.
        """
        ctx = Context(request)
        token = context_var.set(ctx)
        self._metrics.enter()
        response: Response | None = None
        try:
            response = await self._run(ctx)
            return response
        finally:
            context_var.reset(token)
            try:
                with anyio.CancelScope(shield=True):
                    await ctx.aclose()
            except Exception:
                logger.exception(
                    "Releasing request resources failed (%s %s)", request.method, request.path
                )
            finally:
                self._metrics.leave(response.status if response is not None else None)

    async def _run(self, ctx: Context) -> Response:
        request = ctx.request
        try:
            with anyio.move_on_after(self.request_timeout) as scope:
                self._check_declared_length(request)
                if self.parse_body:
                    await ctx.read_body()
                await run_chain(self.middleware, ctx, self._route)
            if scope.cancelled_caught and not ctx.finished:
                raise RequestTimeoutError(
                    f"Request exceeded the {self.request_timeout}s deadline",
                    detail={"timeout": self.request_timeout},
                )
        except ClientDisconnect:
            raise
        except Exception as exc:
            if ctx.finished:
                logger.error(
                    "Error after the response was written (%s %s); keeping the response",
                    request.method,
                    request.path,
                    exc_info=exc,
                )
            else:
                # Headers set by middleware before the failure still apply
                ctx.send(
                    translate_error(
                        exc, request, debug=self.debug, expose_detail=self.expose_detail
                    )
                )

        if ctx.response is None:
            logger.error(
                "Middleware chain completed without a response (%s %s)",
                request.method,
                request.path,
            )
            ctx.send(
                translate_error(
                    InternalServerError(detail="The request completed without a response"),
                    request,
                    debug=self.debug,
                    expose_detail=self.expose_detail,
                )
            )
        return ctx.response  # type: ignore[return-value]

    def _check_declared_length(self, request: Request) -> None:
        """Reject a declared Content-Length over the limit, read or not."""
        limit = request.receiver.limit
        declared = request.content_length
        if limit is not None and declared is not None and declared > limit:
            raise PayloadTooLargeError(
                f"Request body of {declared} bytes exceeds the {limit} byte limit",
                limit=limit,
            )

    async def _route(self, ctx: Context) -> None:
        """Terminal link of the global chain: resolve and run the route."""
        match = self.router.match(ctx.method, ctx.request.raw_path)
        if match is None:
            raise NotFoundError(
                f"No route for {ctx.method} {ctx.path}",
                detail={"method": ctx.method, "path": ctx.path},
            )
        ctx.route = match.route
        ctx.params = match.path_params

        if match.route.middleware:
            entries = tuple(ChainEntry(unit) for unit in match.route.middleware)
            await run_chain(entries, ctx, self._call_handler)
        else:
            await self._call_handler(ctx)

    async def _call_handler(self, ctx: Context) -> None:
        result = await invoke(ctx.route.handler, ctx)
        if result is None:
            return
        if ctx.finished:
            logger.warning(
                "Handler for %s %s responded and also returned %s; the return value was dropped",
                ctx.method,
                ctx.path,
                type(result).__name__,
            )
            return
        ctx.send(negotiate(result))
