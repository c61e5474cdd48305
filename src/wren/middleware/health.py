"""Health and metrics endpoints.

Both short-circuit the chain for their own path and delegate every
other request untouched.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

import anyio

from wren._internal.invoke import invoke
from wren.context import Context
from wren.middleware.protocol import Next

if TYPE_CHECKING:
    from wren.server.dispatch import MetricsSnapshot

logger = logging.getLogger("wren.middleware")

Check = Callable[[], Awaitable[Any] | Any]
MetricsSource = Callable[[], "MetricsSnapshot"]

_READ_METHODS = frozenset({"GET", "HEAD"})


class HealthCheck:
    """Answer ``GET /_health`` with a JSON health document.

    Usage::

        async def database() -> bool:
            return await db.ping()

        app.use(HealthCheck(checks={"database": database}, metrics=app.metrics))

    A check passes when it returns anything but ``False`` without raising
    inside *timeout* seconds. Any failing check turns the answer into a
    503 with ``"status": "unhealthy"``.
    """

    __slots__ = ("_started", "checks", "metrics", "path", "timeout")

    def __init__(
        self,
        path: str = "/_health",
        *,
        checks: Mapping[str, Check] | None = None,
        metrics: MetricsSource | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.path = path
        self.checks = dict(checks or {})
        self.metrics = metrics
        self.timeout = timeout
        self._started = time.monotonic()

    async def _run_check(self, name: str, check: Check) -> dict[str, Any]:
        result: dict[str, Any] = {"name": name, "status": "healthy"}
        with anyio.move_on_after(self.timeout) as scope:
            try:
                ok = await invoke(check)
            except Exception as exc:
                logger.warning("Health check %r failed: %s", name, exc)
                result.update(status="unhealthy", error=str(exc) or type(exc).__name__)
                return result
        if scope.cancelled_caught:
            result.update(status="unhealthy", error=f"timed out after {self.timeout}s")
        elif ok is False:
            result["status"] = "unhealthy"
        return result

    async def __call__(self, ctx: Context, next: Next) -> None:
        if ctx.path != self.path or ctx.method not in _READ_METHODS:
            await next()
            return

        results = [await self._run_check(name, check) for name, check in self.checks.items()]
        healthy = all(r["status"] == "healthy" for r in results)
        document: dict[str, Any] = {
            "status": "healthy" if healthy else "unhealthy",
            "uptime": round(time.monotonic() - self._started, 3),
            "checks": results,
        }
        if self.metrics is not None:
            document["in_flight"] = self.metrics().in_flight
        ctx.set_header("Cache-Control", "no-store")
        ctx.respond_json(document, status=200 if healthy else 503)


class MetricsEndpoint:
    """Answer ``GET /_metrics`` with the dispatcher's counters as JSON.

    Usage::

        app.use(MetricsEndpoint(app.metrics))
    """

    __slots__ = ("metrics", "path")

    def __init__(self, metrics: MetricsSource, path: str = "/_metrics") -> None:
        self.metrics = metrics
        self.path = path

    async def __call__(self, ctx: Context, next: Next) -> None:
        if ctx.path != self.path or ctx.method not in _READ_METHODS:
            await next()
            return
        ctx.set_header("Cache-Control", "no-store")
        ctx.respond_json(self.metrics().to_dict())
