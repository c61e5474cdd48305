"""Fixed-window rate limiting.

``FixedWindowLimiter`` is the counter; ``RateLimitMiddleware`` puts it
in front of the chain, keyed by client identity.

For each key the limiter keeps ``(count, window_start, last_seen)``.
A hit with no record, or past the record's window end, starts a new
window with ``count=1``. Otherwise the count is incremented and the hit
is rejected once it exceeds ``max_requests``, with ``retry_after`` set to
the time left in the window. A fixed window permits up to twice the
limit across a window boundary; in exchange every check is O(1).

Records idle for ``stale_after`` windows are evicted by ``sweep()``,
which the middleware runs in a background task at most once per
``sweep_interval``. ``max_keys`` bounds memory between sweeps.
"""

import asyncio
import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from wren.context import Context
from wren.errors import ConfigurationError, RateLimitError
from wren.middleware.protocol import Next

logger = logging.getLogger("wren.middleware")

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of one admission check."""

    allowed: bool
    limit: int
    count: int
    reset_at: float
    retry_after: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class FixedWindowLimiter:
    """Thread-safe fixed-window counter keyed by client identity.

    Usage::

        limiter = FixedWindowLimiter(max_requests=2, window=1.0)
        limiter.hit("10.0.0.1", now=0.0).allowed   # True
        limiter.hit("10.0.0.1", now=0.1).allowed   # True
        limiter.hit("10.0.0.1", now=0.2)           # allowed=False, retry_after=0.8
        limiter.hit("10.0.0.1", now=1.0).allowed   # True, new window
    """

    __slots__ = ("_lock", "_records", "max_keys", "max_requests", "stale_after", "window")

    def __init__(
        self,
        max_requests: int,
        window: float,
        *,
        stale_after: int = 3,
        max_keys: int | None = 100_000,
    ) -> None:
        if max_requests < 1:
            msg = f"max_requests must be at least 1, got {max_requests}."
            raise ConfigurationError(msg)
        if window <= 0:
            msg = f"window must be positive, got {window}."
            raise ConfigurationError(msg)
        if stale_after < 1:
            msg = f"stale_after must be at least 1, got {stale_after}."
            raise ConfigurationError(msg)
        self.max_requests = max_requests
        self.window = window
        self.stale_after = stale_after
        self.max_keys = max_keys
        self._lock = threading.Lock()
        # key -> [count, window_start, last_seen]; dict order is insertion order
        self._records: dict[str, list[float]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def hit(self, key: str, now: float) -> RateLimitDecision:
        """Count one request for *key* at time *now* and decide admission."""
        with self._lock:
            record = self._records.get(key)
            if record is None or now >= record[1] + self.window:
                if record is None and self.max_keys is not None:
                    self._make_room()
                # Re-insert so the oldest window sits first for eviction
                self._records.pop(key, None)
                record = [1, now, now]
                self._records[key] = record
            else:
                record[0] += 1
                record[2] = now

            count = int(record[0])
            reset_at = record[1] + self.window
            if count > self.max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    count=count,
                    reset_at=reset_at,
                    retry_after=max(0.0, reset_at - now),
                )
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                count=count,
                reset_at=reset_at,
                retry_after=0.0,
            )

    def reset(self, key: str) -> None:
        """Forget *key* entirely."""
        with self._lock:
            self._records.pop(key, None)

    def sweep(self, now: float) -> int:
        """Evict records idle for ``stale_after`` windows. Returns the count."""
        horizon = self.window * self.stale_after
        with self._lock:
            stale = [key for key, record in self._records.items() if now - record[2] >= horizon]
            for key in stale:
                del self._records[key]
        if stale:
            logger.debug("Rate limiter evicted %d stale keys", len(stale))
        return len(stale)

    def _make_room(self) -> None:
        # Caller holds the lock
        while self._records and len(self._records) >= self.max_keys:  # type: ignore[operator]
            oldest = next(iter(self._records))
            del self._records[oldest]
            logger.warning("Rate limiter at max_keys=%d; evicted %r", self.max_keys, oldest)


def client_identity(ctx: Context, key_header: str | None = "x-forwarded-for") -> str:
    """Client key: first hop of the forwarding header, then the peer address."""
    if key_header:
        forwarded = ctx.headers.first_hop(key_header)
        if forwarded:
            return forwarded
    if ctx.client:
        return ctx.client[0]
    return "unknown"


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Configuration for request rate limiting.

    ``window`` is in seconds.
    """

    max_requests: int = 100
    window: float = 60.0
    stale_after: int = 3
    max_keys: int | None = 100_000
    sweep_interval: float | None = None  # default: max(60s, window / 4)
    key_header: str | None = "x-forwarded-for"
    headers: bool = True
    message: str = "Too many requests, please try again later."


class RateLimitMiddleware:
    """Reject clients that exceed their request budget with a 429.

    Usage::

        app.use(RateLimitMiddleware(RateLimitConfig(max_requests=100, window=60)))

    The ``X-RateLimit-*`` headers are set before delegating, so they
    appear on the final response whatever the handler does. Pass
    *key_func* to key on something other than the client address.
    """

    __slots__ = ("_clock", "_last_sweep", "_sweep_task", "config", "key_func", "limiter")

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        key_func: Callable[[Context], str] | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or RateLimitConfig()
        self.limiter = FixedWindowLimiter(
            self.config.max_requests,
            self.config.window,
            stale_after=self.config.stale_after,
            max_keys=self.config.max_keys,
        )
        self.key_func = key_func
        self._clock = clock
        self._last_sweep = clock()
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def sweep_interval(self) -> float:
        if self.config.sweep_interval is not None:
            return self.config.sweep_interval
        return max(60.0, self.config.window / 4)

    def _maybe_schedule_sweep(self, now: float) -> None:
        if now - self._last_sweep < self.sweep_interval:
            return
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._last_sweep = now
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep(now))

    async def _sweep(self, now: float) -> None:
        self.limiter.sweep(now)

    async def aclose(self) -> None:
        """Cancel a pending background sweep. Called on app shutdown."""
        task, self._sweep_task = self._sweep_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Rate limiter sweep cancelled on shutdown")

    async def __call__(self, ctx: Context, next: Next) -> None:
        cfg = self.config
        now = self._clock()
        key = self.key_func(ctx) if self.key_func else client_identity(ctx, cfg.key_header)
        decision = self.limiter.hit(key, now)
        self._maybe_schedule_sweep(now)

        if cfg.headers:
            ctx.set_header("X-RateLimit-Limit", str(decision.limit))
            ctx.set_header("X-RateLimit-Remaining", str(decision.remaining))
            ctx.set_header("X-RateLimit-Reset", str(math.ceil(decision.reset_at - now)))

        if not decision.allowed:
            logger.info("Rate limit exceeded for %s on %s %s", key, ctx.method, ctx.path)
            raise RateLimitError(cfg.message, retry_after=decision.retry_after)

        await next()
