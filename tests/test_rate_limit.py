"""Tests for the fixed-window rate limiter and its middleware."""

import asyncio
import threading

import pytest

from wren.app import App
from wren.context import Context
from wren.errors import ConfigurationError
from wren.middleware.rate_limit import (
    FixedWindowLimiter,
    RateLimitConfig,
    RateLimitMiddleware,
)
from wren.testing import TestClient


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindowLimiter:
    def test_admits_up_to_max_then_rejects(self) -> None:
        limiter = FixedWindowLimiter(max_requests=2, window=1.0)
        assert limiter.hit("a", 0.0).allowed
        assert limiter.hit("a", 0.1).allowed
        rejected = limiter.hit("a", 0.2)
        assert not rejected.allowed
        assert rejected.retry_after == pytest.approx(0.8)
        assert rejected.remaining == 0

    def test_new_window_resets_count(self) -> None:
        limiter = FixedWindowLimiter(max_requests=2, window=1.0)
        for t in (0.0, 0.1, 0.2):
            limiter.hit("a", t)
        decision = limiter.hit("a", 1.0)
        assert decision.allowed
        assert decision.count == 1
        assert decision.reset_at == pytest.approx(2.0)

    def test_window_starts_at_first_hit(self) -> None:
        limiter = FixedWindowLimiter(max_requests=1, window=10.0)
        assert limiter.hit("a", 5.0).allowed
        assert not limiter.hit("a", 14.9).allowed
        assert limiter.hit("a", 15.0).allowed

    def test_keys_are_independent(self) -> None:
        limiter = FixedWindowLimiter(max_requests=1, window=1.0)
        assert limiter.hit("a", 0.0).allowed
        assert limiter.hit("b", 0.0).allowed
        assert not limiter.hit("a", 0.5).allowed

    def test_remaining(self) -> None:
        limiter = FixedWindowLimiter(max_requests=3, window=1.0)
        assert [limiter.hit("a", 0.0).remaining for _ in range(4)] == [2, 1, 0, 0]

    def test_reset(self) -> None:
        limiter = FixedWindowLimiter(max_requests=1, window=60.0)
        limiter.hit("a", 0.0)
        limiter.reset("a")
        assert limiter.hit("a", 1.0).allowed

    def test_sweep_evicts_idle_records(self) -> None:
        limiter = FixedWindowLimiter(max_requests=5, window=1.0, stale_after=3)
        limiter.hit("idle", 0.0)
        limiter.hit("busy", 0.0)
        limiter.hit("busy", 2.5)
        assert limiter.sweep(3.0) == 1
        assert len(limiter) == 1
        # The evicted key starts fresh
        assert limiter.hit("idle", 3.0).count == 1

    def test_max_keys_evicts_oldest(self, caplog: pytest.LogCaptureFixture) -> None:
        limiter = FixedWindowLimiter(max_requests=1, window=60.0, max_keys=2)
        limiter.hit("a", 0.0)
        limiter.hit("b", 1.0)
        limiter.hit("c", 2.0)
        assert len(limiter) == 2
        # "a" was evicted, so it is admitted again
        assert limiter.hit("a", 3.0).allowed
        assert "max_keys" in caplog.text

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_requests": 0, "window": 1.0},
            {"max_requests": 1, "window": 0},
            {"max_requests": 1, "window": 1.0, "stale_after": 0},
        ],
    )
    def test_invalid_arguments(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ConfigurationError):
            FixedWindowLimiter(**kwargs)  # type: ignore[arg-type]

    def test_concurrent_hits_are_counted_exactly(self) -> None:
        limiter = FixedWindowLimiter(max_requests=100, window=60.0)
        results: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            for _ in range(50):
                allowed = limiter.hit("shared", 0.0).allowed
                with lock:
                    results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 100
        assert results.count(False) == 300


def _limited_app(middleware: RateLimitMiddleware) -> App:
    app = App()
    app.use(middleware)

    @app.get("/")
    def index(ctx: Context) -> str:
        return "ok"

    return app


class TestRateLimitMiddleware:
    async def test_headers_and_429(self) -> None:
        clock = FakeClock()
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=2, window=10.0), clock=clock)
        async with TestClient(_limited_app(mw)) as client:
            first = await client.get("/")
            clock.now = 1.0
            await client.get("/")
            clock.now = 2.5
            third = await client.get("/")

        assert first.status == 200
        assert first.header("x-ratelimit-limit") == "2"
        assert first.header("x-ratelimit-remaining") == "1"
        assert first.header("x-ratelimit-reset") == "10"

        assert third.status == 429
        assert third.json_body()["code"] == "RATE_LIMIT_EXCEEDED"
        assert third.header("retry-after") == "8"
        assert third.header("x-ratelimit-remaining") == "0"
        assert third.header("x-ratelimit-reset") == "8"

    async def test_window_rollover_admits_again(self) -> None:
        clock = FakeClock()
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=1, window=1.0), clock=clock)
        async with TestClient(_limited_app(mw)) as client:
            assert (await client.get("/")).status == 200
            assert (await client.get("/")).status == 429
            clock.now = 1.0
            assert (await client.get("/")).status == 200

    async def test_keyed_by_peer_address(self) -> None:
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=1, window=60.0))
        async with TestClient(_limited_app(mw)) as client:
            a = await client.get("/", client=("10.0.0.1", 1))
            b = await client.get("/", client=("10.0.0.2", 1))
            a_again = await client.get("/", client=("10.0.0.1", 2))
        assert (a.status, b.status, a_again.status) == (200, 200, 429)

    async def test_keyed_by_forwarded_for(self) -> None:
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=1, window=60.0))
        async with TestClient(_limited_app(mw)) as client:
            first = await client.get("/", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
            second = await client.get("/", headers={"X-Forwarded-For": "203.0.113.9"})
            other = await client.get("/", headers={"X-Forwarded-For": "198.51.100.7"})
        assert (first.status, second.status, other.status) == (200, 429, 200)

    async def test_forwarded_for_ignored_when_disabled(self) -> None:
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=1, window=60.0, key_header=None))
        async with TestClient(_limited_app(mw)) as client:
            await client.get("/", headers={"X-Forwarded-For": "203.0.113.9"})
            second = await client.get("/", headers={"X-Forwarded-For": "198.51.100.7"})
        assert second.status == 429

    async def test_custom_key_func(self) -> None:
        mw = RateLimitMiddleware(
            RateLimitConfig(max_requests=1, window=60.0),
            key_func=lambda ctx: ctx.headers.get("x-api-key", "anon"),
        )
        async with TestClient(_limited_app(mw)) as client:
            a = await client.get("/", headers={"X-API-Key": "alpha"})
            b = await client.get("/", headers={"X-API-Key": "beta"})
            a_again = await client.get("/", headers={"X-API-Key": "alpha"})
        assert (a.status, b.status, a_again.status) == (200, 200, 429)

    async def test_headers_disabled(self) -> None:
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=5, headers=False))
        async with TestClient(_limited_app(mw)) as client:
            response = await client.get("/")
        assert response.header("x-ratelimit-limit") is None

    async def test_rejected_request_skips_handler(self) -> None:
        calls: list[str] = []
        app = App()
        app.use(RateLimitMiddleware(RateLimitConfig(max_requests=1, window=60.0)))

        @app.get("/")
        def index(ctx: Context) -> str:
            calls.append("handler")
            return "ok"

        async with TestClient(app) as client:
            await client.get("/")
            await client.get("/")
        assert calls == ["handler"]

    def test_default_sweep_interval(self) -> None:
        assert RateLimitMiddleware(RateLimitConfig(window=60.0)).sweep_interval == 60.0
        assert RateLimitMiddleware(RateLimitConfig(window=3600.0)).sweep_interval == 900.0
        assert (
            RateLimitMiddleware(RateLimitConfig(sweep_interval=5.0)).sweep_interval == 5.0
        )

    async def test_background_sweep(self) -> None:
        clock = FakeClock()
        mw = RateLimitMiddleware(
            RateLimitConfig(max_requests=5, window=1.0, sweep_interval=1.0), clock=clock
        )
        async with TestClient(_limited_app(mw)) as client:
            await client.get("/", client=("10.0.0.1", 1))
            clock.now = 5.0
            await client.get("/", client=("10.0.0.2", 1))
            task = mw._sweep_task
            assert task is not None
            await task
            assert len(mw.limiter) == 1

    async def test_aclose_cancels_pending_sweep(self) -> None:
        mw = RateLimitMiddleware(RateLimitConfig(max_requests=5))
        started = asyncio.Event()

        async def never() -> None:
            started.set()
            await asyncio.sleep(60)

        mw._sweep_task = asyncio.get_running_loop().create_task(never())
        await started.wait()
        task = mw._sweep_task
        await mw.aclose()
        assert task.cancelled()
        assert mw._sweep_task is None
