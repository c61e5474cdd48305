"""Middleware: protocol-based, no inheritance required.

A middleware is any callable matching::

    async def mw(ctx: Context, next: Next) -> None

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing
    HealthCheck -- ``/_health`` endpoint with custom checks
    MetricsEndpoint -- ``/_metrics`` endpoint with request counters
    RateLimitMiddleware -- Fixed-window admission control per client
    RequestIDMiddleware -- Propagate or generate ``X-Request-ID``
    RequestLogger -- One access log line per request
    SecurityHeadersMiddleware -- X-Frame-Options, X-Content-Type-Options, Referrer-Policy
"""

from wren.middleware.access_log import RequestLogger
from wren.middleware.chain import ChainEntry, MiddlewareChain, compose
from wren.middleware.cors import CORSConfig, CORSMiddleware
from wren.middleware.health import HealthCheck, MetricsEndpoint
from wren.middleware.protocol import Middleware, Next
from wren.middleware.rate_limit import (
    FixedWindowLimiter,
    RateLimitConfig,
    RateLimitDecision,
    RateLimitMiddleware,
)
from wren.middleware.request_id import RequestIDMiddleware
from wren.middleware.security_headers import (
    SecurityHeadersConfig,
    SecurityHeadersMiddleware,
)

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "ChainEntry",
    "FixedWindowLimiter",
    "HealthCheck",
    "MetricsEndpoint",
    "Middleware",
    "MiddlewareChain",
    "Next",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "RequestLogger",
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "compose",
]
