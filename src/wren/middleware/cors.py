"""CORS middleware.

Handles preflight requests and adds CORS headers before the rest of the
chain runs, so they reach the response whichever unit writes it.
"""

from dataclasses import dataclass

from wren.context import Context
from wren.middleware.protocol import Next


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    All fields have secure defaults (nothing is allowed).
    Override what you need::

        CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST"),
        )
    """

    allow_origins: tuple[str, ...] = ()
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
    allow_headers: tuple[str, ...] = ()
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes


class CORSMiddleware:
    """Standards-compliant CORS middleware.

    Handles:
    - Preflight ``OPTIONS`` requests (answered with 204, chain not run)
    - Simple and actual requests (CORS headers set, then delegated)
    - Credential support (``Access-Control-Allow-Credentials``)
    - Wildcard origins (``"*"``) when credentials are disabled

    Usage::

        app.use(CORSMiddleware(CORSConfig(
            allow_origins=("https://example.com",),
            allow_headers=("Content-Type", "Authorization"),
        )))
    """

    __slots__ = ("config",)

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()

    def _is_allowed_origin(self, origin: str) -> bool:
        if "*" in self.config.allow_origins:
            return True
        return origin in self.config.allow_origins

    def _set_cors_headers(self, ctx: Context, origin: str) -> None:
        cfg = self.config

        if "*" in cfg.allow_origins and not cfg.allow_credentials:
            ctx.set_header("Access-Control-Allow-Origin", "*")
        else:
            ctx.set_header("Access-Control-Allow-Origin", origin)
            ctx.append_header("Vary", "Origin")

        if cfg.allow_credentials:
            ctx.set_header("Access-Control-Allow-Credentials", "true")

        if cfg.expose_headers:
            ctx.set_header("Access-Control-Expose-Headers", ", ".join(cfg.expose_headers))

    def _preflight(self, ctx: Context, origin: str) -> None:
        cfg = self.config
        self._set_cors_headers(ctx, origin)
        if ctx.headers.get("access-control-request-method"):
            ctx.set_header("Access-Control-Allow-Methods", ", ".join(cfg.allow_methods))

        if cfg.allow_headers:
            ctx.set_header("Access-Control-Allow-Headers", ", ".join(cfg.allow_headers))
        else:
            requested = ctx.headers.get("access-control-request-headers")
            if requested and "*" in cfg.allow_origins:
                ctx.set_header("Access-Control-Allow-Headers", requested)

        ctx.set_header("Access-Control-Max-Age", str(cfg.max_age))
        ctx.respond_raw(b"", "text/plain; charset=utf-8", status=204)

    async def __call__(self, ctx: Context, next: Next) -> None:
        origin = ctx.headers.get("origin")

        # No Origin header: not a CORS request
        if origin is None or not self._is_allowed_origin(origin):
            await next()
            return

        if ctx.method == "OPTIONS" and ctx.headers.get("access-control-request-method"):
            self._preflight(ctx, origin)
            return

        self._set_cors_headers(ctx, origin)
        await next()
