"""Security headers middleware: X-Frame-Options, X-Content-Type-Options, Referrer-Policy.

Sets common hardening headers on the response draft before delegating,
so every response from the chain carries them, errors included.
"""

from dataclasses import dataclass

from wren.context import Context
from wren.middleware.protocol import Next


@dataclass(frozen=True, slots=True)
class SecurityHeadersConfig:
    """Configuration for security headers.

    All values are applied as-is. ``None`` disables a header.
    """

    x_frame_options: str | None = "DENY"
    x_content_type_options: str | None = "nosniff"
    referrer_policy: str | None = "strict-origin-when-cross-origin"
    content_security_policy: str | None = "default-src 'none'; frame-ancestors 'none'"
    strict_transport_security: str | None = None


class SecurityHeadersMiddleware:
    """Add security headers to every response.

    - X-Frame-Options: prevents clickjacking
    - X-Content-Type-Options: prevents MIME sniffing
    - Referrer-Policy: controls referrer leakage

    Usage::

        from wren.middleware import SecurityHeadersMiddleware

        app.use(SecurityHeadersMiddleware())

    Or with custom config::

        app.use(SecurityHeadersMiddleware(SecurityHeadersConfig(
            x_frame_options="SAMEORIGIN",
            strict_transport_security="max-age=31536000",
        )))
    """

    __slots__ = ("_headers", "config")

    def __init__(self, config: SecurityHeadersConfig | None = None) -> None:
        self.config = config or SecurityHeadersConfig()
        cfg = self.config
        pairs = (
            ("X-Frame-Options", cfg.x_frame_options),
            ("X-Content-Type-Options", cfg.x_content_type_options),
            ("Referrer-Policy", cfg.referrer_policy),
            ("Content-Security-Policy", cfg.content_security_policy),
            ("Strict-Transport-Security", cfg.strict_transport_security),
        )
        self._headers = tuple((name, value) for name, value in pairs if value)

    async def __call__(self, ctx: Context, next: Next) -> None:
        for name, value in self._headers:
            ctx.set_header(name, value)
        await next()
