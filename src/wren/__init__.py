"""Wren: a small async HTTP dispatch kernel.

A trie router, an onion-style middleware chain, a per-request Context,
and a closed error taxonomy, served over ASGI.

Basic usage::

    from wren import App, Context

    app = App()

    @app.get("/users/:id")
    async def show_user(ctx: Context):
        return {"id": ctx.params["id"]}

    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "Context",
    "ErrorKind",
    "HTTPError",
    "Middleware",
    "MiddlewareChain",
    "Next",
    "NotFoundError",
    "RateLimitError",
    "Request",
    "Response",
    "ValidationError",
    "WrenError",
    "current_context",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    if name == "App":
        from wren.app import App

        return App

    if name == "AppConfig":
        from wren.config import AppConfig

        return AppConfig

    if name == "Request":
        from wren.http.request import Request

        return Request

    if name == "Response":
        from wren.http.response import Response

        return Response

    if name in ("Context", "current_context"):
        from wren import context as _ctx

        return getattr(_ctx, name)

    if name in ("Middleware", "Next"):
        from wren.middleware import protocol as _mw

        return getattr(_mw, name)

    if name == "MiddlewareChain":
        from wren.middleware.chain import MiddlewareChain

        return MiddlewareChain

    if name in (
        "ConfigurationError",
        "ErrorKind",
        "HTTPError",
        "NotFoundError",
        "RateLimitError",
        "ValidationError",
        "WrenError",
    ):
        from wren import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
