"""Wren application class.

Mutable during setup (route registration, middleware, lifecycle hooks).
Frozen at runtime when app.run() or __call__() is first invoked.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from wren._internal.asgi import Receive, Scope, Send
from wren._internal.invoke import invoke
from wren._internal.types import Handler, Hook
from wren.config import AppConfig
from wren.errors import ConfigurationError
from wren.middleware.chain import MiddlewareChain
from wren.middleware.cors import CORSConfig, CORSMiddleware
from wren.middleware.protocol import Middleware
from wren.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware
from wren.routing.route import Route
from wren.routing.router import Router
from wren.server.dispatch import Dispatcher, MetricsSnapshot
from wren.server.handler import handle_request

logger = logging.getLogger("wren.server")

_DEFAULT_METHODS = ("GET",)


class App:
    """The wren application.

    Mutable during setup (routes, middleware, hooks).
    Frozen at runtime when ``app.run()`` or ``__call__()`` is first invoked.

    Usage::

        app = App(AppConfig(debug=True))
        app.use(RequestLogger())
        app.use("/api", RateLimitMiddleware(RateLimitConfig(max_requests=100)))

        @app.get("/users/:id")
        async def show_user(ctx: Context) -> dict:
            return {"id": ctx.params["id"]}

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app, even when several server workers
        call ``__call__()`` concurrently on the first request.
    """

    __slots__ = (
        "_chain",
        # Compiled state (populated by _freeze)
        "_dispatcher",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._router = Router()
        self._chain = MiddlewareChain()
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state: set during _freeze()
        self._dispatcher: Dispatcher | None = None
        self._middleware: tuple[Any, ...] = ()

    @classmethod
    def from_config_mapping(cls, data: Mapping[str, Any]) -> "App":
        """Build an app from the nested deployment layout.

        See ``AppConfig.from_mapping``. CORS and rate limiting are
        installed automatically when their sections are present.
        """
        return cls(AppConfig.from_mapping(data))

    # -- Route registration --

    def route(
        self,
        path: str,
        *,
        methods: Sequence[str] | None = None,
        name: str | None = None,
        middleware: Iterable[Middleware] = (),
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: URL path pattern. Use ``:param`` or ``{param}`` for path
                parameters and a trailing ``*`` / ``*name`` / ``{name:path}``
                for a wildcard.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name.
            middleware: Middleware that only runs for this route, after
                the global chain and before the handler.

        Raises ``ConfigurationError`` immediately for malformed patterns
        and duplicate registrations.
        """
        route_middleware = tuple(middleware)
        for unit in route_middleware:
            if not callable(unit):
                msg = f"Route middleware must be callable, got {type(unit).__name__}."
                raise ConfigurationError(msg)

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._router.add(
                Route(
                    path=path,
                    handler=func,
                    methods=frozenset(m.upper() for m in (methods or _DEFAULT_METHODS)),
                    name=name,
                    middleware=route_middleware,
                )
            )
            return func

        return decorator

    def get(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=["GET"], **kwargs)

    def post(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=["POST"], **kwargs)

    def put(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=["PUT"], **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=["PATCH"], **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        return self.route(path, methods=["DELETE"], **kwargs)

    # -- Middleware --

    def use(
        self,
        unit: str | Middleware | MiddlewareChain,
        *units: Middleware | MiddlewareChain,
    ) -> None:
        """Append middleware to the global chain.

        ``app.use(mw)`` runs *mw* for every request.
        ``app.use("/admin", a, b)`` runs *a* then *b* only for ``/admin``
        and paths below it. Entries keep their registration position, so
        prefix-scoped and global middleware interleave in the order they
        were added. A ``MiddlewareChain`` is spliced in place.
        """
        self._check_not_frozen()
        if isinstance(unit, str):
            if not units:
                msg = f"app.use({unit!r}) needs at least one middleware to mount."
                raise ConfigurationError(msg)
            for item in units:
                self._chain.use(item, prefix=unit)
            return
        for item in (unit, *units):
            self._chain.use(item)

    # -- Lifecycle hooks --

    def on_startup(self, func: Hook) -> Hook:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.

        Usage::

            @app.on_startup
            async def setup():
                await db.connect()
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown,
        after the server stops accepting new requests. Middleware with an
        ``aclose()`` coroutine method is closed after the hooks.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Introspection --

    @property
    def router(self) -> Router:
        return self._router

    def metrics(self) -> MetricsSnapshot:
        """In-flight, total and per-status request counts."""
        self._ensure_frozen()
        assert self._dispatcher is not None
        return self._dispatcher.snapshot()

    # -- Running --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start serving with the pounce ASGI server.

        Compiles the app (freezing routes and middleware) first, so
        configuration errors surface before the socket is bound.
        """
        self._ensure_frozen()

        from wren.server.dev import run_server

        run_server(
            self,
            host or self.config.host,
            port or self.config.port,
            reload=self.config.debug,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles the lifespan scope directly, then delegates HTTP scopes
        to the request handler pipeline.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()

        if scope["type"] != "http":
            logger.debug("Ignoring unsupported ASGI scope %r", scope["type"])
            return

        assert self._dispatcher is not None

        await handle_request(
            scope,
            receive,
            send,
            dispatcher=self._dispatcher,
            body_limit=self.config.body_limit,
        )

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        runs registered startup/shutdown hooks and signals completion
        back to the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                try:
                    await self.shutdown()
                except Exception as exc:
                    logger.exception("Shutdown failed")
                    await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Freeze the app, then run startup hooks in registration order."""
        self._ensure_frozen()
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run shutdown hooks, then close middleware that holds resources."""
        for hook in self._shutdown_hooks:
            await invoke(hook)
        seen: set[int] = set()
        for unit in self._middleware:
            aclose = getattr(unit, "aclose", None)
            if aclose is None or id(unit) in seen:
                continue
            seen.add(id(unit))
            await aclose()

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking.

        Several server worker threads could call __call__() concurrently
        on the first request. This pattern ensures exactly one thread
        performs compilation.
        """
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        cfg = self.config

        # 1. Compile route table
        self._router.compile()

        # 2. Capture middleware as an immutable tuple. Config-driven
        #    security middleware runs ahead of everything the app added.
        chain = MiddlewareChain()
        if cfg.cors_origins:
            chain.use(CORSMiddleware(CORSConfig(allow_origins=cfg.cors_origins)))
        if cfg.rate_limit_max is not None:
            chain.use(
                RateLimitMiddleware(
                    RateLimitConfig(max_requests=cfg.rate_limit_max, window=cfg.rate_limit_window)
                )
            )
        chain.use(self._chain)
        entries = chain.entries
        self._middleware = tuple(entry.unit for entry in entries)

        # 3. Build the dispatcher shared by every request
        self._dispatcher = Dispatcher(
            router=self._router,
            middleware=entries,
            debug=cfg.debug,
            expose_detail=cfg.expose_detail,
            parse_body=cfg.parse_body,
            request_timeout=cfg.request_timeout,
        )

        self._frozen = True
        logger.debug(
            "App frozen with %d routes and %d middleware",
            len(self._router.routes),
            len(entries),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and hooks before calling app.run()."
            )
            raise RuntimeError(msg)
