"""Per-request context.

``Context`` is the mutable state threaded through the middleware chain
for one request: the immutable ``Request``, route parameters, the parsed
body, a ``state`` dict for middleware data, and the response draft.

The draft is sealed by the first ``respond_*`` / ``send`` call. After
that the context is ``finished`` and further writes are dropped and
logged, never raised: one misbehaving middleware must not crash the
request it is part of.

Resources acquired during the request are registered on the context
(``enter_async_context`` / ``call_on_close``) and released by
``aclose()`` on every exit path, including timeouts and client
disconnects.

The context for the running task is also published through a
``ContextVar`` so helpers deep in the call stack can reach it.
"""

import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from contextvars import ContextVar
from typing import Any, TypeVar

from wren._internal.invoke import invoke
from wren.http.body import parse_body
from wren.http.headers import Headers
from wren.http.query import QueryParams
from wren.http.request import Request
from wren.http.response import (
    JSON_CONTENT_TYPE,
    TEXT_CONTENT_TYPE,
    Response,
    dump_json,
)

logger = logging.getLogger("wren.server")

T = TypeVar("T")

_UNSET: Any = object()


class Context:
    """Mutable, per-request state. Never shared across requests."""

    __slots__ = (
        "_body",
        "_exit_stack",
        "_finished",
        "_headers",
        "_response",
        "_status",
        "params",
        "request",
        "route",
        "state",
    )

    def __init__(self, request: Request) -> None:
        self.request = request
        self.params: dict[str, str] = {}
        self.route: Any = None
        self.state: dict[str, Any] = {}
        self._body: Any = _UNSET
        self._status = 200
        self._headers: list[tuple[str, str]] = []
        self._response: Response | None = None
        self._finished = False
        self._exit_stack = AsyncExitStack()

    # -- Request accessors --

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def headers(self) -> Headers:
        return self.request.headers

    @property
    def query(self) -> QueryParams:
        return self.request.query

    @property
    def client(self) -> tuple[str, int] | None:
        return self.request.client

    @property
    def body(self) -> Any:
        """The parsed body.

        Available once the body has been read, either eagerly by the
        dispatcher or lazily via ``await ctx.read_body()``. ``None``
        when the body was empty.
        """
        if self._body is _UNSET:
            msg = "Request body has not been read; await ctx.read_body() first."
            raise RuntimeError(msg)
        return self._body

    @property
    def body_loaded(self) -> bool:
        return self._body is not _UNSET

    async def read_body(self) -> Any:
        """Read and parse the body (cached)."""
        if self._body is _UNSET:
            raw = await self.request.body()
            self._body = parse_body(raw, self.request.content_type)
        return self._body

    async def raw_body(self) -> bytes:
        """The raw body bytes (cached by the request's receiver)."""
        return await self.request.body()

    # -- Response draft --

    @property
    def finished(self) -> bool:
        """True once a response has been written."""
        return self._finished

    @property
    def status(self) -> int:
        return self._response.status if self._response is not None else self._status

    @property
    def response(self) -> Response | None:
        """The written response, or ``None`` while the draft is open."""
        return self._response

    def _reject_write(self, action: str) -> bool:
        if self._finished:
            logger.warning(
                "Dropped %s after the response was written (%s %s)",
                action,
                self.method,
                self.path,
            )
            return True
        return False

    def set_status(self, status: int) -> "Context":
        if not self._reject_write(f"set_status({status})"):
            self._status = status
        return self

    def set_header(self, name: str, value: str) -> "Context":
        """Set a response header, replacing earlier values of the same name."""
        if not self._reject_write(f"set_header({name!r})"):
            lowered = name.lower()
            self._headers = [(k, v) for k, v in self._headers if k.lower() != lowered]
            self._headers.append((name, str(value)))
        return self

    def append_header(self, name: str, value: str) -> "Context":
        """Add a response header without replacing existing values."""
        if not self._reject_write(f"append_header({name!r})"):
            self._headers.append((name, str(value)))
        return self

    def get_response_header(self, name: str) -> str | None:
        lowered = name.lower()
        source = self._response.headers if self._response is not None else self._headers
        for key, value in source:
            if key.lower() == lowered:
                return value
        return None

    def _take_content_type(
        self, explicit: str | None
    ) -> tuple[str | None, tuple[tuple[str, str], ...]]:
        """Split a drafted Content-Type header from the other draft headers.

        The explicit type wins; a drafted value it overrides is logged.
        """
        drafted: str | None = None
        rest: list[tuple[str, str]] = []
        for name, value in self._headers:
            if name.lower() == "content-type":
                drafted = value
            else:
                rest.append((name, value))
        if explicit is None:
            return drafted, tuple(rest)
        if drafted is not None and drafted != explicit:
            logger.warning(
                "Drafted Content-Type %r replaced by %r (%s %s)",
                drafted,
                explicit,
                self.method,
                self.path,
            )
        return explicit, tuple(rest)

    def respond_raw(
        self,
        body: bytes | str,
        content_type: str | None = None,
        *,
        status: int | None = None,
    ) -> bool:
        """Write the response. Returns False if one was already written.

        Without *content_type* a drafted ``Content-Type`` header is used,
        falling back to ``application/octet-stream``.
        """
        if self._reject_write("respond"):
            return False
        resolved, headers = self._take_content_type(content_type)
        self._response = Response(
            body=body,
            status=status if status is not None else self._status,
            content_type=resolved or "application/octet-stream",
            headers=headers,
        )
        self._finished = True
        return True

    def respond_json(self, value: Any, *, status: int | None = None) -> bool:
        return self.respond_raw(dump_json(value), JSON_CONTENT_TYPE, status=status)

    def respond_text(self, text: str, *, status: int | None = None) -> bool:
        return self.respond_raw(text, TEXT_CONTENT_TYPE, status=status)

    def send(self, response: Response) -> bool:
        """Write a prebuilt ``Response``; draft headers are merged first."""
        if self._reject_write("send"):
            return False
        content_type, draft = self._take_content_type(response.content_type)
        own = {name.lower() for name, _ in response.headers}
        merged = tuple((k, v) for k, v in draft if k.lower() not in own)
        self._response = Response(
            body=response.body,
            status=response.status,
            content_type=content_type or response.content_type,
            headers=(*merged, *response.headers),
        )
        self._finished = True
        return True

    # -- Scoped resources --

    async def enter_async_context(self, cm: AbstractAsyncContextManager[T]) -> T:
        """Enter *cm* now; it exits when the request ends, on any path."""
        return await self._exit_stack.enter_async_context(cm)

    def call_on_close(self, callback: Callable[[], Awaitable[Any] | Any]) -> None:
        """Run *callback* (sync or async) when the request ends."""
        self._exit_stack.push_async_callback(invoke, callback)

    async def aclose(self) -> None:
        """Release every resource registered on this context."""
        await self._exit_stack.aclose()

    def __repr__(self) -> str:
        return f"<Context {self.method} {self.path} finished={self._finished}>"


context_var: ContextVar[Context] = ContextVar("wren_context")
"""The current request context. Set by the dispatcher before the chain runs."""


def current_context() -> Context:
    """Return the context of the request being handled.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()
