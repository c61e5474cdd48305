"""Immutable HTTP request.

Frozen metadata with async body access. The request is honest about
what it is: received data that doesn't change. Per-request mutable
state lives on ``wren.context.Context`` instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from wren._internal.asgi import Receive
from wren.http.body import BodyReceiver, parse_body
from wren.http.headers import Headers
from wren.http.query import QueryParams


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    The body is read through ``.body()`` once and cached by the
    underlying ``BodyReceiver``.

    ``raw_path`` keeps the undecoded request target so the router can
    percent-decode each segment itself.
    """

    method: str
    path: str
    raw_path: str
    headers: Headers
    query: QueryParams
    http_version: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None

    # Private: sole reader of the ASGI receive channel
    _receiver: BodyReceiver

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The declared body length, if any."""
        return self.headers.content_length

    @property
    def url(self) -> str:
        """Full request URL (path + query string)."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @property
    def client_host(self) -> str | None:
        """The peer address reported by the transport."""
        return self.client[0] if self.client else None

    @property
    def receiver(self) -> BodyReceiver:
        return self._receiver

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body (cached after the first call)."""
        return await self._receiver.read(self.content_length)

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    async def parsed(self) -> Any:
        """Read the body and parse it according to Content-Type."""
        return parse_body(await self.body(), self.content_type)

    # -- Factory --

    @classmethod
    def from_asgi(
        cls,
        scope: dict[str, Any],
        receive: Receive,
        *,
        body_limit: int | None = None,
    ) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        path = scope["path"]
        raw_path = scope.get("raw_path")
        if raw_path:
            # raw_path may carry the query string on some servers
            raw = raw_path.decode("latin-1").split("?", 1)[0]
        else:
            raw = quote(path, safe="/:@!$&'()*+,;=-._~")
        return cls(
            method=scope["method"].upper(),
            path=path,
            raw_path=raw,
            headers=Headers(tuple(scope.get("headers", ()))),
            query=QueryParams.parse(scope.get("query_string", b"")),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            _receiver=BodyReceiver(receive, limit=body_limit),
        )
