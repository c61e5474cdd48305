"""Shared fixtures for wren tests."""

from collections.abc import Callable
from typing import Any

import pytest

from wren.http.request import Request


def make_scope(
    method: str = "GET",
    path: str = "/",
    *,
    headers: list[tuple[str, str]] | None = None,
    query_string: bytes = b"",
    client: tuple[str, int] | None = ("127.0.0.1", 54321),
) -> dict[str, Any]:
    """Build a minimal valid ASGI HTTP scope dict."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query_string,
        "root_path": "",
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers or []],
        "server": ("localhost", 8000),
        "client": client,
    }


def body_receiver(*chunks: bytes) -> Callable[[], Any]:
    """ASGI receive() that yields *chunks* then reports a disconnect."""
    pending = list(chunks) or [b""]

    async def receive() -> dict[str, Any]:
        if pending:
            chunk = pending.pop(0)
            return {"type": "http.request", "body": chunk, "more_body": bool(pending)}
        return {"type": "http.disconnect"}

    return receive


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Factory for Requests. Must be called from inside an async test."""

    def factory(
        method: str = "GET",
        path: str = "/",
        *,
        body: bytes = b"",
        chunks: tuple[bytes, ...] | None = None,
        headers: list[tuple[str, str]] | None = None,
        query_string: bytes = b"",
        body_limit: int | None = None,
        receive: Callable[[], Any] | None = None,
    ) -> Request:
        scope = make_scope(method, path, headers=headers, query_string=query_string)
        if receive is None:
            receive = body_receiver(*(chunks if chunks is not None else (body,)))
        return Request.from_asgi(scope, receive, body_limit=body_limit)

    return factory
