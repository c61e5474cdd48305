"""Tests for wren.server.sender response emission rules."""

from typing import Any

import pytest

from wren.http.response import Response
from wren.server.sender import encode_headers, send_response


async def _capture(response: Response) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []

    async def send(message: dict[str, Any]) -> None:
        messages.append(message)

    await send_response(response, send)
    return messages


class TestSendResponseNoBodyStatuses:
    @pytest.mark.parametrize("status", [204, 304, 101])
    async def test_drops_body_and_sets_zero_content_length(self, status: int) -> None:
        # Even if a handler attaches body content, no-body statuses send none.
        messages = await _capture(Response("unexpected-body").with_status(status))

        assert messages[0]["type"] == "http.response.start"
        assert messages[0]["status"] == status
        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == b"0"

        assert messages[1]["type"] == "http.response.body"
        assert messages[1]["body"] == b""

    async def test_200_preserves_body(self) -> None:
        messages = await _capture(Response("ok"))

        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == b"2"
        assert messages[1]["body"] == b"ok"


class TestEncodeHeaders:
    def test_order_and_case(self) -> None:
        response = Response(b"{}", content_type="application/json").with_header("X-Trace", "1")
        assert encode_headers(response, 2) == [
            (b"content-type", b"application/json"),
            (b"x-trace", b"1"),
            (b"content-length", b"2"),
        ]

    def test_framing_headers_not_duplicated(self) -> None:
        response = (
            Response("abc")
            .with_header("Content-Length", "999")
            .with_header("Content-Type", "text/html")
        )
        encoded = encode_headers(response, 3)
        names = [name for name, _ in encoded]
        assert names.count(b"content-length") == 1
        assert names.count(b"content-type") == 1
        assert dict(encoded)[b"content-length"] == b"3"

    def test_repeated_headers_kept(self) -> None:
        response = Response().with_header("Vary", "Origin").with_header("Vary", "Accept")
        values = [v for n, v in encode_headers(response, 0) if n == b"vary"]
        assert values == [b"Origin", b"Accept"]
