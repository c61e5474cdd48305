"""Tests for wren.http.response: Response chaining."""

import pytest

from wren.http.response import JSON_CONTENT_TYPE, TEXT_CONTENT_TYPE, Response, dump_json


class TestResponse:
    def test_defaults(self) -> None:
        r = Response()
        assert r.body == b""
        assert r.status == 200
        assert r.content_type == TEXT_CONTENT_TYPE
        assert r.headers == ()

    def test_with_status(self) -> None:
        r = Response().with_status(201)
        assert r.status == 201

    def test_with_header(self) -> None:
        r = Response().with_header("X-Custom", "value")
        assert r.headers == (("X-Custom", "value"),)

    def test_chained_headers(self) -> None:
        r = Response().with_header("A", "1").with_header("B", "2")
        assert r.headers == (("A", "1"), ("B", "2"))

    def test_with_headers_dict(self) -> None:
        r = Response().with_headers({"A": "1", "B": "2"})
        assert ("A", "1") in r.headers
        assert ("B", "2") in r.headers

    def test_with_content_type(self) -> None:
        r = Response().with_content_type("application/xml")
        assert r.content_type == "application/xml"

    def test_chaining_returns_new_objects(self) -> None:
        r1 = Response("hello")
        r2 = r1.with_status(201)
        r3 = r2.with_header("X-Foo", "bar")

        assert r1.status == 200
        assert r2.status == 201
        assert r2.headers == ()
        assert r3.headers == (("X-Foo", "bar"),)

    def test_header_lookup(self) -> None:
        r = Response("x").with_header("Retry-After", "3")
        assert r.header("retry-after") == "3"
        assert r.header("content-type") == TEXT_CONTENT_TYPE
        assert r.header("x-missing") is None
        assert r.header("x-missing", "d") == "d"

    def test_body_bytes_from_str(self) -> None:
        assert Response(body="héllo").body_bytes == "héllo".encode()

    def test_body_bytes_from_bytes(self) -> None:
        assert Response(body=b"hello").body_bytes == b"hello"

    def test_text_from_bytes(self) -> None:
        assert Response(body=b"hello").text == "hello"

    def test_frozen(self) -> None:
        r = Response()
        with pytest.raises(AttributeError):
            r.status = 404  # type: ignore[misc]


class TestJSONResponse:
    def test_json(self) -> None:
        r = Response.json({"a": [1, 2]}, status=201)
        assert r.status == 201
        assert r.content_type == JSON_CONTENT_TYPE
        assert r.body == b'{"a":[1,2]}'
        assert r.json_body() == {"a": [1, 2]}

    def test_dump_json_unicode_and_fallback(self) -> None:
        class Token:
            def __str__(self) -> str:
                return "tok"

        assert dump_json({"name": "café", "t": Token()}) == b'{"name":"caf\\u00e9","t":"tok"}'
