"""Tests for wren.http.headers: immutable, case-insensitive Headers."""

import pytest

from wren.http.headers import Headers


def _h(*pairs: tuple[str, str]) -> Headers:
    """Shorthand: build Headers from string pairs."""
    raw = tuple((k.encode("latin-1"), v.encode("latin-1")) for k, v in pairs)
    return Headers(raw)


class TestHeaders:
    def test_getitem(self) -> None:
        h = _h(("Content-Type", "text/html"))
        assert h["Content-Type"] == "text/html"

    def test_case_insensitive(self) -> None:
        h = _h(("Content-Type", "text/html"))
        assert h["content-type"] == "text/html"
        assert h["CONTENT-TYPE"] == "text/html"

    def test_missing_key_raises(self) -> None:
        h = _h(("Accept", "*/*"))
        with pytest.raises(KeyError):
            h["X-Missing"]

    def test_contains(self) -> None:
        h = _h(("Accept", "*/*"))
        assert "accept" in h
        assert "Accept" in h
        assert "x-missing" not in h

    def test_contains_rejects_non_str(self) -> None:
        h = _h(("Accept", "*/*"))
        assert 42 not in h  # type: ignore[operator]

    def test_len(self) -> None:
        h = _h(("A", "1"), ("B", "2"), ("C", "3"))
        assert len(h) == 3

    def test_len_deduplicates(self) -> None:
        h = _h(("Set-Cookie", "a=1"), ("Set-Cookie", "b=2"))
        assert len(h) == 1  # one unique key

    def test_iter_yields_unique_lowercase_keys(self) -> None:
        h = _h(("Accept", "*/*"), ("Content-Type", "text/html"), ("Accept", "text/xml"))
        keys = list(h)
        assert keys == ["accept", "content-type"]

    def test_get_with_default(self) -> None:
        h = _h(("Accept", "*/*"))
        assert h.get("accept") == "*/*"
        assert h.get("x-missing") is None
        assert h.get("x-missing", "fallback") == "fallback"

    def test_get_list(self) -> None:
        h = _h(("Set-Cookie", "a=1"), ("Set-Cookie", "b=2"), ("Accept", "*/*"))
        assert h.get_list("Set-Cookie") == ["a=1", "b=2"]
        assert h.get_list("Accept") == ["*/*"]
        assert h.get_list("X-Missing") == []

    def test_raw_property(self) -> None:
        raw = ((b"a", b"1"), (b"b", b"2"))
        h = Headers(raw)
        assert h.raw is raw

    def test_empty_headers(self) -> None:
        h = Headers()
        assert len(h) == 0
        assert list(h) == []

    def test_repr(self) -> None:
        h = _h(("Accept", "*/*"))
        assert "accept" in repr(h)

    def test_values_decoded_as_latin1(self) -> None:
        h = Headers(((b"X-Name", "caf\u00e9".encode("latin-1")),))
        assert h["x-name"] == "caf\u00e9"


class TestContentLength:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("42", 42), (" 7 ", 7), ("0", 0), ("abc", None), ("-5", None), ("1e3", None)],
    )
    def test_parsing(self, value: str, expected: int | None) -> None:
        assert _h(("Content-Length", value)).content_length == expected

    def test_absent(self) -> None:
        assert Headers().content_length is None


class TestFirstHop:
    def test_leftmost_address(self) -> None:
        h = _h(("X-Forwarded-For", "203.0.113.9, 10.0.0.1, 10.0.0.2"))
        assert h.first_hop() == "203.0.113.9"

    def test_custom_header(self) -> None:
        h = _h(("X-Real-IP", " 198.51.100.4 "))
        assert h.first_hop("x-real-ip") == "198.51.100.4"

    @pytest.mark.parametrize("value", ["", " , 10.0.0.1"])
    def test_empty_first_hop(self, value: str) -> None:
        assert _h(("X-Forwarded-For", value)).first_hop() is None

    def test_missing(self) -> None:
        assert Headers().first_hop() is None
