"""Query strings and URL-encoded form bodies.

Both use the ``application/x-www-form-urlencoded`` encoding. Query
strings are parsed leniently with ``QueryParams.parse``: a stray pair
without ``=`` keeps a blank value and undecodable escapes are replaced.
Form bodies go through ``QueryParams.parse_form``, which raises
``ValueError`` so the body parser can answer with a 400.
"""

from collections.abc import Iterable, Iterator, Mapping
from urllib.parse import parse_qsl


class QueryParams(Mapping[str, str]):
    """Immutable multi-value mapping of decoded ``name=value`` pairs.

    Indexing returns the first value for a name and ``get_list`` all of
    them, in order of appearance. ``raw`` is the undecoded source.
    """

    __slots__ = ("_index", "_pairs", "raw")

    def __init__(self, pairs: Iterable[tuple[str, str]] = (), *, raw: bytes = b"") -> None:
        self._pairs = tuple(pairs)
        self.raw = raw
        index: dict[str, list[str]] = {}
        for name, value in self._pairs:
            index.setdefault(name, []).append(value)
        self._index = index

    @classmethod
    def parse(cls, query_string: bytes) -> "QueryParams":
        """Parse a URL query string."""
        return cls(
            parse_qsl(query_string.decode("latin-1"), keep_blank_values=True),
            raw=query_string,
        )

    @classmethod
    def parse_form(cls, body: bytes) -> "QueryParams":
        """Parse a form body, raising ``ValueError`` on malformed input."""
        text = body.decode("utf-8")
        pairs = parse_qsl(text, keep_blank_values=True, strict_parsing=bool(text), errors="strict")
        return cls(pairs, raw=body)

    def __getitem__(self, key: str) -> str:
        return self._index[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"QueryParams({list(self._pairs)!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        values = self._index.get(key)
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        return list(self._index.get(key, ()))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return the first value as an int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def to_dict(self) -> dict[str, str | list[str]]:
        """Plain dict: single values unwrapped, repeated names kept as lists."""
        return {k: v[0] if len(v) == 1 else list(v) for k, v in self._index.items()}
