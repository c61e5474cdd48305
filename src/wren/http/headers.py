"""Request headers as received from the ASGI server.

Names are matched case-insensitively and values are decoded from
latin-1 once, when the request is built. Repeated headers keep every
value in arrival order.

The two headers the kernel itself interprets are parsed here: the
declared body length, checked against the body limit before any byte
is read, and the proxy forwarding chain the rate limiter keys on.
"""

from collections.abc import Iterator, Mapping


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive view of request headers.

    Indexing returns the first value for a name; ``get_list`` returns
    all of them. ``raw`` keeps the original ASGI byte pairs.
    """

    __slots__ = ("_index", "_raw")

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        index: dict[str, list[str]] = {}
        for name, value in raw:
            index.setdefault(name.decode("latin-1").lower(), []).append(value.decode("latin-1"))
        self._raw = raw
        self._index = {name: tuple(values) for name, values in index.items()}

    def __getitem__(self, key: str) -> str:
        return self._index[key.lower()][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Headers({self._index!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        values = self._index.get(key.lower())
        return values[0] if values else default

    def get_list(self, key: str) -> list[str]:
        """Every value sent for *key*, in order."""
        return list(self._index.get(key.lower(), ()))

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        return self._raw

    @property
    def content_length(self) -> int | None:
        """The declared body length.

        ``None`` when the header is absent or is not a plain non-negative
        integer, in which case the body is only bounded while streaming.
        """
        value = self.get("content-length")
        if value is None:
            return None
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            return None
        return int(value)

    def first_hop(self, name: str = "x-forwarded-for") -> str | None:
        """Leftmost address of a comma-separated proxy chain header."""
        value = self.get(name)
        if not value:
            return None
        return value.split(",", 1)[0].strip() or None
