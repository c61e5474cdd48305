"""Compiled router with trie-based path matching.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes. Matching walks the trie one
segment at a time and never uses regular expressions, so lookup cost
is bounded by the size of the trie regardless of the request path.

Precedence, evaluated segment by segment from the left: a literal edge
is tried before the parameter edge, which is tried before a trailing
wildcard. Patterns with the same shape resolve to whichever was
registered first.
"""

import logging
from dataclasses import replace

from wren.errors import ConfigurationError
from wren.routing.route import PathSegment, Route, RouteMatch, SegmentKind

logger = logging.getLogger("wren.routing")

_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


def _check_name(name: str, path: str) -> str:
    if not name.isidentifier():
        msg = f"Invalid parameter name {name!r} in route {path!r}."
        raise ConfigurationError(msg)
    return name


def _parse_segment(part: str, path: str) -> PathSegment:
    if "<" in part and ">" in part:
        msg = (
            f"Route {path!r} uses <param> syntax. "
            "Use {param} or :param for path parameters."
        )
        raise ConfigurationError(msg)

    if part.startswith("{"):
        if not part.endswith("}"):
            msg = f"Unterminated parameter {part!r} in route {path!r}."
            raise ConfigurationError(msg)
        inner = part[1:-1]
        name, _, converter = inner.partition(":")
        if converter == "path":
            return PathSegment(part, SegmentKind.WILDCARD, _check_name(name, path))
        if converter:
            msg = f"Unknown converter {converter!r} in route {path!r}."
            raise ConfigurationError(msg)
        return PathSegment(part, SegmentKind.PARAM, _check_name(name, path))

    if "{" in part or "}" in part:
        msg = f"Malformed parameter syntax {part!r} in route {path!r}."
        raise ConfigurationError(msg)

    if part.startswith(":"):
        return PathSegment(part, SegmentKind.PARAM, _check_name(part[1:], path))

    if part.startswith("*"):
        name = part[1:]
        return PathSegment(part, SegmentKind.WILDCARD, _check_name(name, path) if name else "*")

    return PathSegment(part)


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route pattern into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/users/:id"         -> [PathSegment("users"), PathSegment(":id", PARAM, "id")]
        "/users/{id}"        -> [PathSegment("users"), PathSegment("{id}", PARAM, "id")]
        "/files/*"           -> [PathSegment("files"), PathSegment("*", WILDCARD, "*")]
        "/files/{rest:path}" -> [PathSegment("files"), PathSegment(..., WILDCARD, "rest")]

    Raises ``ConfigurationError`` for malformed patterns.
    """
    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        segments.append(_parse_segment(part, path))

    seen: set[str] = set()
    for i, seg in enumerate(segments):
        if seg.kind is SegmentKind.WILDCARD and i != len(segments) - 1:
            msg = f"Wildcard must be the last segment in route {path!r}."
            raise ConfigurationError(msg)
        if seg.name is not None:
            if seg.name in seen:
                msg = f"Duplicate parameter {seg.name!r} in route {path!r}."
                raise ConfigurationError(msg)
            seen.add(seg.name)
    return segments


def decode_segment(raw: str) -> str | None:
    """Strictly percent-decode one path segment.

    Returns ``None`` for malformed escapes or bytes that are not UTF-8,
    which makes the segment unmatchable instead of raising.
    """
    try:
        data = raw.encode("latin-1")
    except UnicodeEncodeError:
        return None
    if b"%" in data:
        out = bytearray()
        i = 0
        n = len(data)
        while i < n:
            byte = data[i]
            if byte == 0x25:
                pair = data[i + 1 : i + 3]
                if len(pair) != 2 or not all(c in _HEX_DIGITS for c in pair):
                    return None
                out.append(int(pair, 16))
                i += 3
            else:
                out.append(byte)
                i += 1
        data = bytes(out)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _canonical(segments: list[PathSegment]) -> str:
    parts = []
    for seg in segments:
        if seg.kind is SegmentKind.PARAM:
            parts.append(f":{seg.name}")
        elif seg.kind is SegmentKind.WILDCARD:
            parts.append(f"*{seg.name}")
        else:
            parts.append(seg.value)
    return "/" + "/".join(parts)


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("children", "param_child", "routes_by_method", "wildcard_routes")

    def __init__(self) -> None:
        # Literal segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Single parameter child shared by every param name at this level
        self.param_child: _TrieNode | None = None
        # Trailing wildcard routes, keyed by HTTP method
        self.wildcard_routes: dict[str, Route] = {}
        # Routes ending at this node, keyed by HTTP method
        self.routes_by_method: dict[str, Route] = {}


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.add(Route("/users/stats", stats, frozenset({"GET"})))
        router.add(Route("/users/:id", show, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/users/42")   # path_params == {"id": "42"}

    ``match`` returns ``None`` when nothing matches; the dispatcher turns
    that into a 404.
    """

    __slots__ = ("_compiled", "_root", "_routes", "_signatures")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False
        self._routes: list[Route] = []
        self._signatures: set[tuple[str, str]] = set()

    def add(self, route: Route) -> Route:
        """Add a route to the router. Must be called before compile().

        Returns the stored route, with its parsed segments attached.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise ConfigurationError(msg)

        segments = parse_path(route.path)
        canonical = _canonical(segments)
        for method in route.methods:
            if (method, canonical) in self._signatures:
                msg = f"Duplicate route: {method} {route.path!r} is already registered."
                raise ConfigurationError(msg)

        route = replace(route, segments=tuple(segments))
        node = self._root
        table = None

        for seg in segments:
            if seg.kind is SegmentKind.WILDCARD:
                table = node.wildcard_routes
                break
            if seg.kind is SegmentKind.PARAM:
                if node.param_child is None:
                    node.param_child = _TrieNode()
                node = node.param_child
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        if table is None:
            table = node.routes_by_method

        for method in sorted(route.methods):
            self._signatures.add((method, canonical))
            existing = table.get(method)
            if existing is not None:
                # Same shape, different parameter names: first registered wins
                logger.warning(
                    "Route %s %r is shadowed by earlier route %r",
                    method,
                    route.path,
                    existing.path,
                )
                continue
            table[method] = route

        self._routes.append(route)
        return route

    @property
    def routes(self) -> list[Route]:
        """Return all registered routes in registration order."""
        return list(self._routes)

    @property
    def compiled(self) -> bool:
        return self._compiled

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch | None:
        """Match a request method and raw path against compiled routes.

        Each segment is percent-decoded before comparison and binding.
        Returns ``None`` (NoMatch) if no route for *method* matches.
        """
        parts = [decode_segment(p) for p in path.split("/") if p]
        result = self._match_node(self._root, parts, 0, (), method)
        if result is None:
            return None
        route, captured = result
        return RouteMatch(route=route, path_params=dict(zip(route.param_names, captured)))

    def allowed_methods(self, path: str) -> frozenset[str]:
        """Methods that have a route matching *path*."""
        methods = {m for r in self._routes for m in r.methods}
        return frozenset(m for m in methods if self.match(m, path) is not None)

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str | None],
        index: int,
        captured: tuple[str, ...],
        method: str,
    ) -> tuple[Route, tuple[str, ...]] | None:
        """Depth-first walk; each trie node is visited at most once."""
        if index == len(parts):
            route = node.routes_by_method.get(method)
            if route is not None:
                return route, captured
            return None

        part = parts[index]
        if part is None:
            # Malformed escape: no edge accepts this segment
            return None

        # 1. Literal child
        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, parts, index + 1, captured, method)
            if result is not None:
                return result

        # 2. Parameter child
        if node.param_child is not None:
            result = self._match_node(
                node.param_child, parts, index + 1, (*captured, part), method
            )
            if result is not None:
                return result

        # 3. Trailing wildcard, one or more remaining segments
        route = node.wildcard_routes.get(method)
        if route is not None:
            rest = parts[index:]
            if any(p is None for p in rest):
                return None
            return route, (*captured, "/".join(rest))  # type: ignore[arg-type]

        return None
