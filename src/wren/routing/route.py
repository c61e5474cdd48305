"""Route, PathSegment and RouteMatch frozen dataclasses."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class SegmentKind(IntEnum):
    """Segment kinds, ordered by match precedence (lower wins)."""

    LITERAL = 0
    PARAM = 1
    WILDCARD = 2


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route pattern.

    Literal:  ``/users``             (kind=LITERAL, value="users")
    Param:    ``/:id`` or ``/{id}``  (kind=PARAM, name="id")
    Wildcard: ``/*``, ``/*rest``, ``/{rest:path}`` (kind=WILDCARD)
    """

    value: str
    kind: SegmentKind = SegmentKind.LITERAL
    name: str | None = None

    @property
    def is_param(self) -> bool:
        return self.kind is not SegmentKind.LITERAL


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Created during app setup, compiled into the router at freeze time.
    ``middleware`` runs after the global chain, only for this route.
    """

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None
    middleware: tuple[Callable[..., Any], ...] = ()
    segments: tuple[PathSegment, ...] = field(default=(), compare=False)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.segments if s.is_param and s.name)


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]
