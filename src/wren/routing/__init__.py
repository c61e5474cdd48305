"""Routing: compiled route table with O(path-depth) matching.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes.
"""

from wren.routing.route import PathSegment, Route, RouteMatch, SegmentKind
from wren.routing.router import Router, parse_path

__all__ = ["PathSegment", "Route", "RouteMatch", "Router", "SegmentKind", "parse_path"]
