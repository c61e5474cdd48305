"""Shared type aliases used across wren modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: receives the request Context, may return a value to negotiate
Handler: TypeAlias = Callable[..., Any]

# Lifecycle hook: sync or async, no arguments
Hook: TypeAlias = Callable[[], Any]
