"""Ordered, prefix-aware middleware chain.

The chain is a frozen tuple of entries plus an index cursor. Running it
invokes entry 0 with a ``Next`` bound to the following index, and so on;
the terminal callable is the last link. Entries mounted under a prefix
are skipped for requests outside that prefix but keep their position,
so global and prefix-scoped middleware interleave in registration order.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wren._internal.invoke import invoke
from wren.errors import ConfigurationError
from wren.middleware.protocol import Middleware, Next

if TYPE_CHECKING:
    from wren.context import Context

Terminal = Callable[["Context"], Awaitable[None]]


def normalize_prefix(prefix: str | None) -> str | None:
    """``"api/"`` -> ``"/api"``; ``None`` and ``"/"`` mean unscoped."""
    if prefix is None:
        return None
    if not isinstance(prefix, str):
        msg = f"Mount prefix must be a string, got {type(prefix).__name__}."
        raise ConfigurationError(msg)
    cleaned = "/" + prefix.strip("/")
    return None if cleaned == "/" else cleaned


def join_prefix(outer: str | None, inner: str | None) -> str | None:
    if outer is None:
        return inner
    if inner is None:
        return outer
    return outer + inner


def path_in_prefix(path: str, prefix: str) -> bool:
    """True if *path* is *prefix* or continues it past a ``/`` boundary."""
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True, slots=True)
class ChainEntry:
    """One registered middleware and the prefix it is mounted under."""

    unit: Middleware
    prefix: str | None = None

    def applies_to(self, path: str) -> bool:
        return self.prefix is None or path_in_prefix(path, self.prefix)


class _Runner:
    """Cursor over one chain for one request."""

    __slots__ = ("_ctx", "_entries", "_terminal")

    def __init__(self, entries: tuple[ChainEntry, ...], ctx: Context, terminal: Terminal) -> None:
        self._entries = entries
        self._ctx = ctx
        self._terminal = terminal

    async def step(self, index: int) -> None:
        entries = self._entries
        path = self._ctx.path
        while index < len(entries) and not entries[index].applies_to(path):
            index += 1
        if index == len(entries):
            await self._terminal(self._ctx)
            return
        await invoke(entries[index].unit, self._ctx, Next(self.step, index + 1))


async def run_chain(entries: tuple[ChainEntry, ...], ctx: Context, terminal: Terminal) -> None:
    """Run *entries* for *ctx*, with *terminal* as the innermost link."""
    await _Runner(entries, ctx, terminal).step(0)


class MiddlewareChain:
    """Mutable list of middleware entries, frozen into a tuple for dispatch.

    Usage::

        chain = MiddlewareChain()
        chain.use(request_id)
        chain.use(require_token, prefix="/admin")

        api = MiddlewareChain()
        api.use(rate_limit)
        chain.use(api, prefix="/api")   # spliced here, as "/api" entries
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: list[ChainEntry] = []

    def use(self, unit: Middleware | MiddlewareChain, prefix: str | None = None) -> None:
        mount = normalize_prefix(prefix)
        if isinstance(unit, MiddlewareChain):
            for entry in unit._entries:
                self._entries.append(ChainEntry(entry.unit, join_prefix(mount, entry.prefix)))
            return
        if not callable(unit):
            msg = f"Middleware must be callable, got {type(unit).__name__}."
            raise ConfigurationError(msg)
        self._entries.append(ChainEntry(unit, mount))

    @property
    def entries(self) -> tuple[ChainEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def run(self, ctx: Context, terminal: Terminal) -> None:
        await run_chain(self.entries, ctx, terminal)


def compose(*units: Middleware) -> Callable[[Context, Next], Awaitable[None]]:
    """Combine several middleware into one, run in the given order."""
    entries = tuple(ChainEntry(unit) for unit in units)

    async def composed(ctx: Context, next: Next) -> None:
        async def resume(_ctx: Context) -> None:
            await next()

        await run_chain(entries, ctx, resume)

    return composed
