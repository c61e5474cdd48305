"""Middleware protocol and the one-shot ``Next`` continuation.

A middleware is any callable matching::

    async def my_mw(ctx: Context, next: Next) -> None: ...

No base class required. The framework checks the shape, not the lineage.

A middleware may:

- call ``await next()`` and do more work after it returns (timing, logging);
- write a response and return without calling ``next`` (short-circuit);
- raise an ``HTTPError`` (or anything else), which unwinds to the dispatcher.

``next`` is single use. A second call is logged and ignored, so the rest
of the chain can never run twice for one request.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from wren.context import Context

logger = logging.getLogger("wren.middleware")


class Next:
    """One-shot capability that runs the remainder of the chain."""

    __slots__ = ("_index", "_run", "_used")

    def __init__(self, run: Callable[[int], Awaitable[None]], index: int) -> None:
        self._run = run
        self._index = index
        self._used = False

    @property
    def used(self) -> bool:
        return self._used

    async def __call__(self) -> None:
        if self._used:
            logger.error("next() called more than once; the second call was ignored")
            return
        self._used = True
        await self._run(self._index)


class Middleware(Protocol):
    """Protocol for wren middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(ctx: Context, next: Next) -> None:
            start = time.monotonic()
            await next()
            logger.info("%s took %.3fs", ctx.path, time.monotonic() - start)

        # Class middleware
        class RequireToken:
            async def __call__(self, ctx: Context, next: Next) -> None:
                if "authorization" not in ctx.headers:
                    raise AuthenticationError()
                await next()
    """

    def __call__(self, ctx: Context, next: Next) -> Awaitable[None] | Any: ...
