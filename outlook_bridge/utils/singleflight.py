"""Coalesce concurrent invocations of an async operation into one execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class SingleFlight(Generic[T]):
    """Hold at most one in-flight operation; late callers await the same result.

    The slot is cleared once the operation settles, successfully or not, so the
    next call after that starts a fresh execution. Calls carrying a different
    ``key`` than the pending one wait for it to settle, then start their own.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._pending: Optional[asyncio.Future[T]] = None
        self._key: Optional[Hashable] = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def run(
        self, operation: Callable[[], Awaitable[T]], *, key: Optional[Hashable] = None
    ) -> T:
        while self._pending is not None and self._key != key:
            other = self._pending
            logger.debug("%s busy with %r; waiting before starting %r", self._name, self._key, key)
            await asyncio.wait({other})
            if self._pending is other:
                self._pending = None
                self._key = None

        pending = self._pending
        if pending is None:
            pending = asyncio.ensure_future(operation())
            self._pending = pending
            self._key = key
            pending.add_done_callback(self._settle)
        else:
            logger.debug("%s already in progress; awaiting pending result", self._name)
        # A cancelled waiter must not cancel the operation other callers share.
        return await asyncio.shield(pending)

    def _settle(self, future: "asyncio.Future[T]") -> None:
        if self._pending is future:
            self._pending = None
            self._key = None
        if not future.cancelled():
            # Waiters receive the exception themselves; mark it retrieved.
            future.exception()


__all__ = ["SingleFlight"]
