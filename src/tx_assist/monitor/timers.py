"""Schedulers: cancelable one-shot timers and sleeps.

``AsyncioScheduler`` runs on the event loop clock. ``ManualScheduler`` keeps a
virtual clock that only moves when ``advance()`` is awaited, so lifecycle
timers and receipt polling can be driven deterministically.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Event-loop turns given to woken coroutines after each virtual timer fires.
_SETTLE_TURNS = 20


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it runs."""

    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    """Source of time for timers and polling loops."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    async def sleep(self, delay: float) -> None: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)


@dataclass(order=True)
class ScheduledCall:
    """Virtual-clock timer entry."""

    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    _cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Virtual-time scheduler.

    Usage::

        clock = ManualScheduler()
        clock.call_later(5, fired.append)
        await clock.advance(5)   # runs the callback
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[ScheduledCall] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled, not-cancelled calls."""
        return sum(1 for c in self._heap if not c.cancelled())

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(
            when=self._now + max(delay, 0.0), seq=next(self._seq), callback=callback
        )
        heapq.heappush(self._heap, call)
        return call

    async def sleep(self, delay: float) -> None:
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _wake() -> None:
            if not fut.done():
                fut.set_result(None)

        handle = self.call_later(delay, _wake)
        try:
            await fut
        finally:
            handle.cancel()

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due calls in order."""
        target = self._now + seconds
        await _settle()
        while self._heap and self._heap[0].when <= target:
            call = heapq.heappop(self._heap)
            if call.cancelled():
                continue
            self._now = call.when
            try:
                call.callback()
            except Exception:
                logger.exception("Scheduled callback failed")
            await _settle()
        self._now = target
        await _settle()


async def _settle() -> None:
    """Let coroutines woken by a timer run up to their next suspension."""
    for _ in range(_SETTLE_TURNS):
        await asyncio.sleep(0)
