"""Fan lifecycle events out to in-process observers.

The dispatcher publishes into a single bounded inbox; a background task copies
each event to every subscriber queue and calls every sink. ``publish`` never
awaits, so a slow observer can only lose events, never stall a submission.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from tx_assist.notifications.events import AssistEvent, EventCode

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = 100


class Notifier(Protocol):
    """Anything that accepts lifecycle events without blocking."""

    def publish(self, event: AssistEvent) -> None: ...


@dataclass
class _Observer:
    deliver: Callable[[AssistEvent], None]
    codes: frozenset[EventCode] = field(default_factory=frozenset)

    def wants(self, event: AssistEvent) -> bool:
        return not self.codes or event.event_code in self.codes


class NotificationService:
    """Inbox plus fan-out task.

    Usage::

        svc = NotificationService()
        events = svc.add_subscriber("ui")
        await svc.start()
        svc.publish(event)
        received = await events.get()
        await svc.stop()
    """

    def __init__(self, *, buffer: int = DEFAULT_BUFFER) -> None:
        self._buffer = buffer
        self._inbox: asyncio.Queue[AssistEvent] = asyncio.Queue(maxsize=buffer)
        self._observers: dict[str, _Observer] = {}
        self._pump: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the fan-out task is running."""
        return self._pump is not None

    def add_subscriber(
        self,
        key: str,
        *,
        buffer: int | None = None,
        codes: Iterable[EventCode] = (),
    ) -> asyncio.Queue[AssistEvent]:
        """Register a queue observer, optionally limited to some event codes."""
        queue: asyncio.Queue[AssistEvent] = asyncio.Queue(maxsize=buffer or self._buffer)

        def put(event: AssistEvent) -> None:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Subscriber %s is behind, dropped %s", key, event.event_code)

        self._observers[key] = _Observer(put, frozenset(codes))
        return queue

    def add_sink(
        self,
        key: str,
        sink: Callable[[AssistEvent], None],
        *,
        codes: Iterable[EventCode] = (),
    ) -> None:
        """Register a callable observer such as ``WebhookNotifier.enqueue``."""
        self._observers[key] = _Observer(sink, frozenset(codes))

    def remove_subscriber(self, key: str) -> None:
        """Unregister a subscriber queue or sink."""
        self._observers.pop(key, None)

    def publish(self, event: AssistEvent) -> None:
        """Queue an event for fan-out without blocking."""
        try:
            self._inbox.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Notification inbox full, dropped %s", event.event_code)

    async def start(self) -> None:
        """Start the fan-out task."""
        if self._pump is None:
            self._pump = asyncio.create_task(self._run(), name="notifications")

    async def stop(self) -> None:
        """Stop the fan-out task."""
        pump, self._pump = self._pump, None
        if pump is None:
            return
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump

    async def _run(self) -> None:
        while True:
            event = await self._inbox.get()
            self._deliver(event)

    def _deliver(self, event: AssistEvent) -> None:
        for key, observer in list(self._observers.items()):
            if not observer.wants(event):
                continue
            try:
                observer.deliver(event)
            except Exception:
                logger.exception("Observer %s failed on %s", key, event.event_code)
