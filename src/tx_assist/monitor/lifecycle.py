"""Lifecycle monitor: approval-reminder and stall timers per transaction.

Independent one-shot timers are kept per transaction id:

- ``reminder``: armed at submission, cancelled once the wallet answers
- ``stall``: armed when the hash arrives, cancelled on confirmation
- ``settle``: armed on the first confirmation, cancelled by the second signal
- ``sign_reminder``: armed per message signature request

The monitor only owns the timers. What happens when one fires is decided by
the callback the dispatcher hands in.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from tx_assist.config.settings import TimeoutConfig
    from tx_assist.monitor.timers import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class TimerKind(enum.StrEnum):
    REMINDER = "reminder"
    STALL = "stall"
    SETTLE = "settle"
    SIGN_REMINDER = "sign_reminder"


class LifecycleMonitor:
    """Owns cancelable timers keyed by ``(kind, tx_id)``."""

    def __init__(self, scheduler: Scheduler, timeouts: TimeoutConfig) -> None:
        self._scheduler = scheduler
        self._timeouts = timeouts
        self._timers: dict[tuple[TimerKind, str], TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def is_armed(self, kind: TimerKind, tx_id: str) -> bool:
        """Whether a timer of *kind* is pending for *tx_id*."""
        return (kind, tx_id) in self._timers

    def arm_reminder(self, tx_id: str, callback: Callable[[str], None]) -> None:
        """Fire *callback(tx_id)* if the wallet has not answered in time."""
        self._arm(TimerKind.REMINDER, tx_id, self._timeouts.tx_confirm_reminder, callback)

    def arm_stall(self, tx_id: str, callback: Callable[[str], None]) -> None:
        """Fire *callback(tx_id)* if the transaction has not confirmed in time."""
        self._arm(TimerKind.STALL, tx_id, self._timeouts.tx_stall, callback)

    def arm_settle(self, tx_id: str, callback: Callable[[str], None]) -> None:
        """Fire *callback(tx_id)* if a confirmed transaction gets no second signal."""
        self._arm(TimerKind.SETTLE, tx_id, self._timeouts.tx_settle, callback)

    def arm_sign_reminder(self, request_id: str, callback: Callable[[str], None]) -> None:
        """Fire *callback(request_id)* if a signature request is still unanswered."""
        self._arm(
            TimerKind.SIGN_REMINDER, request_id, self._timeouts.sign_confirm_reminder, callback
        )

    def cancel_reminder(self, tx_id: str) -> None:
        """Cancel the approval reminder."""
        self._cancel(TimerKind.REMINDER, tx_id)

    def cancel_stall(self, tx_id: str) -> None:
        """Cancel the stall timer."""
        self._cancel(TimerKind.STALL, tx_id)

    def cancel_settle(self, tx_id: str) -> None:
        """Cancel the second-signal timer."""
        self._cancel(TimerKind.SETTLE, tx_id)

    def cancel_sign_reminder(self, request_id: str) -> None:
        """Cancel a signature reminder."""
        self._cancel(TimerKind.SIGN_REMINDER, request_id)

    def cancel_all(self, tx_id: str) -> None:
        """Cancel every timer kept for *tx_id*."""
        for kind in TimerKind:
            self._cancel(kind, tx_id)

    def close(self) -> None:
        """Cancel every outstanding timer."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _arm(
        self,
        kind: TimerKind,
        tx_id: str,
        delay: float,
        callback: Callable[[str], None],
    ) -> None:
        key = (kind, tx_id)
        self._cancel(kind, tx_id)

        def _fire() -> None:
            self._timers.pop(key, None)
            logger.debug("%s timer fired for %s", kind, tx_id)
            callback(tx_id)

        self._timers[key] = self._scheduler.call_later(delay, _fire)

    def _cancel(self, kind: TimerKind, tx_id: str) -> None:
        handle = self._timers.pop((kind, tx_id), None)
        if handle is not None:
            handle.cancel()
