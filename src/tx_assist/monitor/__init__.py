"""Monitor: cancelable lifecycle timers.

Provides:
- ``LifecycleMonitor``: approval-reminder and stall timers per transaction
- ``AsyncioScheduler``: event-loop clock
- ``ManualScheduler``: virtual clock for deterministic tests
"""

from __future__ import annotations

from tx_assist.monitor.lifecycle import LifecycleMonitor, TimerKind
from tx_assist.monitor.timers import AsyncioScheduler, ManualScheduler, Scheduler

__all__ = ["AsyncioScheduler", "LifecycleMonitor", "ManualScheduler", "Scheduler", "TimerKind"]
