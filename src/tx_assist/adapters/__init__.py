"""Protocol adapters: wallet calling conventions behind one interface."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tx_assist.adapters.base import ProtocolAdapter, Submission
from tx_assist.adapters.errors import classify_send_error, extract_message
from tx_assist.adapters.legacy import LegacyAdapter
from tx_assist.adapters.modern import ModernAdapter
from tx_assist.config.settings import ProviderConvention

if TYPE_CHECKING:
    from tx_assist.config.settings import AppConfig
    from tx_assist.monitor.timers import Scheduler
    from tx_assist.provider.base import Provider


def create_adapter(config: AppConfig, provider: Provider, scheduler: Scheduler) -> ProtocolAdapter:
    """Build the adapter matching ``config.provider.convention``."""
    if config.provider.convention == ProviderConvention.MODERN:
        return ModernAdapter()
    return LegacyAdapter(provider, scheduler, poll_interval=config.timeouts.poll_for_receipt)


__all__ = [
    "LegacyAdapter",
    "ModernAdapter",
    "ProtocolAdapter",
    "Submission",
    "classify_send_error",
    "create_adapter",
    "extract_message",
]
