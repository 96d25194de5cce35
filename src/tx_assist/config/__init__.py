"""Configuration: pydantic-settings models with YAML overlay."""

from __future__ import annotations

from tx_assist.config.settings import (
    AppConfig,
    MetricsConfig,
    NotificationConfig,
    ProviderConfig,
    ProviderConvention,
    TimeoutConfig,
    WalletConfig,
)

__all__ = [
    "AppConfig",
    "MetricsConfig",
    "NotificationConfig",
    "ProviderConfig",
    "ProviderConvention",
    "TimeoutConfig",
    "WalletConfig",
]
