"""Engine configuration.

Sources, highest priority first:

1. Environment variables, prefix ``ASSIST_``; nested fields use ``__``
   (``ASSIST_TIMEOUTS__TX_STALL=45``).
2. A YAML file named by ``config_path`` / ``ASSIST_CONFIG_PATH``, or passed
   to ``AppConfig.from_yaml``.
3. The defaults below.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderConvention(enum.StrEnum):
    """How the wallet's send function reports progress."""

    LEGACY = "legacy"  # awaitable hash, receipt polled
    MODERN = "modern"  # handle emitting hash / receipt / confirmation / error


class ProviderConfig(BaseModel):
    url: str = "http://localhost:8545"
    name: str = "jsonrpc"
    convention: ProviderConvention = ProviderConvention.LEGACY
    timeout: float = Field(default=30.0, gt=0)


class TimeoutConfig(BaseModel):
    """Lifecycle monitor delays, in seconds."""

    tx_confirm_reminder: float = Field(default=20.0, gt=0)
    tx_stall: float = Field(default=30.0, gt=0)
    poll_for_receipt: float = Field(default=1.0, gt=0)
    tx_settle: float = Field(
        default=120.0,
        gt=0,
        description="How long a confirmed transaction waits for its second signal",
    )
    sign_confirm_reminder: float = Field(default=20.0, gt=0)


class WalletConfig(BaseModel):
    address: str = ""
    minimum_balance: int = Field(default=0, ge=0)
    assign_nonce: bool = Field(
        default=False,
        description="Put the inferred nonce into the params handed to the wallet",
    )


class NotificationConfig(BaseModel):
    webhook_url: str = ""
    webhook_token: str = ""
    buffer: int = Field(default=100, gt=0)


class MetricsConfig(BaseModel):
    enabled: bool = True


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping; a missing, empty or non-mapping file yields ``{}``."""
    p = Path(path)
    if not p.is_file():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _overlay(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *top* over *base*, returning a new dict."""
    merged = dict(base)
    for key, value in top.items():
        below = merged.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            merged[key] = _overlay(below, value)
        elif value is not None:
            merged[key] = value
    return merged


class AppConfig(BaseSettings):
    """Everything ``AssistEngine`` needs to run."""

    model_config = SettingsConfigDict(
        env_prefix="ASSIST_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    config_path: str = ""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _apply_yaml(cls, values: Any) -> Any:
        # *values* already holds init kwargs and env vars; YAML sits beneath them.
        if not isinstance(values, dict) or not values.get("config_path"):
            return values
        return _overlay(_load_yaml(values["config_path"]), values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        return cls(config_path=str(path))
