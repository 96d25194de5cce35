"""Event types for lifecycle notifications.

- ``EventCode``: closed set of lifecycle event codes
- ``CategoryCode``: which flow emitted the event
- ``WalletSnapshot``: account state attached to every event
- ``AssistEvent``: the payload handed to the notifier
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class EventCode(enum.StrEnum):
    """Lifecycle event codes."""

    TX_REQUEST = "txRequest"
    TX_SENT = "txSent"
    TX_CONFIRMED_CLIENT = "txConfirmedClient"
    TX_SEND_FAIL = "txSendFail"
    TX_UNDERPRICED = "txUnderpriced"
    NSF_FAIL = "nsfFail"
    TX_REPEAT = "txRepeat"
    TX_AWAITING_APPROVAL = "txAwaitingApproval"
    TX_CONFIRM_REMINDER = "txConfirmReminder"
    TX_STALL = "txStall"
    SIGN_REQUEST = "signRequest"
    SIGN_CONFIRM_REMINDER = "signConfirmReminder"
    SIGN_CONFIRM = "signConfirm"
    SIGN_REJECT = "signReject"

    @property
    def is_advisory(self) -> bool:
        """Advisory events never alter control flow."""
        return self in _ADVISORY


_ADVISORY = frozenset(
    {
        EventCode.TX_REPEAT,
        EventCode.TX_AWAITING_APPROVAL,
        EventCode.TX_CONFIRM_REMINDER,
        EventCode.TX_STALL,
        EventCode.SIGN_CONFIRM_REMINDER,
    }
)


class CategoryCode(enum.StrEnum):
    """Flow that produced an event."""

    ACTIVE_PREFLIGHT = "activePreflight"
    ACTIVE_TRANSACTION = "activeTransaction"
    ACTIVE_CONTRACT = "activeContract"
    ACTIVE_SIGN = "activeSign"


@dataclass(frozen=True)
class WalletSnapshot:
    """Account state at the time an event was emitted."""

    provider: str = ""
    address: str | None = None
    balance: int | None = None
    minimum: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "address": self.address,
            "balance": None if self.balance is None else str(self.balance),
            "minimum": str(self.minimum),
        }


@dataclass(frozen=True)
class AssistEvent:
    """Notification payload sent to the observer."""

    event_code: EventCode
    category_code: str
    transaction: dict[str, Any] = field(default_factory=dict)
    wallet: WalletSnapshot = field(default_factory=WalletSnapshot)
    contract: dict[str, Any] | None = None
    reason: str | None = None
    message_to_sign: str | None = None
    result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase payload mapping."""
        payload: dict[str, Any] = {
            "eventCode": self.event_code.value,
            "categoryCode": str(self.category_code),
            "transaction": dict(self.transaction),
            "wallet": self.wallet.to_dict(),
        }
        if self.contract is not None:
            payload["contract"] = dict(self.contract)
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.message_to_sign is not None:
            payload["messageToSign"] = self.message_to_sign
        if self.result is not None:
            payload["result"] = self.result
        return payload
