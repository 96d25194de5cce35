"""Error taxonomy for transaction orchestration."""

from __future__ import annotations

from tx_assist.errors.assist_errors import AssistError
from tx_assist.errors.tx_errors import (
    InsufficientFundsError,
    InvalidTransitionError,
    ProviderUnavailableError,
    RpcError,
    SignRejectedError,
    UnderpricedError,
    UserRejectionError,
    ValidationError,
)

__all__ = [
    "AssistError",
    "InsufficientFundsError",
    "InvalidTransitionError",
    "ProviderUnavailableError",
    "RpcError",
    "SignRejectedError",
    "UnderpricedError",
    "UserRejectionError",
    "ValidationError",
]
