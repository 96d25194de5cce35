"""tx-assist: transaction lifecycle orchestration for wallet-signed transactions."""

from __future__ import annotations

__version__ = "0.1.0"
