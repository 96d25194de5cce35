"""Provider abstraction: the on-chain reads the orchestrator needs."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Provider(Protocol):
    """Read side of a wallet provider.

    Every method is a suspension point. Implementations raise
    ``ProviderUnavailableError`` when a read cannot be served.
    """

    name: str

    async def get_accounts(self) -> list[str]: ...

    async def get_balance(self, address: str) -> int: ...

    async def get_transaction_count(self, address: str) -> int: ...

    async def estimate_gas(self, tx: dict[str, Any]) -> int: ...

    async def get_receipt(self, tx_hash: str) -> dict[str, Any] | None: ...
