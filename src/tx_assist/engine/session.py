"""Session: explicit per-wallet context threaded through every component."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tx_assist.errors.tx_errors import ProviderUnavailableError
from tx_assist.notifications.events import WalletSnapshot

if TYPE_CHECKING:
    from tx_assist.config.settings import AppConfig
    from tx_assist.provider.base import Provider

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """State of the connected wallet and live watch channel.

    Attributes:
        config: Application configuration.
        provider: Read-side provider.
        account_address: Active account, resolved lazily from the provider.
        account_balance: Last balance read during preflight.
        socket_connected: Whether a live notification channel is connected.
            Stall detection only fires while it is.
    """

    config: AppConfig
    provider: Provider
    account_address: str | None = None
    account_balance: int | None = None
    socket_connected: bool = False

    def __post_init__(self) -> None:
        if self.account_address is None and self.config.wallet.address:
            self.account_address = self.config.wallet.address

    async def resolve_address(self) -> str:
        """Return the active account, asking the provider if unknown.

        Raises:
            ProviderUnavailableError: If the provider exposes no accounts.
        """
        if self.account_address:
            return self.account_address
        accounts = await self.provider.get_accounts()
        if not accounts:
            msg = "Provider exposes no accounts"
            raise ProviderUnavailableError(msg, operation="get_accounts")
        self.account_address = accounts[0]
        logger.debug("Active account resolved to %s", self.account_address)
        return self.account_address

    def wallet_snapshot(self) -> WalletSnapshot:
        return WalletSnapshot(
            provider=self.provider.name,
            address=self.account_address,
            balance=self.account_balance,
            minimum=self.config.wallet.minimum_balance,
        )
