"""Nonce inference from the provider count plus locally queued transactions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tx_assist.engine.queue import UNCONFIRMED_STATES

if TYPE_CHECKING:
    from tx_assist.engine.queue import TransactionQueue
    from tx_assist.provider.base import Provider

logger = logging.getLogger(__name__)


class NonceEstimator:
    """Computes the next usable nonce for an account.

    The provider's transaction count lags behind transactions the user has
    queued locally but which are not mined yet, so every unconfirmed
    same-account record in the queue adds one.
    """

    def __init__(self, provider: Provider, queue: TransactionQueue) -> None:
        self._provider = provider
        self._queue = queue

    def queued_count(self, address: str) -> int:
        """Number of unconfirmed queued records sent from *address*."""
        return sum(1 for r in self._queue.by_account(address) if r.status in UNCONFIRMED_STATES)

    async def infer(self, address: str) -> int:
        """Return the next nonce for *address*.

        Raises:
            ProviderUnavailableError: If the provider count cannot be read.
        """
        on_chain = await self._provider.get_transaction_count(address)
        queued = self.queued_count(address)
        logger.debug("Nonce for %s: %d on chain + %d queued", address, on_chain, queued)
        return on_chain + queued
