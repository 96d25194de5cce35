"""Legacy convention: send resolves to a hash, the receipt is polled.

Flow for one submission:
1. ``await send(params)`` → hash (errors are classified and forwarded)
2. Poll ``provider.get_receipt(hash)`` every ``poll_interval`` until non-null
3. Forward the receipt (first receipt-equivalent signal)
4. Poll again one interval later; forward the receipt once more if it is
   still there (second signal), otherwise keep polling until it reappears or
   the dispatcher stops the watch
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tx_assist.adapters.base import ProtocolAdapter, Submission, resolve
from tx_assist.adapters.errors import classify_send_error
from tx_assist.errors.tx_errors import ProviderUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

    from tx_assist.monitor.timers import Scheduler
    from tx_assist.provider.base import Provider

logger = logging.getLogger(__name__)


class LegacyAdapter(ProtocolAdapter):
    """Adapter for wallets whose send call only returns a hash."""

    def __init__(self, provider: Provider, scheduler: Scheduler, *, poll_interval: float) -> None:
        super().__init__()
        self._provider = provider
        self._scheduler = scheduler
        self._poll_interval = poll_interval

    async def _run(
        self,
        submission: Submission,
        send: Callable[[dict[str, Any]], Any],
        params: dict[str, Any],
    ) -> None:
        try:
            tx_hash = await resolve(send(params))
        except Exception as exc:
            logger.info("Wallet rejected submission: %s", exc)
            submission.emit_error(classify_send_error(exc))
            return

        submission.emit_hash(tx_hash)

        try:
            receipt = await self.wait_for_receipt(tx_hash)
            submission.emit_receipt(receipt)
            await self._scheduler.sleep(self._poll_interval)
            receipt = await self.wait_for_receipt(tx_hash)
            submission.emit_receipt(receipt)
        except ProviderUnavailableError as exc:
            logger.warning("Receipt polling for %s failed: %s", tx_hash, exc.message)
            submission.emit_error(exc)

    async def wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        """Poll until the provider returns a receipt for *tx_hash*.

        Raises:
            ProviderUnavailableError: If a poll fails. Polls are not retried.
        """
        while True:
            receipt = await self._provider.get_receipt(tx_hash)
            if receipt is not None:
                return receipt
            await self._scheduler.sleep(self._poll_interval)
