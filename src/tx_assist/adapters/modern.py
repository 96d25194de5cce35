"""Modern convention: send returns a handle that emits lifecycle events.

Handle events (``handle.on(event, cb)``) are forwarded as-is:

- ``transactionHash`` → ``on_hash``
- ``receipt`` → ``on_receipt``
- first ``confirmation`` → ``on_receipt`` (second receipt-equivalent signal)
- ``error`` → classified, then ``on_error``

A handle that never emits ``confirmation`` is watched until the dispatcher
cancels the submission.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from tx_assist.adapters.base import ProtocolAdapter, Submission, resolve
from tx_assist.adapters.errors import classify_send_error

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ModernAdapter(ProtocolAdapter):
    """Adapter for wallets whose send call returns an event emitter."""

    async def _run(
        self,
        submission: Submission,
        send: Callable[[dict[str, Any]], Any],
        params: dict[str, Any],
    ) -> None:
        try:
            handle = await resolve(send(params))
        except Exception as exc:
            logger.info("Wallet rejected submission: %s", exc)
            submission.emit_error(classify_send_error(exc))
            return

        done = asyncio.Event()
        last_receipt: dict[str, Any] = {}
        confirmed = False

        def _on_hash(tx_hash: str, *_: Any) -> None:
            submission.emit_hash(tx_hash)

        def _on_receipt(receipt: dict[str, Any], *_: Any) -> None:
            last_receipt.update(receipt or {})
            submission.emit_receipt(receipt)

        def _on_confirmation(
            _number: int = 0, receipt: dict[str, Any] | None = None, *_: Any
        ) -> None:
            nonlocal confirmed
            if confirmed:
                return
            confirmed = True
            submission.emit_receipt(receipt or dict(last_receipt))
            done.set()

        def _on_error(error: BaseException, *_: Any) -> None:
            submission.emit_error(classify_send_error(error))
            done.set()

        handle.on("transactionHash", _on_hash)
        handle.on("receipt", _on_receipt)
        handle.on("confirmation", _on_confirmation)
        handle.on("error", _on_error)

        await done.wait()
