"""Duplicate detection against queued, non-terminal transactions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tx_assist.engine.queue import ContractMeta, TransactionQueue, TxParams


def _same_address(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return a is b
    return a.lower() == b.lower()


class DuplicateDetector:
    """Flags a candidate that economically repeats a queued transaction.

    Exact match on ``to`` and ``value``, plus method name and parameters for
    contract calls. A match is advisory: resubmitting with a higher gas price
    is a legitimate thing to do.
    """

    def __init__(self, queue: TransactionQueue) -> None:
        self._queue = queue

    def is_duplicate(self, candidate: TxParams, contract_meta: ContractMeta | None = None) -> bool:
        for record in self._queue.records():
            if record.status.is_terminal:
                continue
            if not _same_address(record.params.to, candidate.to):
                continue
            if record.params.value != candidate.value:
                continue
            if record.contract_meta != contract_meta:
                continue
            return True
        return False
