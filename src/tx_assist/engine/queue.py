"""Transaction queue: authoritative in-memory store of in-flight records.

Lifecycle::

    awaitingApproval → approved → [pending → stalled] → confirmed → completed
                  ↘          ↘                    ↘
                   failed     failed               failed

Records are keyed by a locally generated id assigned at preflight, before any
network interaction. Status only moves forward along ``_TRANSITIONS`` and a
record may only leave the queue from a terminal state.
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tx_assist.errors.tx_errors import InvalidTransitionError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class TxStatus(enum.StrEnum):
    """Transaction lifecycle states."""

    AWAITING_APPROVAL = "awaitingApproval"
    APPROVED = "approved"
    PENDING = "pending"
    STALLED = "stalled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the record is done and may be removed."""
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({TxStatus.COMPLETED, TxStatus.FAILED})

# Sent or about to be sent, but not yet mined.
UNCONFIRMED_STATES = frozenset(
    {TxStatus.AWAITING_APPROVAL, TxStatus.APPROVED, TxStatus.PENDING, TxStatus.STALLED}
)

_TRANSITIONS: dict[TxStatus, frozenset[TxStatus]] = {
    TxStatus.AWAITING_APPROVAL: frozenset({TxStatus.APPROVED, TxStatus.FAILED}),
    TxStatus.APPROVED: frozenset(
        {TxStatus.PENDING, TxStatus.STALLED, TxStatus.CONFIRMED, TxStatus.FAILED}
    ),
    TxStatus.PENDING: frozenset({TxStatus.STALLED, TxStatus.CONFIRMED, TxStatus.FAILED}),
    TxStatus.STALLED: frozenset({TxStatus.CONFIRMED, TxStatus.FAILED}),
    TxStatus.CONFIRMED: frozenset({TxStatus.COMPLETED}),
    TxStatus.COMPLETED: frozenset(),
    TxStatus.FAILED: frozenset(),
}


def can_transition(current: TxStatus, new: TxStatus) -> bool:
    """Return True if *current* → *new* is a legal forward move."""
    return new in _TRANSITIONS[current]


@dataclass(frozen=True)
class ContractMeta:
    """Contract method being invoked, when the transaction is a contract call."""

    method_name: str
    parameters: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        # Lists and tuples of the same arguments compare equal.
        object.__setattr__(self, "parameters", tuple(self.parameters))

    def to_dict(self) -> dict[str, Any]:
        return {"methodName": self.method_name, "parameters": list(self.parameters)}


@dataclass
class TxParams:
    """Economic parameters of a transaction. Amounts are in the smallest unit."""

    to: str | None = None
    from_: str | None = None
    value: int = 0
    gas: int = 0
    gas_price: int = 0
    nonce: int | None = None
    hash: str | None = None

    def assign_nonce(self, nonce: int) -> None:
        """Set the nonce. A nonce is assigned at most once."""
        if self.nonce is not None and self.nonce != nonce:
            msg = f"nonce already assigned ({self.nonce}), refusing {nonce}"
            raise ValueError(msg)
        self.nonce = nonce

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used in event payloads."""
        return {
            "to": self.to,
            "from": self.from_,
            "value": str(self.value),
            "gas": str(self.gas),
            "gasPrice": str(self.gas_price),
            "nonce": self.nonce,
            "hash": self.hash,
        }


@dataclass
class TransactionRecord:
    """One in-flight transaction."""

    id: str
    params: TxParams
    category_code: str = "activeTransaction"
    status: TxStatus = TxStatus.AWAITING_APPROVAL
    start_time: float = field(default_factory=time.time)
    contract_meta: ContractMeta | None = None

    def snapshot(self) -> dict[str, Any]:
        """Return the ``transaction`` mapping carried in event payloads."""
        return {
            "id": self.id,
            "status": self.status.value,
            **self.params.to_dict(),
            "startTime": int(self.start_time * 1000),
        }


class TransactionQueue:
    """Ordered mapping of transaction id → record.

    The dispatcher is the only writer. Reads are free for everyone.
    """

    def __init__(self) -> None:
        self._records: dict[str, TransactionRecord] = {}
        self._issued: set[str] = set()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, tx_id: object) -> bool:
        return tx_id in self._records

    def __iter__(self) -> Iterator[TransactionRecord]:
        return iter(list(self._records.values()))

    def _new_id(self) -> str:
        tx_id = uuid.uuid4().hex
        while tx_id in self._issued:
            tx_id = uuid.uuid4().hex
        self._issued.add(tx_id)
        return tx_id

    def insert(
        self,
        params: TxParams,
        *,
        category_code: str = "activeTransaction",
        contract_meta: ContractMeta | None = None,
    ) -> TransactionRecord:
        """Create a record in ``awaitingApproval`` and return it."""
        record = TransactionRecord(
            id=self._new_id(),
            params=params,
            category_code=category_code,
            contract_meta=contract_meta,
        )
        self._records[record.id] = record
        logger.debug("Queued %s (%d in flight)", record.id, len(self._records))
        return record

    def get(self, tx_id: str) -> TransactionRecord | None:
        return self._records.get(tx_id)

    def find_by_hash(self, tx_hash: str) -> TransactionRecord | None:
        """Look up a record by its on-chain hash (case-insensitive)."""
        wanted = tx_hash.lower()
        for record in self._records.values():
            if record.params.hash and record.params.hash.lower() == wanted:
                return record
        return None

    def update(
        self,
        tx_id: str,
        *,
        status: TxStatus | None = None,
        hash: str | None = None,  # noqa: A002
    ) -> TransactionRecord:
        """Apply a forward status change and/or set the hash.

        Raises:
            KeyError: If *tx_id* is not queued.
            InvalidTransitionError: If the status move is not forward, or the
                hash would be overwritten with a different value.
        """
        record = self._records[tx_id]
        if status is not None and status != record.status:
            if not can_transition(record.status, status):
                msg = f"{tx_id}: illegal transition {record.status} → {status}"
                raise InvalidTransitionError(msg)
            logger.debug("%s: %s → %s", tx_id, record.status, status)
            record.status = status
        if hash is not None:
            if record.params.hash is not None and record.params.hash != hash:
                msg = f"{tx_id}: hash already set to {record.params.hash}"
                raise InvalidTransitionError(msg)
            record.params.hash = hash
        return record

    def remove(self, tx_id: str) -> TransactionRecord | None:
        """Drop a terminal record. Removing an unknown id is a no-op."""
        record = self._records.get(tx_id)
        if record is None:
            return None
        if not record.status.is_terminal:
            msg = f"{tx_id}: cannot remove record in non-terminal state {record.status}"
            raise InvalidTransitionError(msg)
        del self._records[tx_id]
        logger.debug("Dequeued %s as %s", tx_id, record.status)
        return record

    def records(self) -> list[TransactionRecord]:
        """Snapshot of all queued records in insertion order."""
        return list(self._records.values())

    def by_account(self, address: str) -> list[TransactionRecord]:
        """Records sent from *address* (case-insensitive)."""
        wanted = address.lower()
        return [
            r for r in self._records.values() if r.params.from_ and r.params.from_.lower() == wanted
        ]

    def awaiting_approval(self) -> list[TransactionRecord]:
        """Records still waiting on the wallet's signature prompt."""
        return [r for r in self._records.values() if r.status == TxStatus.AWAITING_APPROVAL]
