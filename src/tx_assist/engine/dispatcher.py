"""Transaction dispatcher: preflight, submission and the lifecycle state machine.

The dispatcher is the only writer of the ``TransactionQueue``. For every
record it follows one rule: check the current state, mutate the queue, then
notify. Each of those steps runs without an ``await`` in between, so two
signals for the same record never interleave.

State machine::

    preflight ok        → awaitingApproval   (txRequest)
    hash                → approved           (txSent, stall timer armed)
    seen in mempool     → pending
    stall timer         → stalled            (txStall, advisory)
    first receipt       → confirmed          (txConfirmedClient, settle timer armed)
    second receipt      → completed          (removed)
    error once confirmed or settle timer
                        → completed          (removed, no event: already mined)
    wallet/provider err → failed             (txSendFail | txUnderpriced, removed)
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tx_assist.engine.balance import BalanceValidator
from tx_assist.engine.duplicates import DuplicateDetector
from tx_assist.engine.nonce import NonceEstimator
from tx_assist.engine.queue import TransactionRecord, TxParams, TxStatus
from tx_assist.errors.assist_errors import AssistError
from tx_assist.errors.tx_errors import InsufficientFundsError, ValidationError
from tx_assist.notifications.events import AssistEvent, CategoryCode, EventCode

if TYPE_CHECKING:
    from collections.abc import Callable

    from tx_assist.adapters.base import ProtocolAdapter, Submission
    from tx_assist.engine.queue import ContractMeta, TransactionQueue
    from tx_assist.engine.session import Session
    from tx_assist.metrics.collector import AssistMetrics
    from tx_assist.monitor.lifecycle import LifecycleMonitor
    from tx_assist.notifications.service import Notifier

logger = logging.getLogger(__name__)

_SENT_STATES = frozenset({TxStatus.APPROVED, TxStatus.PENDING, TxStatus.STALLED})
_STALLABLE_STATES = frozenset({TxStatus.APPROVED, TxStatus.PENDING})


def _to_int(value: Any) -> int:
    """Parse an amount given as int, decimal string or 0x-hex string."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


@dataclass
class DispatchResult:
    """Returned once preflight passes and the wallet has been asked to sign.

    ``tx_future`` resolves with the first receipt, or is rejected with the
    classified error if the wallet or provider fails.
    """

    tx_id: str
    tx_future: asyncio.Future[dict[str, Any]]

    async def wait(self) -> dict[str, Any]:
        """Wait for the first confirmation receipt."""
        return await self.tx_future


@dataclass
class _Flight:
    future: asyncio.Future[dict[str, Any]]
    callback: Callable[[BaseException | None, Any], None] | None = None
    submission: Submission | None = field(default=None, repr=False)


class TransactionDispatcher:
    """Runs preflight checks, submits, and drives each record to a terminal state."""

    def __init__(
        self,
        session: Session,
        queue: TransactionQueue,
        adapter: ProtocolAdapter,
        monitor: LifecycleMonitor,
        notifier: Notifier,
        *,
        balance: BalanceValidator | None = None,
        duplicates: DuplicateDetector | None = None,
        nonces: NonceEstimator | None = None,
        metrics: AssistMetrics | None = None,
    ) -> None:
        self._session = session
        self._queue = queue
        self._adapter = adapter
        self._monitor = monitor
        self._notifier = notifier
        self._balance = balance or BalanceValidator()
        self._duplicates = duplicates or DuplicateDetector(queue)
        self._nonces = nonces or NonceEstimator(session.provider, queue)
        self._metrics = metrics
        self._flights: dict[str, _Flight] = {}

    @property
    def queue(self) -> TransactionQueue:
        """Return the transaction queue."""
        return self._queue

    @property
    def session(self) -> Session:
        """Return the wallet session."""
        return self._session

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        category_code: str,
        tx_params: dict[str, Any],
        send: Callable[[dict[str, Any]], Any],
        callback: Callable[[BaseException | None, Any], None] | None = None,
        contract_meta: ContractMeta | None = None,
    ) -> DispatchResult:
        """Validate and submit a transaction.

        Args:
            category_code: Flow the transaction belongs to (``activeTransaction``
                or ``activeContract``).
            tx_params: ``to``, and optionally ``value``, ``gas``, ``gasPrice``,
                ``from``, in the smallest on-chain unit.
            send: Wallet send function, in the configured calling convention.
            callback: Optional error-first ``callback(error, result)``.
            contract_meta: Method name and parameters for contract calls.

        Returns:
            DispatchResult whose ``tx_future`` tracks the transaction.

        Raises:
            ValidationError: An amount is malformed or negative.
            InsufficientFundsError: Balance does not cover the total cost.
            ProviderUnavailableError: A preflight read failed.
        """
        params = dict(tx_params)
        try:
            with self._track_preflight():
                candidate = await self._preflight(params, contract_meta)
        except AssistError as exc:
            self._record_outcome("rejected")
            self._invoke(callback, exc, None)
            raise

        # No await from here on: check, insert and submit as one step.
        if self._duplicates.is_duplicate(candidate, contract_meta):
            self._emit_candidate(EventCode.TX_REPEAT, candidate, contract_meta)
        if self._queue.awaiting_approval():
            self._emit_candidate(EventCode.TX_AWAITING_APPROVAL, candidate, contract_meta)

        record = self._queue.insert(
            candidate,
            category_code=category_code,
            contract_meta=contract_meta,
        )
        self._sync_queue_size()
        tx_id = record.id

        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        future.add_done_callback(_retrieve_exception)
        flight = _Flight(future=future, callback=callback)
        self._flights[tx_id] = flight

        self._emit(record, EventCode.TX_REQUEST)
        self._monitor.arm_reminder(tx_id, self._on_reminder)

        if self._session.config.wallet.assign_nonce:
            params["nonce"] = candidate.nonce
        submission = (
            self._adapter.submit(send, params)
            .on_hash(functools.partial(self._on_hash, tx_id))
            .on_receipt(functools.partial(self._on_receipt, tx_id))
            .on_error(functools.partial(self._on_error, tx_id))
        )
        flight.submission = submission
        submission.start()
        return DispatchResult(tx_id=tx_id, tx_future=future)

    async def _preflight(
        self,
        params: dict[str, Any],
        contract_meta: ContractMeta | None,
    ) -> TxParams:
        """Resolve the account, price the transaction and infer its nonce.

        Mutates *params*: ``from`` is dropped, the wallet signs with its
        active account.
        """
        provider = self._session.provider
        address = params.pop("from", None) or await self._session.resolve_address()

        try:
            value = _to_int(params.get("value"))
            gas_price = _to_int(params.get("gasPrice"))
            gas = None if params.get("gas") is None else _to_int(params["gas"])
        except (TypeError, ValueError) as exc:
            msg = f"Malformed transaction amount: {exc}"
            raise ValidationError(msg, event_code=EventCode.TX_SEND_FAIL) from exc
        if min(value, gas_price, gas or 0) < 0:
            msg = "Transaction amounts must be non-negative"
            raise ValidationError(msg, event_code=EventCode.TX_SEND_FAIL)
        if gas is None:
            estimate_tx = {k: v for k, v in params.items() if v is not None}
            estimate_tx["from"] = address
            gas = await provider.estimate_gas(estimate_tx)

        balance = await provider.get_balance(address)
        self._session.account_balance = balance

        check = self._balance.check(balance, value, gas, gas_price)
        candidate = TxParams(
            to=params.get("to"),
            from_=address,
            value=value,
            gas=gas,
            gas_price=gas_price,
        )
        if not check.sufficient:
            logger.info(
                "Insufficient funds for %s: balance %d, total cost %d",
                address,
                balance,
                check.total_cost,
            )
            self._emit_candidate(EventCode.NSF_FAIL, candidate, contract_meta)
            raise InsufficientFundsError(total_cost=check.total_cost, balance=balance)

        candidate.assign_nonce(await self._nonces.infer(address))
        return candidate

    # ------------------------------------------------------------------
    # Live watch channel
    # ------------------------------------------------------------------

    def mark_in_pool(self, tx_hash: str) -> bool:
        """Record that *tx_hash* was seen in the mempool (approved → pending)."""
        record = self._queue.find_by_hash(tx_hash)
        if record is None or record.status != TxStatus.APPROVED:
            return False
        self._queue.update(record.id, status=TxStatus.PENDING)
        return True

    def confirm(self, tx_hash: str, receipt: dict[str, Any] | None = None) -> bool:
        """Deliver a receipt-equivalent signal from an external watch path."""
        record = self._queue.find_by_hash(tx_hash)
        if record is None:
            return False
        self._on_receipt(record.id, receipt or {"transactionHash": tx_hash})
        return True

    async def aclose(self) -> None:
        """Stop timers and receipt watches. Broadcasts are not withdrawn."""
        self._monitor.close()
        await self._adapter.aclose()

    # ------------------------------------------------------------------
    # Adapter callbacks
    # ------------------------------------------------------------------

    def _on_hash(self, tx_id: str, tx_hash: str) -> None:
        record = self._queue.get(tx_id)
        if record is None or record.status != TxStatus.AWAITING_APPROVAL:
            logger.debug("Ignoring hash %s for %s", tx_hash, tx_id)
            return

        self._monitor.cancel_reminder(tx_id)
        self._queue.update(tx_id, status=TxStatus.APPROVED, hash=tx_hash)
        self._emit(record, EventCode.TX_SENT)
        self._monitor.arm_stall(tx_id, self._on_stall)
        self._invoke(self._callback_for(tx_id), None, tx_hash)

    def _on_receipt(self, tx_id: str, receipt: dict[str, Any]) -> None:
        record = self._queue.get(tx_id)
        if record is None:
            logger.debug("Ignoring receipt for finished transaction %s", tx_id)
            return

        if record.status == TxStatus.AWAITING_APPROVAL:
            tx_hash = (receipt or {}).get("transactionHash")
            if not tx_hash:
                logger.debug("Ignoring receipt without hash for %s", tx_id)
                return
            self._on_hash(tx_id, tx_hash)

        if record.status in _SENT_STATES:
            self._monitor.cancel_stall(tx_id)
            self._queue.update(tx_id, status=TxStatus.CONFIRMED)
            self._emit(record, EventCode.TX_CONFIRMED_CLIENT)
            if self._metrics:
                self._metrics.observe_confirmation(time.time() - record.start_time)
            self._record_outcome("confirmed")
            flight = self._flights.get(tx_id)
            if flight and not flight.future.done():
                flight.future.set_result(receipt)
            self._invoke(self._callback_for(tx_id), None, receipt)
            self._monitor.arm_settle(tx_id, self._on_settle)
        elif record.status == TxStatus.CONFIRMED:
            self._complete(tx_id)

    def _on_error(self, tx_id: str, error: AssistError) -> None:
        record = self._queue.get(tx_id)
        if record is None or record.status == TxStatus.COMPLETED:
            logger.debug("Ignoring error for %s: %s", tx_id, error)
            return
        if record.status == TxStatus.CONFIRMED:
            # Mined already; the receipt stands.
            logger.warning(
                "Watch for confirmed %s ended with an error: %s", tx_id, error.message
            )
            self._complete(tx_id)
            return

        self._monitor.cancel_all(tx_id)
        self._queue.update(tx_id, status=TxStatus.FAILED)
        code = _event_code_for(error)
        logger.info("Transaction %s failed (%s): %s", tx_id, code, error.message)
        self._emit(record, code, reason=error.message)

        flight = self._finish(tx_id, "failed")
        if flight is not None:
            if not flight.future.done():
                flight.future.set_exception(error)
            self._invoke(flight.callback, error, None)

    # ------------------------------------------------------------------
    # Timer expirations
    # ------------------------------------------------------------------

    def _on_reminder(self, tx_id: str) -> None:
        record = self._queue.get(tx_id)
        if record is not None and record.status == TxStatus.AWAITING_APPROVAL:
            self._emit(record, EventCode.TX_CONFIRM_REMINDER)

    def _on_stall(self, tx_id: str) -> None:
        record = self._queue.get(tx_id)
        if record is None or record.status not in _STALLABLE_STATES:
            return
        if not self._session.socket_connected:
            logger.debug("Stall check for %s skipped: no live channel", tx_id)
            return
        self._queue.update(tx_id, status=TxStatus.STALLED)
        self._emit(record, EventCode.TX_STALL)

    def _on_settle(self, tx_id: str) -> None:
        record = self._queue.get(tx_id)
        if record is None or record.status != TxStatus.CONFIRMED:
            return
        logger.info("No second confirmation for %s, closing it out", tx_id)
        flight = self._complete(tx_id)
        if flight is not None and flight.submission is not None:
            flight.submission.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _complete(self, tx_id: str) -> _Flight | None:
        self._queue.update(tx_id, status=TxStatus.COMPLETED)
        return self._finish(tx_id, "completed")

    def _finish(self, tx_id: str, outcome: str) -> _Flight | None:
        self._monitor.cancel_all(tx_id)
        self._queue.remove(tx_id)
        self._sync_queue_size()
        self._record_outcome(outcome)
        return self._flights.pop(tx_id, None)

    def _callback_for(self, tx_id: str) -> Callable[[BaseException | None, Any], None] | None:
        flight = self._flights.get(tx_id)
        return flight.callback if flight else None

    def _emit(
        self, record: TransactionRecord, code: EventCode, *, reason: str | None = None
    ) -> None:
        self._publish(
            AssistEvent(
                event_code=code,
                category_code=record.category_code,
                transaction=record.snapshot(),
                wallet=self._session.wallet_snapshot(),
                contract=record.contract_meta.to_dict() if record.contract_meta else None,
                reason=reason,
            )
        )

    def _emit_candidate(
        self,
        code: EventCode,
        candidate: TxParams,
        contract_meta: ContractMeta | None,
    ) -> None:
        self._publish(
            AssistEvent(
                event_code=code,
                category_code=CategoryCode.ACTIVE_PREFLIGHT,
                transaction=candidate.to_dict(),
                wallet=self._session.wallet_snapshot(),
                contract=contract_meta.to_dict() if contract_meta else None,
            )
        )

    def _publish(self, event: AssistEvent) -> None:
        try:
            self._notifier.publish(event)
        except Exception:
            logger.exception("Notifier failed on %s", event.event_code)
        if self._metrics:
            self._metrics.record_event(event.event_code)

    def _record_outcome(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.record_outcome(outcome)

    def _sync_queue_size(self) -> None:
        if self._metrics:
            self._metrics.set_queue_size(len(self._queue))

    def _track_preflight(self) -> contextlib.AbstractContextManager[None]:
        if self._metrics:
            return self._metrics.track_preflight()
        return contextlib.nullcontext()

    @staticmethod
    def _invoke(
        callback: Callable[[BaseException | None, Any], None] | None,
        error: BaseException | None,
        result: Any,
    ) -> None:
        if callback is None:
            return
        try:
            callback(error, result)
        except Exception:
            logger.exception("Transaction callback raised")


def _retrieve_exception(future: asyncio.Future[Any]) -> None:
    # Callback-only callers never await tx_future.
    if not future.cancelled():
        future.exception()


def _event_code_for(error: AssistError) -> EventCode:
    try:
        return EventCode(error.event_code)
    except ValueError:
        return EventCode.TX_SEND_FAIL
