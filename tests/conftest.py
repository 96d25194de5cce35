"""Shared test fixtures for the tx-assist test suite."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

import pytest

from tx_assist.errors.tx_errors import ProviderUnavailableError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from tx_assist.engine.dispatcher import TransactionDispatcher
    from tx_assist.engine.queue import TransactionQueue
    from tx_assist.notifications.events import AssistEvent

ACCOUNT = "0x00000000000000000000000000000000000000a1"
RECIPIENT = "0x00000000000000000000000000000000000000b2"


def tx_hash(n: int) -> str:
    """Deterministic 32-byte hash for the n-th wallet submission."""
    return f"0x{n:064x}"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeProvider:
    """In-memory provider. Operations listed in ``fail_on`` raise."""

    name = "fake"

    def __init__(self, *, balance: int = 10**18, tx_count: int = 0, gas: int = 21_000) -> None:
        self.accounts = [ACCOUNT]
        self.balance = balance
        self.tx_count = tx_count
        self.gas = gas
        self.receipts: dict[str, dict[str, Any]] = {}
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            msg = f"{op} failed"
            raise ProviderUnavailableError(msg, operation=op)

    async def get_accounts(self) -> list[str]:
        self._enter("get_accounts")
        return list(self.accounts)

    async def get_balance(self, address: str) -> int:
        self._enter("get_balance")
        return self.balance

    async def get_transaction_count(self, address: str) -> int:
        self._enter("get_transaction_count")
        return self.tx_count

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        self._enter("estimate_gas")
        return self.gas

    async def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        self._enter("get_receipt")
        return self.receipts.get(tx_hash)


class RecordingNotifier:
    """Notifier that records events and the queue status seen at publish time."""

    def __init__(self, queue: TransactionQueue | None = None) -> None:
        self.queue = queue
        self.events: list[AssistEvent] = []
        self.seen_status: list[str | None] = []

    def publish(self, event: AssistEvent) -> None:
        self.events.append(event)
        record = None
        if self.queue is not None and "id" in event.transaction:
            record = self.queue.get(event.transaction["id"])
        self.seen_status.append(None if record is None else record.status.value)

    @property
    def codes(self) -> list[str]:
        return [e.event_code.value for e in self.events]


class LegacyWallet:
    """Send function resolving to a hash, or raising ``error``."""

    def __init__(self, error: BaseException | None = None) -> None:
        self.error = error
        self.sent: list[dict[str, Any]] = []

    async def send(self, params: dict[str, Any]) -> str:
        self.sent.append(params)
        if self.error is not None:
            raise self.error
        return tx_hash(len(self.sent))


class FakeTxHandle:
    """Event-emitting handle returned by a modern wallet."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., None]]] = defaultdict(list)

    def on(self, event: str, cb: Callable[..., None]) -> FakeTxHandle:
        self._handlers[event].append(cb)
        return self

    def emit(self, event: str, *args: Any) -> None:
        for cb in list(self._handlers[event]):
            cb(*args)


class ModernWallet:
    """Send function returning a ``FakeTxHandle`` per submission."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.handles: list[FakeTxHandle] = []

    def send(self, params: dict[str, Any]) -> FakeTxHandle:
        self.sent.append(params)
        handle = FakeTxHandle()
        self.handles.append(handle)
        return handle


class CallbackRecorder:
    """Error-first callback that records each invocation."""

    def __init__(self) -> None:
        self.calls: list[tuple[BaseException | None, Any]] = []

    def __call__(self, error: BaseException | None, result: Any) -> None:
        self.calls.append((error, result))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app_config():
    """Provide a test AppConfig with safe defaults."""
    from tx_assist.config.settings import AppConfig, ProviderConfig, TimeoutConfig

    return AppConfig(
        debug=True,
        provider=ProviderConfig(url="http://node.test", name="fake"),
        timeouts=TimeoutConfig(tx_confirm_reminder=20.0, tx_stall=30.0, poll_for_receipt=1.0),
    )


@pytest.fixture
def clock():
    from tx_assist.monitor.timers import ManualScheduler

    return ManualScheduler()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def queue():
    from tx_assist.engine.queue import TransactionQueue

    return TransactionQueue()


@pytest.fixture
def notifier(queue) -> RecordingNotifier:
    return RecordingNotifier(queue)


@pytest.fixture
async def build_dispatcher(
    app_config, provider, queue, notifier, clock
) -> AsyncIterator[Callable[..., TransactionDispatcher]]:
    """Factory for dispatchers sharing the fixtures above.

    ``build_dispatcher()`` uses the legacy adapter, ``build_dispatcher(modern=True)``
    the modern one. Every dispatcher built is closed at teardown.
    """
    from tx_assist.adapters.legacy import LegacyAdapter
    from tx_assist.adapters.modern import ModernAdapter
    from tx_assist.engine.dispatcher import TransactionDispatcher
    from tx_assist.engine.session import Session
    from tx_assist.monitor.lifecycle import LifecycleMonitor

    built: list[TransactionDispatcher] = []

    def _build(*, modern: bool = False, socket_connected: bool = False, metrics=None):
        session = Session(config=app_config, provider=provider, socket_connected=socket_connected)
        if modern:
            adapter = ModernAdapter()
        else:
            adapter = LegacyAdapter(
                provider, clock, poll_interval=app_config.timeouts.poll_for_receipt
            )
        dispatcher = TransactionDispatcher(
            session,
            queue,
            adapter,
            LifecycleMonitor(clock, app_config.timeouts),
            notifier,
            metrics=metrics,
        )
        built.append(dispatcher)
        return dispatcher

    yield _build
    for dispatcher in built:
        await dispatcher.aclose()
