"""Tests for the modern (event-emitting handle) adapter."""

from __future__ import annotations

import pytest
from conftest import FakeTxHandle, ModernWallet

from tx_assist.adapters import create_adapter
from tx_assist.adapters.legacy import LegacyAdapter
from tx_assist.adapters.modern import ModernAdapter
from tx_assist.config.settings import AppConfig, ProviderConfig, ProviderConvention
from tx_assist.errors.tx_errors import UnderpricedError, UserRejectionError


@pytest.fixture
async def adapter():
    modern = ModernAdapter()
    yield modern
    await modern.aclose()


def _attach(submission, log: list):
    return (
        submission.on_hash(lambda h: log.append(("hash", h)))
        .on_receipt(lambda r: log.append(("receipt", r)))
        .on_error(lambda e: log.append(("error", e)))
    )


class TestModernAdapter:
    async def test_forwards_hash_and_receipt(self, adapter, clock) -> None:
        wallet = ModernWallet()
        log: list = []
        _attach(adapter.submit(wallet.send, {"to": "0xb"}), log).start()
        await clock.advance(0)
        handle = wallet.handles[0]

        handle.emit("transactionHash", "0xabc")
        handle.emit("receipt", {"transactionHash": "0xabc", "status": True})
        assert log == [
            ("hash", "0xabc"),
            ("receipt", {"transactionHash": "0xabc", "status": True}),
        ]
        assert adapter.active == 1

    async def test_first_confirmation_is_second_signal(self, adapter, clock) -> None:
        wallet = ModernWallet()
        log: list = []
        _attach(adapter.submit(wallet.send, {}), log).start()
        await clock.advance(0)
        handle = wallet.handles[0]

        handle.emit("receipt", {"transactionHash": "0xabc"})
        handle.emit("confirmation", 1, {"transactionHash": "0xabc", "confirmations": 1})
        handle.emit("confirmation", 2, {"transactionHash": "0xabc", "confirmations": 2})
        await clock.advance(0)

        assert [kind for kind, _ in log] == ["receipt", "receipt"]
        assert log[1][1]["confirmations"] == 1
        assert adapter.active == 0

    async def test_confirmation_without_receipt_uses_last(self, adapter, clock) -> None:
        wallet = ModernWallet()
        log: list = []
        _attach(adapter.submit(wallet.send, {}), log).start()
        await clock.advance(0)
        handle = wallet.handles[0]

        handle.emit("receipt", {"transactionHash": "0xabc"})
        handle.emit("confirmation", 1)
        assert log[-1] == ("receipt", {"transactionHash": "0xabc"})

    async def test_error_event_classified(self, adapter, clock) -> None:
        wallet = ModernWallet()
        log: list = []
        _attach(adapter.submit(wallet.send, {}), log).start()
        await clock.advance(0)

        wallet.handles[0].emit("error", RuntimeError("transaction underpriced"))
        await clock.advance(0)
        assert isinstance(log[0][1], UnderpricedError)
        assert adapter.active == 0

    async def test_send_raising_classified(self, adapter, clock) -> None:
        def send(params):
            raise RuntimeError("User denied transaction signature")

        log: list = []
        _attach(adapter.submit(send, {}), log).start()
        await clock.advance(0)
        assert isinstance(log[0][1], UserRejectionError)

    async def test_awaitable_send_resolved(self, adapter, clock) -> None:
        handle = FakeTxHandle()

        async def send(params):
            return handle

        log: list = []
        _attach(adapter.submit(send, {}), log).start()
        await clock.advance(0)
        handle.emit("transactionHash", "0x1")
        assert log == [("hash", "0x1")]


class TestCreateAdapter:
    def test_legacy_default(self, provider, clock) -> None:
        adapter = create_adapter(AppConfig(), provider, clock)
        assert isinstance(adapter, LegacyAdapter)

    def test_modern(self, provider, clock) -> None:
        config = AppConfig(provider=ProviderConfig(convention=ProviderConvention.MODERN))
        assert isinstance(create_adapter(config, provider, clock), ModernAdapter)
