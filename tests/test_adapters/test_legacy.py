"""Tests for the legacy (hash then poll) adapter."""

from __future__ import annotations

from conftest import FakeProvider, LegacyWallet, tx_hash

from tx_assist.adapters.legacy import LegacyAdapter
from tx_assist.errors.tx_errors import ProviderUnavailableError, UnderpricedError


class Signals:
    """Collects every callback a submission makes, in order."""

    def __init__(self) -> None:
        self.log: list[tuple[str, object]] = []

    def attach(self, submission):
        return (
            submission.on_hash(lambda h: self.log.append(("hash", h)))
            .on_receipt(lambda r: self.log.append(("receipt", r)))
            .on_error(lambda e: self.log.append(("error", e)))
        )

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.log]


class TestLegacyAdapter:
    async def test_nothing_sent_before_start(self, clock) -> None:
        wallet = LegacyWallet()
        adapter = LegacyAdapter(FakeProvider(), clock, poll_interval=1.0)
        submission = adapter.submit(wallet.send, {"to": "0xb"})
        await clock.advance(0)
        assert wallet.sent == []
        assert adapter.active == 1
        submission.start()
        await clock.advance(0)
        assert wallet.sent == [{"to": "0xb"}]
        await adapter.aclose()

    async def test_hash_then_two_receipts(self, clock) -> None:
        provider = FakeProvider()
        adapter = LegacyAdapter(provider, clock, poll_interval=1.0)
        signals = Signals()
        signals.attach(adapter.submit(LegacyWallet().send, {"to": "0xb"})).start()

        await clock.advance(0)
        assert signals.log == [("hash", tx_hash(1))]

        await clock.advance(3)
        assert signals.kinds == ["hash"]
        assert provider.calls.count("get_receipt") == 4

        receipt = {"transactionHash": tx_hash(1)}
        provider.receipts[tx_hash(1)] = receipt
        await clock.advance(1)
        assert signals.log[-1] == ("receipt", receipt)

        await clock.advance(1)
        assert signals.kinds == ["hash", "receipt", "receipt"]
        assert adapter.active == 0

    async def test_second_signal_waits_for_receipt_to_reappear(self, clock) -> None:
        provider = FakeProvider()
        receipt = {"transactionHash": tx_hash(1)}
        provider.receipts[tx_hash(1)] = receipt
        adapter = LegacyAdapter(provider, clock, poll_interval=1.0)
        signals = Signals()
        signals.attach(adapter.submit(LegacyWallet().send, {})).start()

        await clock.advance(0)
        assert signals.kinds == ["hash", "receipt"]

        # Reorged out: the receipt disappears for a while.
        del provider.receipts[tx_hash(1)]
        await clock.advance(5)
        assert signals.kinds == ["hash", "receipt"]

        provider.receipts[tx_hash(1)] = receipt
        await clock.advance(1)
        assert signals.kinds == ["hash", "receipt", "receipt"]

    async def test_send_error_classified(self, clock) -> None:
        adapter = LegacyAdapter(FakeProvider(), clock, poll_interval=1.0)
        signals = Signals()
        wallet = LegacyWallet(RuntimeError("transaction underpriced"))
        signals.attach(adapter.submit(wallet.send, {})).start()

        await clock.advance(0)
        assert signals.kinds == ["error"]
        assert isinstance(signals.log[0][1], UnderpricedError)

    async def test_sync_send_function(self, clock) -> None:
        adapter = LegacyAdapter(FakeProvider(), clock, poll_interval=1.0)
        signals = Signals()
        signals.attach(adapter.submit(lambda params: "0xsync", {})).start()
        await clock.advance(0)
        assert signals.log[0] == ("hash", "0xsync")
        await adapter.aclose()

    async def test_poll_failure_reported(self, clock) -> None:
        provider = FakeProvider()
        provider.fail_on.add("get_receipt")
        adapter = LegacyAdapter(provider, clock, poll_interval=1.0)
        signals = Signals()
        signals.attach(adapter.submit(LegacyWallet().send, {})).start()

        await clock.advance(0)
        assert signals.kinds == ["hash", "error"]
        assert isinstance(signals.log[1][1], ProviderUnavailableError)

    async def test_failing_callback_does_not_stop_submission(self, clock) -> None:
        provider = FakeProvider()
        provider.receipts[tx_hash(1)] = {"transactionHash": tx_hash(1)}
        adapter = LegacyAdapter(provider, clock, poll_interval=1.0)
        signals = Signals()

        def explode(_h):
            raise RuntimeError("observer bug")

        submission = adapter.submit(LegacyWallet().send, {}).on_hash(explode)
        signals.attach(submission).start()
        await clock.advance(0)
        assert signals.kinds == ["hash", "receipt"]
        await adapter.aclose()

    async def test_aclose_cancels_polling(self, clock) -> None:
        adapter = LegacyAdapter(FakeProvider(), clock, poll_interval=1.0)
        submission = adapter.submit(LegacyWallet().send, {})
        submission.start()
        await clock.advance(0)
        assert adapter.active == 1

        await adapter.aclose()
        assert adapter.active == 0
        assert submission.task.cancelled()
