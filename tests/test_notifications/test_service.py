"""Tests for the notification fan-out service."""

from __future__ import annotations

import asyncio

from tx_assist.notifications.events import AssistEvent, CategoryCode, EventCode
from tx_assist.notifications.service import NotificationService


def _event(code: EventCode = EventCode.TX_SENT) -> AssistEvent:
    return AssistEvent(code, CategoryCode.ACTIVE_TRANSACTION, {"id": "abc"})


class TestNotificationService:
    async def test_start_stop(self) -> None:
        svc = NotificationService()
        assert not svc.is_running
        await svc.start()
        assert svc.is_running
        await svc.stop()
        assert not svc.is_running

    async def test_stop_idempotent(self) -> None:
        svc = NotificationService()
        await svc.stop()
        await svc.start()
        await svc.stop()
        await svc.stop()

    async def test_fan_out_to_subscribers(self) -> None:
        svc = NotificationService()
        a = svc.add_subscriber("a")
        b = svc.add_subscriber("b")
        await svc.start()

        svc.publish(_event())
        got_a = await asyncio.wait_for(a.get(), timeout=2.0)
        got_b = await asyncio.wait_for(b.get(), timeout=2.0)
        assert got_a.event_code == EventCode.TX_SENT
        assert got_a is got_b
        await svc.stop()

    async def test_sinks_receive_events(self) -> None:
        svc = NotificationService()
        received: list[AssistEvent] = []
        done = asyncio.Event()

        def sink(event: AssistEvent) -> None:
            received.append(event)
            done.set()

        svc.add_sink("sink", sink)
        await svc.start()
        svc.publish(_event(EventCode.TX_STALL))
        await asyncio.wait_for(done.wait(), timeout=2.0)
        assert received[0].event_code == EventCode.TX_STALL
        await svc.stop()

    async def test_failing_sink_does_not_block_subscribers(self) -> None:
        svc = NotificationService()

        def broken(event: AssistEvent) -> None:
            raise RuntimeError("sink down")

        svc.add_sink("broken", broken)
        q = svc.add_subscriber("ui")
        await svc.start()
        svc.publish(_event())
        svc.publish(_event(EventCode.TX_CONFIRMED_CLIENT))
        first = await asyncio.wait_for(q.get(), timeout=2.0)
        second = await asyncio.wait_for(q.get(), timeout=2.0)
        assert [first.event_code, second.event_code] == ["txSent", "txConfirmedClient"]
        await svc.stop()

    async def test_remove_subscriber(self) -> None:
        svc = NotificationService()
        q = svc.add_subscriber("ui")
        svc.remove_subscriber("ui")
        svc.remove_subscriber("missing")  # Should not raise
        await svc.start()
        svc.publish(_event())
        await asyncio.sleep(0.05)
        assert q.empty()
        await svc.stop()

    async def test_publish_never_blocks_when_full(self) -> None:  # noqa: ASYNC910
        svc = NotificationService(buffer=2)
        for _ in range(5):
            svc.publish(_event())  # extra events are dropped with a warning

    async def test_full_subscriber_drops(self) -> None:
        svc = NotificationService()
        q = svc.add_subscriber("slow", buffer=1)
        other = svc.add_subscriber("fast")
        await svc.start()
        for _ in range(3):
            svc.publish(_event())
        for _ in range(3):
            await asyncio.wait_for(other.get(), timeout=2.0)
        assert q.qsize() == 1
        await svc.stop()

    async def test_subscriber_code_filter(self) -> None:
        svc = NotificationService()
        stalls = svc.add_subscriber("stalls", codes=[EventCode.TX_STALL])
        everything = svc.add_subscriber("all")
        await svc.start()
        svc.publish(_event(EventCode.TX_SENT))
        svc.publish(_event(EventCode.TX_STALL))
        for _ in range(2):
            await asyncio.wait_for(everything.get(), timeout=2.0)
        got = await asyncio.wait_for(stalls.get(), timeout=2.0)
        assert got.event_code == EventCode.TX_STALL
        assert stalls.empty()
        await svc.stop()
