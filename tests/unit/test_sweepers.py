from __future__ import annotations

import logging

import pytest

from escrowmail.application.transfers import PendingTransferService
from escrowmail.core.errors import InvalidStateError
from escrowmail.domain.transfer import TransferStatus

from tests.fakes import RECIPIENT, SENDER, create_transfer


@pytest.mark.asyncio
async def test_expiry_sweep_refunds_sender_once(service, store, custody, outbox, clock, event_log):
    transfer = await create_transfer(service)
    await service.drain()
    clock.advance(days=7, seconds=1)

    assert await service.sweep_expired() == 1
    await service.drain()

    [movement] = custody.calls
    assert movement.kind == "refund"
    assert movement.destination == "0xalice"
    assert movement.idempotency_key == transfer.transfer_id
    assert (await store.get(transfer.transfer_id)).status is TransferStatus.EXPIRED
    assert outbox.kinds()[-1] == "expired"
    assert outbox.sent[-1].to == "alice@example.com"
    assert event_log.types(transfer.transfer_id)[-1] == "expired"

    assert await service.sweep_expired() == 0
    assert len(custody.calls) == 1


@pytest.mark.asyncio
async def test_expiry_sweep_skips_unexpired_and_resolved(service, store, custody, clock):
    claimed = await create_transfer(service)
    cancelled = await create_transfer(service)
    stale = await create_transfer(service)
    await service.claim(claimed.transfer_id, RECIPIENT)
    await service.cancel(cancelled.transfer_id, SENDER)
    clock.advance(days=1)
    fresh = await create_transfer(service)
    clock.advance(days=6, minutes=1)

    assert await service.sweep_expired() == 1

    assert len(custody.of("refund")) == 2
    assert (await store.get(stale.transfer_id)).status is TransferStatus.EXPIRED
    assert (await store.get(claimed.transfer_id)).status is TransferStatus.CLAIMED
    assert (await store.get(cancelled.transfer_id)).status is TransferStatus.CANCELLED
    assert (await store.get(fresh.transfer_id)).is_pending


@pytest.mark.asyncio
async def test_one_failed_refund_does_not_stop_the_batch(service, store, custody, clock):
    first = await create_transfer(service)
    second = await create_transfer(service)
    clock.advance(days=8)
    custody.fail_movements = 1

    assert await service.sweep_expired() == 1
    statuses = {(await store.get(t.transfer_id)).status for t in (first, second)}
    assert statuses == {TransferStatus.PENDING, TransferStatus.EXPIRED}

    # Next run picks up the leftover.
    assert await service.sweep_expired() == 1
    assert all([(await store.get(t.transfer_id)).status is TransferStatus.EXPIRED for t in (first, second)])


@pytest.mark.asyncio
async def test_stalled_reservation_is_reported_not_released(service, store, custody, clock, caplog):
    transfer = await create_transfer(service)
    await store.acquire_resolution(transfer.transfer_id, token="crashed", action="claim", now=clock())
    clock.advance(hours=1)

    with caplog.at_level(logging.WARNING):
        assert await service.sweep_expired() == 0

    assert "manual reconciliation" in caplog.text
    with pytest.raises(InvalidStateError) as exc:
        await service.claim(transfer.transfer_id, RECIPIENT)
    assert "being resolved" in exc.value.message
    assert custody.calls == []


@pytest.mark.asyncio
async def test_reminder_sent_once_inside_window(service, store, outbox, clock, event_log):
    transfer = await create_transfer(service)
    await service.drain()
    outbox.sent.clear()

    clock.advance(days=4)
    assert await service.sweep_reminders() == 0

    clock.advance(days=1, hours=1)
    assert await service.sweep_reminders() == 1
    [reminder] = outbox.sent
    assert reminder.kind.value == "expiring_reminder"
    assert reminder.to == "bob@example.com"
    assert reminder.context["hours_left"] == 47
    assert reminder.context["days_left"] == 2
    assert (await store.get(transfer.transfer_id)).reminder_sent_at == clock()
    assert event_log.types(transfer.transfer_id)[-1] == "reminder_sent"

    clock.advance(hours=6)
    assert await service.sweep_reminders() == 0
    assert len(outbox.sent) == 1


@pytest.mark.asyncio
async def test_reminders_skip_resolved_and_past_deadline(service, outbox, clock):
    claimed = await create_transfer(service)
    await create_transfer(service)
    await service.claim(claimed.transfer_id, RECIPIENT)
    await service.drain()
    outbox.sent.clear()

    clock.advance(days=7, hours=1)
    assert await service.sweep_reminders() == 0
    assert outbox.sent == []


class FlakyOutbox:
    def __init__(self):
        self.sent = []
        self.fail_next = True

    async def enqueue(self, notification):
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("redis down")
        self.sent.append(notification)

    async def close(self):
        return None


@pytest.mark.asyncio
async def test_reminder_retried_when_hand_off_fails(runtime, clock):

    flaky = FlakyOutbox()
    service = PendingTransferService(runtime)
    await create_transfer(service)
    await service.drain()
    runtime.outbox = flaky

    clock.advance(days=6)
    assert await service.sweep_reminders() == 0
    assert await service.sweep_reminders() == 1
    assert len(flaky.sent) == 1


class UnmarkableStore:
    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    async def mark_reminder_sent(self, transfer_id, *, now):
        raise RuntimeError("database locked")


@pytest.mark.asyncio
async def test_reminder_counted_when_mark_fails_after_queueing(runtime, outbox, clock, event_log, caplog):
    service = PendingTransferService(runtime)
    transfer = await create_transfer(service)
    await service.drain()
    runtime.store = UnmarkableStore(runtime.store)

    clock.advance(days=6)
    with caplog.at_level(logging.ERROR):
        assert await service.sweep_reminders() == 1

    reminders = [n for n in outbox.sent if n.kind.value == "expiring_reminder"]
    assert len(reminders) == 1
    assert event_log.types(transfer.transfer_id)[-1] == "reminder_sent"
    assert "queued but not marked sent" in caplog.text
