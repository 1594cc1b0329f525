"""
Full local stack from configuration: SQLite store, simulated ledger,
in-process outbox and the logging mail gateway.
"""

from __future__ import annotations

import pytest

from escrowmail.application.ports.custody_port import CustodyPort
from escrowmail.application.ports.notification_port import NotificationGatewayPort
from escrowmail.application.transfers import TransferServicePort
from escrowmail.config import AppConfig
from escrowmail.core.di import Container, bootstrap_dependencies
from escrowmail.core.errors import InvalidStateError
from escrowmail.domain.transfer import TransferStatus

from tests.fakes import FakeClock, T0


@pytest.fixture
def stack(tmp_path):
    config = AppConfig(
        database={"url": f"sqlite:///{tmp_path / 'stack.db'}"},
        event_log={"backends": ["logging", "sqlalchemy"]},
        transfers={"app_url": "https://pay.example.com"},
        outbox={"base_delay_seconds": 0},
        directory={
            "users": [
                {"user_id": "u-alice", "email": "alice@example.com", "display_name": "Alice", "wallets": {"evm": "0xa"}},
                {"user_id": "u-bob", "email": "bob@example.com", "wallets": {"evm": "0xb"}},
            ]
        },
    )
    clock = FakeClock(T0)
    container = bootstrap_dependencies(config, Container(), clock=clock)
    return container, clock


@pytest.mark.asyncio
async def test_create_claim_and_notify(stack):
    container, _ = stack
    service = container.resolve(TransferServicePort)
    gateway = container.resolve(NotificationGatewayPort)
    ledger = container.resolve(CustodyPort)
    try:
        transfer = await service.create("u-alice", "Bob@Example.com", "12.5", "USDC", "0xusdc", "evm", 6, "hi")
        await service.drain()

        [summary] = await service.list_by_recipient("bob@example.com")
        assert summary.sender_name == "Alice"

        tx_id = await service.claim(transfer.transfer_id, "u-bob")
        await service.drain()

        stored = await service.get_details(transfer.transfer_id)
        assert stored.status is TransferStatus.CLAIMED
        assert stored.resolution_transaction_id == tx_id
        assert [m.destination for m in ledger.movements] == ["0xb"]

        subjects = [e.subject for e in gateway.sent]
        assert "You received 12.5 USDC from Alice!" in subjects
        assert "Transfer pending for bob@example.com" in subjects
        assert "bob@example.com claimed your 12.5 USDC" in subjects

        with pytest.raises(InvalidStateError):
            await service.cancel(transfer.transfer_id, "u-alice")
        assert len(ledger.movements) == 1

        events = [e["type"] for e in service.runtime.event_log.stream(transfer.transfer_id)]
        assert events[0] == "created"
        assert "claimed" in events
        assert "notification_sent" in events
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_expiry_and_reminder_sweeps(stack):
    container, clock = stack
    service = container.resolve(TransferServicePort)
    gateway = container.resolve(NotificationGatewayPort)
    ledger = container.resolve(CustodyPort)
    try:
        transfer = await service.create("u-alice", "bob@example.com", "1", "USDC", "0xusdc", "evm", 6)
        await service.drain()

        clock.advance(days=6)
        assert await service.sweep_reminders() == 1
        assert await service.sweep_reminders() == 0

        clock.advance(days=1, seconds=1)
        assert await service.sweep_expired() == 1
        await service.drain()

        assert (await service.get_details(transfer.transfer_id)).status is TransferStatus.EXPIRED
        assert [(m.kind, m.destination) for m in ledger.movements] == [("refund", "0xa")]
        recipients = {(e.to, e.subject.split(":")[0]) for e in gateway.sent}
        assert ("bob@example.com", "Reminder") in recipients
        assert ("alice@example.com", "Unclaimed transfer returned") in recipients
    finally:
        await service.close()
