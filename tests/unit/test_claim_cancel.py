from __future__ import annotations

import asyncio

import pytest

from escrowmail.core.errors import (
    CustodyError,
    InvalidStateError,
    MissingWalletError,
    NotFoundError,
    UnauthorizedError,
)
from escrowmail.domain.transfer import TransferStatus

from tests.fakes import RECIPIENT, SENDER, STRANGER, T0, create_transfer


@pytest.mark.asyncio
async def test_claim_debits_escrow_to_claimant_wallet(service, store, custody, outbox, event_log):
    transfer = await create_transfer(service)
    await service.drain()

    tx_id = await service.claim(transfer.transfer_id, RECIPIENT)
    await service.drain()

    assert tx_id == "tx-debit-1"
    [movement] = custody.calls
    assert movement.kind == "debit"
    assert movement.destination == "0xbob"
    assert movement.amount == "10.00"
    assert movement.secret_handle == "secret-1"
    assert movement.idempotency_key == transfer.transfer_id

    stored = await store.get(transfer.transfer_id)
    assert stored.status is TransferStatus.CLAIMED
    assert stored.claimed_by_user_id == RECIPIENT
    assert stored.claimed_at == T0
    assert stored.resolution_transaction_id == tx_id

    assert outbox.kinds()[-1] == "claimed"
    assert outbox.sent[-1].to == "alice@example.com"
    assert event_log.types(transfer.transfer_id) == ["created", "claimed"]


@pytest.mark.asyncio
async def test_second_claim_is_rejected_without_moving_funds(service, custody):
    transfer = await create_transfer(service)
    await service.claim(transfer.transfer_id, RECIPIENT)

    with pytest.raises(InvalidStateError) as exc:
        await service.claim(transfer.transfer_id, RECIPIENT)

    assert exc.value.status == "claimed"
    assert "already claimed" in exc.value.message
    assert len(custody.calls) == 1


@pytest.mark.asyncio
async def test_claim_unknown_transfer(service):
    with pytest.raises(NotFoundError):
        await service.claim("pt_missing", RECIPIENT)


@pytest.mark.asyncio
async def test_claim_by_wrong_email_is_unauthorized(service, store, custody):
    transfer = await create_transfer(service)

    with pytest.raises(UnauthorizedError) as exc:
        await service.claim(transfer.transfer_id, STRANGER)

    assert "Email mismatch" in exc.value.message
    assert custody.calls == []
    assert (await store.get(transfer.transfer_id)).is_pending


@pytest.mark.asyncio
async def test_claim_by_unknown_user(service, custody):
    transfer = await create_transfer(service)
    with pytest.raises(NotFoundError):
        await service.claim(transfer.transfer_id, "u-ghost")
    assert custody.calls == []


@pytest.mark.asyncio
async def test_claim_without_wallet_on_chain(service, directory, custody):
    directory.register_user("u-dave", "dave@example.com", "Dave", wallets={"solana": "DaveSol"})
    transfer = await create_transfer(service, recipient_email="dave@example.com")

    with pytest.raises(MissingWalletError) as exc:
        await service.claim(transfer.transfer_id, "u-dave")

    assert "evm" in exc.value.message
    assert custody.calls == []


@pytest.mark.asyncio
async def test_claim_after_deadline_is_rejected_lazily(service, store, custody, clock):
    transfer = await create_transfer(service)
    clock.advance(days=7, seconds=1)

    with pytest.raises(InvalidStateError) as exc:
        await service.claim(transfer.transfer_id, RECIPIENT)

    assert exc.value.status == "expired"
    assert custody.calls == []
    # The sweeper owns the refund; the record is untouched.
    assert (await store.get(transfer.transfer_id)).is_pending


@pytest.mark.asyncio
async def test_claim_exactly_at_deadline_succeeds(service, clock):
    transfer = await create_transfer(service)
    clock.advance(days=7)
    assert await service.claim(transfer.transfer_id, RECIPIENT)


@pytest.mark.asyncio
async def test_custody_failure_leaves_transfer_claimable(service, store, custody, event_log):
    transfer = await create_transfer(service)
    custody.fail_movements = 1

    with pytest.raises(CustodyError):
        await service.claim(transfer.transfer_id, RECIPIENT)

    stored = await store.get(transfer.transfer_id)
    assert stored.is_pending
    assert stored.resolution_transaction_id is None
    assert "resolution_failed" in event_log.types(transfer.transfer_id)

    tx_id = await service.claim(transfer.transfer_id, RECIPIENT)
    assert tx_id
    assert (await store.get(transfer.transfer_id)).status is TransferStatus.CLAIMED


@pytest.mark.asyncio
async def test_concurrent_claims_move_funds_once(service, store, custody):
    transfer = await create_transfer(service)

    results = await asyncio.gather(
        service.claim(transfer.transfer_id, RECIPIENT),
        service.claim(transfer.transfer_id, RECIPIENT),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, str)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidStateError)
    assert len(custody.of("debit")) == 1
    assert (await store.get(transfer.transfer_id)).status is TransferStatus.CLAIMED


@pytest.mark.asyncio
async def test_claim_and_cancel_race_resolves_once(service, store, custody):
    transfer = await create_transfer(service)

    results = await asyncio.gather(
        service.cancel(transfer.transfer_id, SENDER),
        service.claim(transfer.transfer_id, RECIPIENT),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, str)) == 1
    assert len(custody.calls) == 1
    assert (await store.get(transfer.transfer_id)).status is TransferStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_refunds_sender_without_notification(service, store, custody, outbox, event_log):
    transfer = await create_transfer(service)
    await service.drain()
    sent_before = len(outbox.sent)

    tx_id = await service.cancel(transfer.transfer_id, SENDER)
    await service.drain()

    assert tx_id == "tx-refund-1"
    [movement] = custody.calls
    assert movement.kind == "refund"
    assert movement.destination == "0xalice"
    stored = await store.get(transfer.transfer_id)
    assert stored.status is TransferStatus.CANCELLED
    assert stored.claimed_by_user_id is None
    assert len(outbox.sent) == sent_before
    assert event_log.types(transfer.transfer_id)[-1] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_by_non_sender_is_unauthorized(service, store, custody):
    transfer = await create_transfer(service)

    with pytest.raises(UnauthorizedError):
        await service.cancel(transfer.transfer_id, RECIPIENT)

    assert custody.calls == []
    assert (await store.get(transfer.transfer_id)).is_pending


@pytest.mark.asyncio
async def test_cancel_after_claim(service, custody):
    transfer = await create_transfer(service)
    await service.claim(transfer.transfer_id, RECIPIENT)

    with pytest.raises(InvalidStateError) as exc:
        await service.cancel(transfer.transfer_id, SENDER)

    assert exc.value.message == "Transfer is already claimed"
    assert len(custody.calls) == 1


@pytest.mark.asyncio
async def test_cancel_without_sender_wallet(service, custody):
    transfer = await create_transfer(service, chain="tron")
    with pytest.raises(MissingWalletError):
        await service.cancel(transfer.transfer_id, SENDER)
    assert custody.calls == []


@pytest.mark.asyncio
async def test_listing_and_details(service):
    first = await create_transfer(service)
    second = await create_transfer(service, recipient_email="carol@example.com")
    await service.claim(first.transfer_id, RECIPIENT)

    by_sender = await service.list_by_sender(SENDER)
    assert [s.transfer_id for s in by_sender] == [second.transfer_id]
    assert await service.list_by_recipient("BOB@example.com") == []
    [summary] = await service.list_by_recipient("carol@example.com")
    assert summary.days_remaining == 7

    details = await service.get_details(first.transfer_id)
    assert details.status is TransferStatus.CLAIMED
    with pytest.raises(NotFoundError):
        await service.get_details("pt_missing")
