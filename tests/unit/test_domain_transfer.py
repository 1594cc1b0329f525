from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from escrowmail.domain.transfer import (
    EXPIRY_WINDOW,
    PendingTransfer,
    TransferStatus,
    TransferSummary,
    new_transfer_id,
    normalize_email,
)

from tests.fakes import T0


def _transfer(**overrides) -> PendingTransfer:
    fields = dict(
        transfer_id="pt_1",
        recipient_email="  Bob@Example.COM ",
        sender_user_id="u-alice",
        amount="10.00",
        token="USDC",
        token_address="0xusdc",
        chain="evm",
        decimals=6,
        escrow_address="0xescrow",
        escrow_secret="super-secret",
        deposit_transaction_id="deposit:pt_1:pending",
        created_at=T0,
    )
    fields.update(overrides)
    return PendingTransfer.open(**fields)


def test_open_sets_fixed_expiry_and_normalizes_email():
    t = _transfer()
    assert t.expires_at - t.created_at == EXPIRY_WINDOW == timedelta(days=7)
    assert t.recipient_email == "bob@example.com"
    assert t.status is TransferStatus.PENDING
    assert t.is_pending


def test_new_transfer_id_is_unique_and_prefixed():
    a, b = new_transfer_id(), new_transfer_id()
    assert a != b
    assert a.startswith("pt_") and len(a) == 3 + 32


def test_normalize_email():
    assert normalize_email("  A@B.Com ") == "a@b.com"
    assert normalize_email(None) == ""


def test_naive_timestamps_are_treated_as_utc():
    t = _transfer(created_at=datetime(2026, 3, 1, 12, 0))
    assert t.created_at.tzinfo is not None
    assert t.created_at == T0


def test_expiry_is_strictly_after_deadline():
    t = _transfer()
    assert not t.is_expired(t.expires_at)
    assert t.is_expired(t.expires_at + timedelta(seconds=1))


@pytest.mark.parametrize(
    "elapsed, days",
    [
        (timedelta(0), 7),
        (timedelta(days=6, hours=1), 1),
        (timedelta(days=6, hours=23, minutes=59), 1),
        (timedelta(days=7), 0),
        (timedelta(days=9), 0),
    ],
)
def test_days_remaining(elapsed, days):
    t = _transfer()
    assert t.days_remaining(T0 + elapsed) == days


def test_hours_remaining_rounds_up():
    t = _transfer()
    assert t.hours_remaining(t.expires_at - timedelta(hours=47, minutes=30)) == 48
    assert t.hours_remaining(t.expires_at + timedelta(hours=1)) == 0


def test_to_dict_hides_secret_by_default():
    t = _transfer()
    assert "escrow_secret" not in t.to_dict()
    assert t.to_dict(include_secret=True)["escrow_secret"] == "super-secret"
    assert "super-secret" not in repr(t)


def test_dict_round_trip_without_secret():
    t = _transfer(message="hi")
    restored = PendingTransfer.from_dict(t.to_dict())
    assert restored.transfer_id == t.transfer_id
    assert restored.expires_at == t.expires_at
    assert restored.message == "hi"
    assert restored.escrow_secret == ""


def test_summary_sender_name_fallbacks():
    t = _transfer()
    assert t.summary(T0).sender_name == "u-alice"
    assert t.with_sender_profile("alice@example.com", "").summary(T0).sender_name == "alice@example.com"
    assert t.with_sender_profile("alice@example.com", "Alice").summary(T0).sender_name == "Alice"


def test_summary_to_dict_and_back():
    summary = _transfer().summary(T0 + timedelta(days=2))
    data = summary.to_dict()
    assert data["days_remaining"] == 5
    assert data["status"] == "pending"
    assert TransferSummary.from_dict(data) == summary


def test_empty_transfer_id_rejected():
    with pytest.raises(ValueError):
        _transfer(transfer_id="")


def test_terminal_statuses():
    assert not TransferStatus.PENDING.is_terminal
    assert all(s.is_terminal for s in (TransferStatus.CLAIMED, TransferStatus.CANCELLED, TransferStatus.EXPIRED))
