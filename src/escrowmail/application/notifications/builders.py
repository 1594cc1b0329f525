"""
Build notifications from transfer records.

Only display fields go into the context; escrow details never leave the core.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict

from escrowmail.domain.transfer import EXPIRY_WINDOW, PendingTransfer

from .messages import Notification, NotificationKind


def claim_url(app_url: str, transfer_id: str) -> str:
    return f"{app_url.rstrip('/')}/claim/{transfer_id}"


def _base_context(transfer: PendingTransfer) -> Dict[str, Any]:
    return {
        "amount": transfer.amount,
        "token": transfer.token,
        "chain": transfer.chain,
        "recipient_email": transfer.recipient_email,
        "sender_name": transfer.display_sender(),
        "sender_email": transfer.sender_email,
    }


def invite(transfer: PendingTransfer, *, app_url: str) -> Notification:
    ctx = _base_context(transfer)
    ctx.update(
        {
            "claim_url": claim_url(app_url, transfer.transfer_id),
            "message": transfer.message or "",
            "expires_at": transfer.expires_at.isoformat(),
            "expiry_days": EXPIRY_WINDOW.days,
        }
    )
    return Notification(NotificationKind.INVITE, transfer.recipient_email, transfer.transfer_id, ctx)


def sender_confirmation(transfer: PendingTransfer, *, app_url: str) -> Notification:
    ctx = _base_context(transfer)
    ctx.update({"status": "pending", "expiry_days": EXPIRY_WINDOW.days, "history_url": f"{app_url.rstrip('/')}/history"})
    return Notification(NotificationKind.SENDER_CONFIRMATION, transfer.sender_email, transfer.transfer_id, ctx)


def expiring_reminder(transfer: PendingTransfer, *, now: datetime, app_url: str) -> Notification:
    hours_left = transfer.hours_remaining(now)
    ctx = _base_context(transfer)
    ctx.update(
        {
            "hours_left": hours_left,
            "days_left": max(1, math.ceil(hours_left / 24)),
            "claim_url": claim_url(app_url, transfer.transfer_id),
        }
    )
    return Notification(NotificationKind.EXPIRING_REMINDER, transfer.recipient_email, transfer.transfer_id, ctx)


def claimed(transfer: PendingTransfer, *, app_url: str) -> Notification:
    ctx = _base_context(transfer)
    ctx.update({"history_url": f"{app_url.rstrip('/')}/history"})
    return Notification(NotificationKind.CLAIMED, transfer.sender_email, transfer.transfer_id, ctx)


def expired(transfer: PendingTransfer, *, app_url: str) -> Notification:
    ctx = _base_context(transfer)
    ctx.update({"wallet_url": f"{app_url.rstrip('/')}/wallet"})
    return Notification(NotificationKind.EXPIRED, transfer.sender_email, transfer.transfer_id, ctx)
