"""
Pending transfer domain model.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

# Fixed claim window; expires_at is derived from created_at and never changes.
EXPIRY_WINDOW = timedelta(days=7)
DEFAULT_CHAINS = ("evm", "solana", "tron")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_transfer_id() -> str:
    return f"pt_{uuid.uuid4().hex}"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def ensure_aware(ts: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything in the core is UTC.
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def _parse_ts(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return ensure_aware(raw)
    return ensure_aware(datetime.fromisoformat(str(raw)))


class TransferStatus(str, Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


@dataclass
class PendingTransfer:
    """A transfer held in a per-transfer escrow account until it is resolved."""

    transfer_id: str
    recipient_email: str
    sender_user_id: str
    amount: str
    token: str
    token_address: str
    chain: str
    decimals: int
    escrow_address: str
    escrow_secret: str = field(repr=False)
    deposit_transaction_id: str
    created_at: datetime
    expires_at: datetime
    status: TransferStatus = TransferStatus.PENDING
    sender_email: str = ""
    sender_name: str = ""
    message: Optional[str] = None
    claimed_at: Optional[datetime] = None
    claimed_by_user_id: Optional[str] = None
    resolution_transaction_id: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.transfer_id:
            raise ValueError("transfer_id cannot be empty")
        self.recipient_email = normalize_email(self.recipient_email)
        self.status = TransferStatus(self.status)
        self.created_at = ensure_aware(self.created_at)
        self.expires_at = ensure_aware(self.expires_at)
        self.claimed_at = ensure_aware(self.claimed_at)
        self.reminder_sent_at = ensure_aware(self.reminder_sent_at)

    @classmethod
    def open(
        cls,
        *,
        transfer_id: str,
        recipient_email: str,
        sender_user_id: str,
        amount: str,
        token: str,
        token_address: str,
        chain: str,
        decimals: int,
        escrow_address: str,
        escrow_secret: str,
        deposit_transaction_id: str,
        created_at: datetime,
        message: Optional[str] = None,
    ) -> "PendingTransfer":
        """Build a fresh pending record with the fixed expiry window."""
        return cls(
            transfer_id=transfer_id,
            recipient_email=recipient_email,
            sender_user_id=sender_user_id,
            amount=amount,
            token=token,
            token_address=token_address,
            chain=chain,
            decimals=decimals,
            escrow_address=escrow_address,
            escrow_secret=escrow_secret,
            deposit_transaction_id=deposit_transaction_id,
            created_at=created_at,
            expires_at=created_at + EXPIRY_WINDOW,
            message=message,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is TransferStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def days_remaining(self, now: datetime) -> int:
        seconds = (self.expires_at - now).total_seconds()
        return max(0, math.ceil(seconds / 86400))

    def hours_remaining(self, now: datetime) -> int:
        seconds = (self.expires_at - now).total_seconds()
        return max(0, math.ceil(seconds / 3600))

    def display_sender(self) -> str:
        return self.sender_name or self.sender_email or self.sender_user_id

    def with_sender_profile(self, email: str, name: str) -> "PendingTransfer":
        return replace(self, sender_email=email or "", sender_name=name or "")

    def summary(self, now: datetime) -> "TransferSummary":
        return TransferSummary(
            transfer_id=self.transfer_id,
            recipient_email=self.recipient_email,
            sender_name=self.display_sender(),
            amount=self.amount,
            token=self.token,
            chain=self.chain,
            status=self.status.value,
            created_at=self.created_at,
            expires_at=self.expires_at,
            days_remaining=self.days_remaining(now),
        )

    def to_dict(self, *, include_secret: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "transfer_id": self.transfer_id,
            "recipient_email": self.recipient_email,
            "sender_user_id": self.sender_user_id,
            "sender_email": self.sender_email,
            "sender_name": self.sender_name,
            "amount": self.amount,
            "token": self.token,
            "token_address": self.token_address,
            "chain": self.chain,
            "decimals": self.decimals,
            "status": self.status.value,
            "escrow_address": self.escrow_address,
            "deposit_transaction_id": self.deposit_transaction_id,
            "message": self.message,
            "created_at": _iso(self.created_at),
            "expires_at": _iso(self.expires_at),
            "claimed_at": _iso(self.claimed_at),
            "claimed_by_user_id": self.claimed_by_user_id,
            "resolution_transaction_id": self.resolution_transaction_id,
        }
        if include_secret:
            data["escrow_secret"] = self.escrow_secret
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingTransfer":
        return cls(
            transfer_id=data["transfer_id"],
            recipient_email=data["recipient_email"],
            sender_user_id=data["sender_user_id"],
            sender_email=data.get("sender_email") or "",
            sender_name=data.get("sender_name") or "",
            amount=str(data["amount"]),
            token=data["token"],
            token_address=data.get("token_address") or "",
            chain=data["chain"],
            decimals=int(data.get("decimals") or 0),
            status=TransferStatus(data.get("status") or TransferStatus.PENDING.value),
            escrow_address=data.get("escrow_address") or "",
            # Remote callers never see the secret.
            escrow_secret=data.get("escrow_secret") or "",
            deposit_transaction_id=data.get("deposit_transaction_id") or "",
            message=data.get("message"),
            created_at=_parse_ts(data["created_at"]),
            expires_at=_parse_ts(data["expires_at"]),
            claimed_at=_parse_ts(data.get("claimed_at")),
            claimed_by_user_id=data.get("claimed_by_user_id"),
            resolution_transaction_id=data.get("resolution_transaction_id"),
        )


@dataclass
class TransferSummary:
    transfer_id: str
    recipient_email: str
    sender_name: str
    amount: str
    token: str
    chain: str
    status: str
    created_at: datetime
    expires_at: datetime
    days_remaining: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transfer_id": self.transfer_id,
            "recipient_email": self.recipient_email,
            "sender_name": self.sender_name,
            "amount": self.amount,
            "token": self.token,
            "chain": self.chain,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "expires_at": _iso(self.expires_at),
            "days_remaining": self.days_remaining,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransferSummary":
        return cls(
            transfer_id=data["transfer_id"],
            recipient_email=data["recipient_email"],
            sender_name=data.get("sender_name") or "",
            amount=str(data["amount"]),
            token=data["token"],
            chain=data["chain"],
            status=data["status"],
            created_at=_parse_ts(data["created_at"]),
            expires_at=_parse_ts(data["expires_at"]),
            days_remaining=int(data.get("days_remaining") or 0),
        )


@dataclass
class TransferEvent:
    """Audit trail entry for a lifecycle change or notification hand-off."""

    transfer_id: str
    type: str
    actor: str = "system"
    payload: Dict[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transfer_id": self.transfer_id,
            "type": self.type,
            "actor": self.actor,
            "payload": dict(self.payload),
            "ts": self.ts.isoformat(),
        }
