from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PendingTransferModel(Base):
    __tablename__ = "pending_transfers"
    __table_args__ = (
        Index("ix_pending_transfers_recipient_status", "recipient_email", "status"),
        Index("ix_pending_transfers_status_expires", "status", "expires_at"),
    )

    transfer_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    recipient_email: Mapped[str] = mapped_column(String(320))
    sender_user_id: Mapped[str] = mapped_column(String(128), index=True)
    sender_email: Mapped[str] = mapped_column(String(320), default="")
    sender_name: Mapped[str] = mapped_column(String(256), default="")

    # Exact decimal string; never round-tripped through float.
    amount: Mapped[str] = mapped_column(String(80))
    token: Mapped[str] = mapped_column(String(32))
    token_address: Mapped[str] = mapped_column(String(128), default="")
    chain: Mapped[str] = mapped_column(String(16))
    decimals: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(16), default="pending")

    escrow_address: Mapped[str] = mapped_column(String(128))
    escrow_secret: Mapped[str] = mapped_column(Text)
    deposit_transaction_id: Mapped[str] = mapped_column(String(128), default="")
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_by_user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    resolution_transaction_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # In-flight reservation held by one resolver between CAS and final write.
    resolution_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resolution_action: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    resolution_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class TransferEventModel(Base):
    __tablename__ = "transfer_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(64), default="")
    actor: Mapped[str] = mapped_column(String(128), default="system")
    payload_json: Mapped[str] = mapped_column(Text, default="{}")
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def set_payload(self, payload: Dict[str, Any]) -> None:
        self.payload_json = json.dumps(payload or {}, ensure_ascii=False, default=str)

    def get_payload(self) -> Dict[str, Any]:
        try:
            return json.loads(self.payload_json or "{}")
        except Exception:
            return {}
