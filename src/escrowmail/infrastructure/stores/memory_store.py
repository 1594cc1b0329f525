from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional

from escrowmail.domain.transfer import PendingTransfer, TransferStatus


@dataclass
class _Reservation:
    token: str
    action: str
    started_at: datetime


class InMemoryTransferStore:
    """Dict-backed transfer store (useful for tests and local runs)."""

    def __init__(self) -> None:
        self._rows: Dict[str, PendingTransfer] = {}
        self._reservations: Dict[str, _Reservation] = {}
        self._lock = asyncio.Lock()

    async def create(self, transfer: PendingTransfer) -> PendingTransfer:
        async with self._lock:
            if transfer.transfer_id in self._rows:
                raise ValueError(f"transfer {transfer.transfer_id} already exists")
            self._rows[transfer.transfer_id] = replace(transfer)
            return replace(transfer)

    async def get(self, transfer_id: str) -> Optional[PendingTransfer]:
        row = self._rows.get(transfer_id)
        return replace(row) if row is not None else None

    async def update_sender_profile(self, transfer_id: str, *, sender_email: str, sender_name: str) -> None:
        async with self._lock:
            row = self._rows.get(transfer_id)
            if row is not None:
                self._rows[transfer_id] = row.with_sender_profile(sender_email, sender_name)

    def _pending(self) -> List[PendingTransfer]:
        return [replace(r) for r in self._rows.values() if r.status is TransferStatus.PENDING]

    async def list_by_recipient(self, recipient_email: str) -> List[PendingTransfer]:
        rows = [r for r in self._pending() if r.recipient_email == recipient_email]
        return sorted(rows, key=lambda r: r.created_at)

    async def list_by_sender(self, sender_user_id: str) -> List[PendingTransfer]:
        rows = [replace(r) for r in self._rows.values() if r.sender_user_id == sender_user_id]
        return sorted(rows, key=lambda r: r.created_at)

    async def list_expired(self, now: datetime) -> List[PendingTransfer]:
        rows = [r for r in self._pending() if r.expires_at < now]
        return sorted(rows, key=lambda r: r.expires_at)

    async def list_expiring(self, now: datetime, until: datetime) -> List[PendingTransfer]:
        rows = [r for r in self._pending() if now < r.expires_at <= until and r.reminder_sent_at is None]
        return sorted(rows, key=lambda r: r.expires_at)

    async def list_stalled_resolutions(self, older_than: datetime) -> List[PendingTransfer]:
        return [
            replace(self._rows[tid])
            for tid, res in self._reservations.items()
            if res.started_at < older_than and self._rows[tid].status is TransferStatus.PENDING
        ]

    async def acquire_resolution(self, transfer_id: str, *, token: str, action: str, now: datetime) -> bool:
        async with self._lock:
            row = self._rows.get(transfer_id)
            if row is None or row.status is not TransferStatus.PENDING or transfer_id in self._reservations:
                return False
            self._reservations[transfer_id] = _Reservation(token=token, action=action, started_at=now)
            return True

    async def complete_resolution(
        self,
        transfer_id: str,
        *,
        token: str,
        status: TransferStatus,
        resolution_transaction_id: str,
        claimed_by_user_id: Optional[str] = None,
        claimed_at: Optional[datetime] = None,
    ) -> PendingTransfer:
        status = TransferStatus(status)
        if not status.is_terminal:
            raise ValueError("complete_resolution requires a terminal status")
        async with self._lock:
            held = self._reservations.get(transfer_id)
            if held is None or held.token != token:
                raise RuntimeError(f"reservation on {transfer_id} is not held by this resolver")
            row = self._rows[transfer_id]
            updated = replace(row, status=status, resolution_transaction_id=resolution_transaction_id)
            if status is TransferStatus.CLAIMED:
                updated = replace(updated, claimed_by_user_id=claimed_by_user_id, claimed_at=claimed_at)
            self._rows[transfer_id] = updated
            del self._reservations[transfer_id]
            return replace(updated)

    async def release_resolution(self, transfer_id: str, *, token: str) -> None:
        async with self._lock:
            held = self._reservations.get(transfer_id)
            if held is not None and held.token == token:
                del self._reservations[transfer_id]

    async def mark_reminder_sent(self, transfer_id: str, *, now: datetime) -> None:
        async with self._lock:
            row = self._rows.get(transfer_id)
            if row is not None and row.reminder_sent_at is None:
                self._rows[transfer_id] = replace(row, reminder_sent_at=now)

    def close(self) -> None:
        return None
