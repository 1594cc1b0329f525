from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from escrowmail.domain.transfer import PendingTransfer, TransferStatus


@runtime_checkable
class TransferStorePort(Protocol):
    """
    Persistent CRUD and range queries over pending transfer records.

    Status changes only happen through the reservation protocol:
    acquire_resolution() -> custody call -> complete_resolution() or
    release_resolution().
    """

    async def create(self, transfer: PendingTransfer) -> PendingTransfer:
        """Insert a new record; transfer_id must be unused."""

    async def get(self, transfer_id: str) -> Optional[PendingTransfer]:
        """Load one record, or None."""

    async def update_sender_profile(self, transfer_id: str, *, sender_email: str, sender_name: str) -> None:
        """Fill the eventually-consistent sender metadata."""

    async def list_by_recipient(self, recipient_email: str) -> List[PendingTransfer]:
        """Pending records addressed to a normalized email."""

    async def list_by_sender(self, sender_user_id: str) -> List[PendingTransfer]:
        """All records created by a sender, any status."""

    async def list_expired(self, now: datetime) -> List[PendingTransfer]:
        """Pending records with expires_at < now."""

    async def list_expiring(self, now: datetime, until: datetime) -> List[PendingTransfer]:
        """Pending, not yet reminded records with now < expires_at <= until."""

    async def acquire_resolution(self, transfer_id: str, *, token: str, action: str, now: datetime) -> bool:
        """
        Atomically reserve a pending, unreserved record for one resolver.

        Returns False when the record is not pending or already reserved.
        """

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
        """Write the terminal status; requires holding the reservation."""

    async def release_resolution(self, transfer_id: str, *, token: str) -> None:
        """Drop a reservation after a failed custody call; the record stays pending."""

    async def mark_reminder_sent(self, transfer_id: str, *, now: datetime) -> None:
        """Record that the expiring reminder went out."""

    async def list_stalled_resolutions(self, older_than: datetime) -> List[PendingTransfer]:
        """Pending records whose reservation was taken before older_than."""
