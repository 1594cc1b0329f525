from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from escrowmail.application.background import BackgroundTasks
from escrowmail.application.notifications.messages import Notification
from escrowmail.application.ports.custody_port import CustodyPort
from escrowmail.application.ports.directory_port import DirectoryPort
from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.application.ports.notification_port import NotificationOutboxPort
from escrowmail.application.ports.transfer_store_port import TransferStorePort
from escrowmail.domain.transfer import PendingTransfer, TransferEvent, utcnow

logger = logging.getLogger(__name__)

SenderNotificationBuilder = Callable[..., Notification]


@dataclass
class TransferRuntime:
    """Collaborators shared by intake, resolvers and sweepers."""

    store: TransferStorePort
    custody: CustodyPort
    directory: DirectoryPort
    outbox: NotificationOutboxPort
    event_log: Optional[TransferEventLogPort] = None
    app_url: str = "https://app.escrowmail.dev"
    clock: Callable[[], datetime] = utcnow
    background: BackgroundTasks = field(default_factory=lambda: BackgroundTasks("transfers"))

    def now(self) -> datetime:
        return self.clock()

    def record(self, transfer_id: str, event_type: str, *, actor: str = "system", **payload: Any) -> None:
        if self.event_log is None:
            return
        try:
            self.event_log.append(
                TransferEvent(transfer_id=transfer_id, type=event_type, actor=actor, payload=payload, ts=self.now())
            )
        except Exception as e:
            logger.warning(f"event log append failed for {transfer_id}: {e}")

    def notify_sender(self, transfer: PendingTransfer, build: SenderNotificationBuilder) -> None:
        """Schedule a sender-facing notification without blocking the caller."""
        self.background.spawn(self._notify_sender(transfer, build), label=f"notify:{transfer.transfer_id}")

    async def _notify_sender(self, transfer: PendingTransfer, build: SenderNotificationBuilder) -> None:
        if not transfer.sender_email:
            # Intake enrichment may not have landed yet.
            profile = await self.directory.get_profile(transfer.sender_user_id)
            if profile is None:
                logger.warning(
                    "sender %s of transfer %s not in directory; notification skipped",
                    transfer.sender_user_id,
                    transfer.transfer_id,
                )
                return
            transfer = transfer.with_sender_profile(profile.email, profile.label())
        await self.outbox.enqueue(build(transfer, app_url=self.app_url))
