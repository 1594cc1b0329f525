"""
Transfer service facade.

`TransferServicePort` is what the API, worker and CLI talk to. Two
implementations exist and one is picked at bootstrap:

- PendingTransferService: runs intake/resolvers/sweepers in-process
- RemoteTransferService (infrastructure/api_clients): calls the HTTP API
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from escrowmail.core.errors import NotFoundError
from escrowmail.domain.transfer import DEFAULT_CHAINS, PendingTransfer, TransferSummary, normalize_email

from .auto_claim import AutoClaimer
from .intake import CreateTransferRequest, TransferIntake
from .resolvers import CancelResolver, ClaimResolver
from .runtime import TransferRuntime
from .sweepers import REMINDER_WINDOW, STALL_AFTER, ExpirySweeper, ReminderScheduler

logger = logging.getLogger(__name__)


@runtime_checkable
class TransferServicePort(Protocol):
    async def create(
        self,
        sender_user_id: str,
        recipient_email: str,
        amount: str,
        token: str,
        token_address: str,
        chain: str,
        decimals: int,
        message: Optional[str] = None,
    ) -> PendingTransfer:
        ...

    async def list_by_recipient(self, recipient_email: str) -> List[TransferSummary]:
        ...

    async def list_by_sender(self, sender_user_id: str) -> List[TransferSummary]:
        ...

    async def get_details(self, transfer_id: str) -> PendingTransfer:
        ...

    async def claim(self, transfer_id: str, claimant_user_id: str) -> str:
        ...

    async def cancel(self, transfer_id: str, sender_user_id: str) -> str:
        ...

    async def auto_claim(self, user_id: str, email: str) -> int:
        ...

    async def sweep_expired(self) -> int:
        ...

    async def sweep_reminders(self) -> int:
        ...

    async def close(self) -> None:
        ...


class PendingTransferService:
    """In-process implementation of TransferServicePort."""

    def __init__(
        self,
        runtime: TransferRuntime,
        *,
        supported_chains: Iterable[str] = DEFAULT_CHAINS,
        reminder_window: timedelta = REMINDER_WINDOW,
        stall_after: timedelta = STALL_AFTER,
    ):
        self.runtime = runtime
        self.intake = TransferIntake(runtime, supported_chains=supported_chains)
        self.claims = ClaimResolver(runtime)
        self.cancels = CancelResolver(runtime)
        self.expiry = ExpirySweeper(runtime, stall_after=stall_after)
        self.reminders = ReminderScheduler(runtime, window=reminder_window)
        self.auto_claimer = AutoClaimer(runtime, self.claims)

    async def create(
        self,
        sender_user_id: str,
        recipient_email: str,
        amount: str,
        token: str,
        token_address: str,
        chain: str,
        decimals: int,
        message: Optional[str] = None,
    ) -> PendingTransfer:
        request = CreateTransferRequest.parse(
            sender_user_id=sender_user_id,
            recipient_email=recipient_email,
            amount=amount,
            token=token,
            token_address=token_address,
            chain=chain,
            decimals=decimals,
            message=message,
        )
        return await self.intake.create(request)

    async def list_by_recipient(self, recipient_email: str) -> List[TransferSummary]:
        now = self.runtime.now()
        transfers = await self.runtime.store.list_by_recipient(normalize_email(recipient_email))
        return [t.summary(now) for t in transfers if t.is_pending]

    async def list_by_sender(self, sender_user_id: str) -> List[TransferSummary]:
        now = self.runtime.now()
        transfers = await self.runtime.store.list_by_sender(sender_user_id)
        return [t.summary(now) for t in transfers if t.is_pending]

    async def get_details(self, transfer_id: str) -> PendingTransfer:
        transfer = await self.runtime.store.get(transfer_id)
        if transfer is None:
            raise NotFoundError(message="Pending transfer not found", context={"transfer_id": transfer_id})
        return transfer

    async def claim(self, transfer_id: str, claimant_user_id: str) -> str:
        return await self.claims.claim(transfer_id, claimant_user_id)

    async def cancel(self, transfer_id: str, sender_user_id: str) -> str:
        return await self.cancels.cancel(transfer_id, sender_user_id)

    async def auto_claim(self, user_id: str, email: str) -> int:
        return await self.auto_claimer.auto_claim(user_id, email)

    async def sweep_expired(self) -> int:
        return await self.expiry.sweep()

    async def sweep_reminders(self) -> int:
        return await self.reminders.sweep()

    async def drain(self) -> None:
        """Wait for background enrichment and notification hand-offs."""
        await self.runtime.background.drain()
        join = getattr(self.runtime.outbox, "join", None)
        if join is not None:
            await join()

    async def close(self) -> None:
        await self.runtime.background.drain()
        await self.runtime.outbox.close()
        for resource in (self.runtime.custody, self.runtime.directory):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        store_close = getattr(self.runtime.store, "close", None)
        if store_close is not None:
            store_close()
        if self.runtime.event_log is not None:
            self.runtime.event_log.close()
        logger.info("transfer service closed")
