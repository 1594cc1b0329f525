"""
Periodic jobs: refund expired transfers, remind recipients before expiry.

Both sweeps process items independently; one failure never stops the batch.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List

from escrowmail.application.notifications import builders
from escrowmail.core.errors import Result
from escrowmail.domain.transfer import PendingTransfer

from .resolvers import ExpiryResolver
from .runtime import TransferRuntime

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=48)
STALL_AFTER = timedelta(minutes=15)


class ExpirySweeper:
    def __init__(self, runtime: TransferRuntime, *, stall_after: timedelta = STALL_AFTER):
        self.rt = runtime
        self.resolver = ExpiryResolver(runtime)
        self.stall_after = stall_after

    async def sweep(self) -> int:
        """Expire every pending transfer past its deadline. Returns how many succeeded."""
        now = self.rt.now()
        candidates = await self.rt.store.list_expired(now)
        results: List[Result[str, Exception]] = []
        for transfer in candidates:
            results.append(await self._expire_one(transfer))

        expired = sum(1 for r in results if r.is_ok())
        failed = len(results) - expired
        if candidates:
            logger.info("expiry sweep: %d expired, %d failed", expired, failed)
        await self._report_stalled(now)
        return expired

    async def _expire_one(self, transfer: PendingTransfer) -> Result[str, Exception]:
        try:
            return Result.ok(await self.resolver.expire(transfer))
        except Exception as e:
            logger.error("failed to expire transfer %s: %s", transfer.transfer_id, e)
            return Result.err(e)

    async def _report_stalled(self, now) -> None:
        stalled = await self.rt.store.list_stalled_resolutions(now - self.stall_after)
        for transfer in stalled:
            # Never auto-release: the custody call may have gone through.
            logger.warning(
                "transfer %s has held a resolution reservation for over %s; needs manual reconciliation",
                transfer.transfer_id,
                self.stall_after,
            )


class ReminderScheduler:
    def __init__(self, runtime: TransferRuntime, *, window: timedelta = REMINDER_WINDOW):
        self.rt = runtime
        self.window = window

    async def sweep(self) -> int:
        """Remind recipients of transfers expiring within the window, once each."""
        now = self.rt.now()
        candidates = await self.rt.store.list_expiring(now, now + self.window)
        sent = 0
        for transfer in candidates:
            try:
                await self.rt.outbox.enqueue(builders.expiring_reminder(transfer, now=now, app_url=self.rt.app_url))
            except Exception as e:
                logger.error("reminder for transfer %s failed: %s", transfer.transfer_id, e)
                continue
            self.rt.record(transfer.transfer_id, "reminder_sent", hours_left=transfer.hours_remaining(now))
            sent += 1
            try:
                await self.rt.store.mark_reminder_sent(transfer.transfer_id, now=now)
            except Exception as e:
                # Already queued; the next sweep may send it again.
                logger.error("reminder for transfer %s queued but not marked sent: %s", transfer.transfer_id, e)
        if candidates:
            logger.info("reminder sweep: %d/%d reminders queued", sent, len(candidates))
        return sent
