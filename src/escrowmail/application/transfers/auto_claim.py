from __future__ import annotations

import logging

from escrowmail.domain.transfer import normalize_email

from .resolvers import ClaimResolver
from .runtime import TransferRuntime

logger = logging.getLogger(__name__)


class AutoClaimer:
    """Claims every pending transfer for a newly registered user's email."""

    def __init__(self, runtime: TransferRuntime, claims: ClaimResolver):
        self.rt = runtime
        self.claims = claims

    async def auto_claim(self, user_id: str, email: str) -> int:
        pending = await self.rt.store.list_by_recipient(normalize_email(email))
        claimed = 0
        for transfer in pending:
            try:
                await self.claims.claim(transfer.transfer_id, user_id)
                claimed += 1
            except Exception as e:
                logger.warning("auto-claim of %s for user %s failed: %s", transfer.transfer_id, user_id, e)
        if pending:
            logger.info("auto-claim for user %s: %d/%d claimed", user_id, claimed, len(pending))
        return claimed
