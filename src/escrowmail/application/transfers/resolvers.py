"""
Claim / cancel / expire: the three ways a pending transfer ends.

Every resolution follows the same protocol so funds move at most once:

    acquire_resolution (CAS)  ->  custody debit/refund  ->  complete_resolution
                                        | failure
                                        v
                                 release_resolution, raise CustodyError

The custody call also carries idempotency_key=transfer_id, so a ledger that
honours it rejects a second movement even if the reservation were lost.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from escrowmail.application.notifications import builders
from escrowmail.core.errors import (
    CustodyError,
    InvalidStateError,
    MissingWalletError,
    NotFoundError,
    UnauthorizedError,
)
from escrowmail.domain.transfer import PendingTransfer, TransferStatus, normalize_email

from .runtime import TransferRuntime

logger = logging.getLogger(__name__)

DEBIT = "debit"
REFUND = "refund"


class LifecycleResolver:
    """Shared load / validate / reserve / settle steps."""

    action = "resolve"

    def __init__(self, runtime: TransferRuntime):
        self.rt = runtime

    async def _load(self, transfer_id: str) -> PendingTransfer:
        transfer = await self.rt.store.get(transfer_id)
        if transfer is None:
            raise NotFoundError(
                message="Pending transfer not found",
                context={"transfer_id": transfer_id},
            )
        return transfer

    @staticmethod
    def _require_pending(transfer: PendingTransfer) -> None:
        if not transfer.is_pending:
            raise InvalidStateError(
                message=f"Transfer is already {transfer.status.value}",
                status=transfer.status.value,
                context={"transfer_id": transfer.transfer_id},
            )

    async def _wallet(self, user_id: str, transfer: PendingTransfer, *, message: str) -> str:
        wallet = await self.rt.directory.get_wallet_for_chain(user_id, transfer.chain)
        if not wallet:
            raise MissingWalletError(
                message=message,
                context={"transfer_id": transfer.transfer_id, "user_id": user_id, "chain": transfer.chain},
            )
        return wallet

    async def _settle(
        self,
        transfer: PendingTransfer,
        *,
        movement: str,
        destination: str,
        status: TransferStatus,
        actor: str,
        claimed_by_user_id: Optional[str] = None,
        claimed_at: Optional[datetime] = None,
    ) -> PendingTransfer:
        store = self.rt.store
        token = uuid.uuid4().hex
        acquired = await store.acquire_resolution(
            transfer.transfer_id, token=token, action=self.action, now=self.rt.now()
        )
        if not acquired:
            await self._reject_contended(transfer.transfer_id)

        move = self.rt.custody.debit if movement == DEBIT else self.rt.custody.refund
        try:
            tx_id = await move(
                transfer.escrow_address,
                transfer.escrow_secret,
                destination,
                transfer.amount,
                transfer.token_address,
                transfer.chain,
                idempotency_key=transfer.transfer_id,
            )
            if not tx_id:
                raise RuntimeError("custody returned no transaction id")
        except Exception as e:
            await self._release(transfer.transfer_id, token)
            logger.warning("%s of transfer %s failed: %s", movement, transfer.transfer_id, e)
            self.rt.record(transfer.transfer_id, "resolution_failed", actor=actor, action=self.action, error=str(e))
            raise CustodyError(
                message=f"Escrow {movement} failed: {e}",
                context={"transfer_id": transfer.transfer_id, "action": self.action},
            ) from e

        try:
            updated = await store.complete_resolution(
                transfer.transfer_id,
                token=token,
                status=status,
                resolution_transaction_id=tx_id,
                claimed_by_user_id=claimed_by_user_id,
                claimed_at=claimed_at,
            )
        except Exception:
            # Funds already moved: keep the reservation so nobody retries the movement.
            logger.critical(
                "transfer %s: %s succeeded (tx %s) but the status write failed; reservation kept for reconciliation",
                transfer.transfer_id,
                movement,
                tx_id,
            )
            raise

        logger.info("transfer %s %s (tx %s)", transfer.transfer_id, status.value, tx_id)
        self.rt.record(transfer.transfer_id, status.value, actor=actor, resolution_transaction_id=tx_id)
        return updated

    async def _reject_contended(self, transfer_id: str) -> None:
        current = await self._load(transfer_id)
        if current.is_pending:
            raise InvalidStateError(
                message="Transfer is already being resolved",
                status=current.status.value,
                context={"transfer_id": transfer_id},
            )
        self._require_pending(current)

    async def _release(self, transfer_id: str, token: str) -> None:
        try:
            await self.rt.store.release_resolution(transfer_id, token=token)
        except Exception as e:
            logger.error("could not release reservation on %s: %s", transfer_id, e)


class ClaimResolver(LifecycleResolver):
    action = "claim"

    async def claim(self, transfer_id: str, claimant_user_id: str) -> str:
        """Debit the escrow to the claimant's wallet. Returns the ledger tx id."""
        transfer = await self._load(transfer_id)
        self._require_pending(transfer)

        now = self.rt.now()
        if transfer.is_expired(now):
            raise InvalidStateError(
                message="Transfer has expired",
                status=TransferStatus.EXPIRED.value,
                context={"transfer_id": transfer_id},
            )

        claimant = await self.rt.directory.get_profile(claimant_user_id)
        if claimant is None:
            raise NotFoundError(message="Claimant not found", context={"user_id": claimant_user_id})
        if normalize_email(claimant.email) != transfer.recipient_email:
            raise UnauthorizedError(
                message="Email mismatch. You can only claim transfers sent to your email.",
                context={"transfer_id": transfer_id},
            )

        wallet = await self._wallet(
            claimant_user_id, transfer, message=f"You don't have a {transfer.chain} wallet configured"
        )
        updated = await self._settle(
            transfer,
            movement=DEBIT,
            destination=wallet,
            status=TransferStatus.CLAIMED,
            actor=claimant_user_id,
            claimed_by_user_id=claimant_user_id,
            claimed_at=now,
        )
        self.rt.notify_sender(updated, builders.claimed)
        return updated.resolution_transaction_id


class CancelResolver(LifecycleResolver):
    action = "cancel"

    async def cancel(self, transfer_id: str, requester_user_id: str) -> str:
        """Sender-only refund of a pending transfer. No notification is sent."""
        transfer = await self._load(transfer_id)
        if transfer.sender_user_id != requester_user_id:
            raise UnauthorizedError(
                message="Only the sender can cancel this transfer",
                context={"transfer_id": transfer_id},
            )
        self._require_pending(transfer)

        wallet = await self._wallet(requester_user_id, transfer, message="Sender wallet not found")
        updated = await self._settle(
            transfer,
            movement=REFUND,
            destination=wallet,
            status=TransferStatus.CANCELLED,
            actor=requester_user_id,
        )
        return updated.resolution_transaction_id


class ExpiryResolver(LifecycleResolver):
    action = "expire"

    async def expire(self, transfer: PendingTransfer) -> str:
        """Refund an expired transfer to its sender and tell them."""
        self._require_pending(transfer)
        wallet = await self._wallet(transfer.sender_user_id, transfer, message="Sender wallet not found")
        updated = await self._settle(
            transfer,
            movement=REFUND,
            destination=wallet,
            status=TransferStatus.EXPIRED,
            actor="system",
        )
        self.rt.notify_sender(updated, builders.expired)
        return updated.resolution_transaction_id
