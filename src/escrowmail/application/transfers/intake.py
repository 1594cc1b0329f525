"""
Transfer intake: validate, provision escrow, persist the pending record.

Only escrow provisioning and the insert are on the response path; sender
enrichment and notifications run afterwards in the background.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from escrowmail.application.notifications import builders
from escrowmail.core.errors import CustodyError, ValidationError
from escrowmail.domain.transfer import DEFAULT_CHAINS, PendingTransfer, new_transfer_id, normalize_email

from .runtime import TransferRuntime

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CreateTransferRequest(BaseModel):
    sender_user_id: str = Field(min_length=1)
    recipient_email: str
    amount: str
    token: str = Field(min_length=1)
    token_address: str = Field(min_length=1)
    chain: str = Field(min_length=1)
    decimals: int = Field(ge=0, le=36)
    message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("recipient_email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        email = normalize_email(value)
        if not _EMAIL_RE.match(email):
            raise ValueError("recipient_email is not a valid email address")
        return email

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_positive(cls, value) -> str:
        raw = str(value).strip()
        try:
            amount = Decimal(raw)
        except (InvalidOperation, ValueError):
            raise ValueError("amount must be a decimal number")
        if not amount.is_finite() or amount <= 0:
            raise ValueError("amount must be greater than 0")
        return raw

    @field_validator("chain")
    @classmethod
    def _chain_lower(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _amount_fits_decimals(self) -> "CreateTransferRequest":
        places = -Decimal(self.amount).as_tuple().exponent
        if places > self.decimals:
            raise ValueError(f"amount has more than {self.decimals} fractional digits")
        return self

    @classmethod
    def parse(cls, **fields) -> "CreateTransferRequest":
        try:
            return cls(**fields)
        except PydanticValidationError as e:
            errors = "; ".join(f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}" for err in e.errors())
            raise ValidationError(message=f"Invalid transfer request: {errors}") from e


class TransferIntake:
    def __init__(self, runtime: TransferRuntime, *, supported_chains: Iterable[str] = DEFAULT_CHAINS):
        self.rt = runtime
        self.supported_chains = tuple(c.lower() for c in supported_chains)

    async def create(self, request: CreateTransferRequest) -> PendingTransfer:
        if request.chain not in self.supported_chains:
            raise ValidationError(
                message=f"Unsupported chain '{request.chain}'",
                context={"supported": list(self.supported_chains)},
            )

        transfer_id = new_transfer_id()
        try:
            escrow = await self.rt.custody.generate_account(request.chain)
        except Exception as e:
            logger.error("escrow provisioning failed for %s on %s: %s", transfer_id, request.chain, e)
            raise CustodyError(
                message=f"Escrow provisioning failed: {e}",
                context={"transfer_id": transfer_id, "chain": request.chain},
            ) from e

        transfer = PendingTransfer.open(
            transfer_id=transfer_id,
            recipient_email=request.recipient_email,
            sender_user_id=request.sender_user_id,
            amount=request.amount,
            token=request.token,
            token_address=request.token_address,
            chain=request.chain,
            decimals=request.decimals,
            escrow_address=escrow.address,
            escrow_secret=escrow.secret_handle,
            # The sender's wallet performs the real deposit into the escrow.
            deposit_transaction_id=f"deposit:{transfer_id}:pending",
            created_at=self.rt.now(),
            message=request.message,
        )
        await self.rt.store.create(transfer)
        logger.info(
            "pending transfer %s created: %s %s on %s, escrow %s",
            transfer_id,
            transfer.amount,
            transfer.token,
            transfer.chain,
            transfer.escrow_address,
        )
        self.rt.record(
            transfer_id,
            "created",
            actor=transfer.sender_user_id,
            amount=transfer.amount,
            token=transfer.token,
            chain=transfer.chain,
        )
        self.rt.background.spawn(self._after_create(transfer), label=f"intake:{transfer_id}")
        return transfer

    async def _after_create(self, transfer: PendingTransfer) -> None:
        enriched = transfer
        try:
            profile = await self.rt.directory.get_profile(transfer.sender_user_id)
            if profile is None:
                logger.warning(
                    "sender %s not found in directory; transfer %s keeps empty sender metadata",
                    transfer.sender_user_id,
                    transfer.transfer_id,
                )
            else:
                await self.rt.store.update_sender_profile(
                    transfer.transfer_id, sender_email=profile.email, sender_name=profile.label()
                )
                enriched = transfer.with_sender_profile(profile.email, profile.label())
        except Exception as e:
            logger.warning(f"sender enrichment failed for {transfer.transfer_id}: {e}")

        await self.rt.outbox.enqueue(builders.invite(enriched, app_url=self.rt.app_url))
        if enriched.sender_email:
            await self.rt.outbox.enqueue(builders.sender_confirmation(enriched, app_url=self.rt.app_url))
