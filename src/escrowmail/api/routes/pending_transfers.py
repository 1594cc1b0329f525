"""
Pending transfers API Route

GET    /api/pending-transfers?recipient_email=|sender_user_id=|transfer_id=
POST   /api/pending-transfers                      create (201)
PATCH  /api/pending-transfers                      action: claim | cancel | auto-claim
POST   /api/pending-transfers/sweeps/expired
POST   /api/pending-transfers/sweeps/reminders
"""

from __future__ import annotations

import hmac
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field

from escrowmail.application.transfers.service import TransferServicePort
from escrowmail.core.errors import ConfigurationError, ValidationError

router = APIRouter(prefix="/pending-transfers")


def require_api_key(request: Request, authorization: Optional[str] = Header(None)) -> None:
    expected = getattr(request.app.state, "api_key", None)
    if not expected:
        raise ConfigurationError(message="API key is not configured")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})


def get_service(request: Request) -> TransferServicePort:
    return request.app.state.service


class CreateTransferBody(BaseModel):
    sender_user_id: str
    recipient_email: str
    amount: str
    token: str
    token_address: str
    chain: str
    decimals: int
    message: Optional[str] = None


class TransferActionBody(BaseModel):
    action: Literal["claim", "cancel", "auto-claim"]
    user_id: str = Field(..., min_length=1)
    transfer_id: Optional[str] = None
    email: Optional[str] = None


@router.get("", dependencies=[Depends(require_api_key)])
async def get_pending_transfers(
    recipient_email: Optional[str] = Query(None),
    sender_user_id: Optional[str] = Query(None),
    transfer_id: Optional[str] = Query(None),
    service: TransferServicePort = Depends(get_service),
):
    if transfer_id:
        transfer = await service.get_details(transfer_id)
        return {"success": True, "transfer": transfer.to_dict()}
    if recipient_email:
        summaries = await service.list_by_recipient(recipient_email)
        return {"success": True, "transfers": [s.to_dict() for s in summaries]}
    if sender_user_id:
        summaries = await service.list_by_sender(sender_user_id)
        return {"success": True, "transfers": [s.to_dict() for s in summaries]}
    raise ValidationError(message="Provide recipient_email, sender_user_id or transfer_id")


@router.post("", status_code=201, dependencies=[Depends(require_api_key)])
async def create_pending_transfer(body: CreateTransferBody, service: TransferServicePort = Depends(get_service)):
    transfer = await service.create(
        sender_user_id=body.sender_user_id,
        recipient_email=body.recipient_email,
        amount=body.amount,
        token=body.token,
        token_address=body.token_address,
        chain=body.chain,
        decimals=body.decimals,
        message=body.message,
    )
    return {"success": True, "transfer": transfer.to_dict()}


@router.patch("", dependencies=[Depends(require_api_key)])
async def resolve_pending_transfer(body: TransferActionBody, service: TransferServicePort = Depends(get_service)):
    if body.action == "auto-claim":
        if not body.email:
            raise ValidationError(message="email is required for auto-claim")
        claimed = await service.auto_claim(body.user_id, body.email)
        return {"success": True, "claimed_count": claimed}

    if not body.transfer_id:
        raise ValidationError(message=f"transfer_id is required for {body.action}")
    if body.action == "claim":
        tx_id = await service.claim(body.transfer_id, body.user_id)
    else:
        tx_id = await service.cancel(body.transfer_id, body.user_id)
    return {"success": True, "transaction_id": tx_id}


@router.post("/sweeps/expired", dependencies=[Depends(require_api_key)])
async def sweep_expired(service: TransferServicePort = Depends(get_service)):
    return {"success": True, "expired_count": await service.sweep_expired()}


@router.post("/sweeps/reminders", dependencies=[Depends(require_api_key)])
async def sweep_reminders(service: TransferServicePort = Depends(get_service)):
    return {"success": True, "reminded_count": await service.sweep_reminders()}
