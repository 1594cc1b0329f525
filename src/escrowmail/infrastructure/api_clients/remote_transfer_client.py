"""
RemoteTransferService: TransferServicePort over the escrowmail HTTP API.

Used when the core runs in another process (mode: remote). Error bodies
carry the same codes the local core raises, so callers see identical
exception types either way.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from escrowmail.core.errors import (
    ConfigurationError,
    CustodyError,
    EscrowMailError,
    InvalidStateError,
    MissingWalletError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from escrowmail.domain.transfer import PendingTransfer, TransferSummary

from .base import APIClient, APIError

logger = logging.getLogger(__name__)

_ERRORS_BY_CODE: Dict[str, Type[EscrowMailError]] = {
    "NOT_FOUND": NotFoundError,
    "INVALID_STATE": InvalidStateError,
    "UNAUTHORIZED": UnauthorizedError,
    "MISSING_WALLET": MissingWalletError,
    "CUSTODY_FAILURE": CustodyError,
    "CONFIGURATION": ConfigurationError,
    "VALIDATION_ERROR": ValidationError,
}

RESOURCE = "api/pending-transfers"


def _translate(error: APIError) -> EscrowMailError:
    cls = _ERRORS_BY_CODE.get(str(error.payload.get("code") or ""))
    if cls is None:
        return CustodyError(message=f"Remote transfer API failed: {error.message}", context={"status": error.status})
    if cls is InvalidStateError:
        return InvalidStateError(message=error.message, status=error.payload.get("status"))
    return cls(message=error.message)


class RemoteTransferService:
    def __init__(self, client: APIClient):
        self.client = client

    async def _call(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        try:
            return await self.client.request(method, endpoint, **kwargs) or {}
        except APIError as e:
            raise _translate(e) from e

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
        body = {
            "sender_user_id": sender_user_id,
            "recipient_email": recipient_email,
            "amount": amount,
            "token": token,
            "token_address": token_address,
            "chain": chain,
            "decimals": decimals,
            "message": message,
        }
        data = await self._call("POST", RESOURCE, json_data=body)
        return PendingTransfer.from_dict(data["transfer"])

    async def list_by_recipient(self, recipient_email: str) -> List[TransferSummary]:
        data = await self._call("GET", RESOURCE, params={"recipient_email": recipient_email})
        return [TransferSummary.from_dict(t) for t in data.get("transfers") or []]

    async def list_by_sender(self, sender_user_id: str) -> List[TransferSummary]:
        data = await self._call("GET", RESOURCE, params={"sender_user_id": sender_user_id})
        return [TransferSummary.from_dict(t) for t in data.get("transfers") or []]

    async def get_details(self, transfer_id: str) -> PendingTransfer:
        data = await self._call("GET", RESOURCE, params={"transfer_id": transfer_id})
        return PendingTransfer.from_dict(data["transfer"])

    async def claim(self, transfer_id: str, claimant_user_id: str) -> str:
        data = await self._call(
            "PATCH", RESOURCE, json_data={"action": "claim", "transfer_id": transfer_id, "user_id": claimant_user_id}
        )
        return str(data["transaction_id"])

    async def cancel(self, transfer_id: str, sender_user_id: str) -> str:
        data = await self._call(
            "PATCH", RESOURCE, json_data={"action": "cancel", "transfer_id": transfer_id, "user_id": sender_user_id}
        )
        return str(data["transaction_id"])

    async def auto_claim(self, user_id: str, email: str) -> int:
        data = await self._call("PATCH", RESOURCE, json_data={"action": "auto-claim", "user_id": user_id, "email": email})
        return int(data.get("claimed_count") or 0)

    async def sweep_expired(self) -> int:
        data = await self._call("POST", f"{RESOURCE}/sweeps/expired")
        return int(data.get("expired_count") or 0)

    async def sweep_reminders(self) -> int:
        data = await self._call("POST", f"{RESOURCE}/sweeps/reminders")
        return int(data.get("reminded_count") or 0)

    async def close(self) -> None:
        await self.client.close()
