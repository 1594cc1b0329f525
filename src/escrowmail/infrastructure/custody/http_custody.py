from __future__ import annotations

from escrowmail.application.ports.custody_port import CustodyPort, EscrowAccount
from escrowmail.infrastructure.api_clients.base import APIClient


class HttpCustodyAdapter(CustodyPort):
    """
    Custody service over HTTP.

    POST /accounts            {chain}                      -> {address, secret_handle}
    POST /debit | /refund     {escrow_address, ...}        -> {transaction_id}

    The idempotency key travels as the Idempotency-Key header.
    """

    def __init__(self, client: APIClient):
        self.client = client

    async def generate_account(self, chain: str) -> EscrowAccount:
        data = await self.client.post("accounts", {"chain": chain}) or {}
        return EscrowAccount(address=str(data["address"]), secret_handle=str(data["secret_handle"]))

    async def debit(self, escrow_address, secret_handle, destination, amount, token_address, chain, *, idempotency_key) -> str:
        return await self._move("debit", escrow_address, secret_handle, destination, amount, token_address, chain, idempotency_key)

    async def refund(self, escrow_address, secret_handle, destination, amount, token_address, chain, *, idempotency_key) -> str:
        return await self._move("refund", escrow_address, secret_handle, destination, amount, token_address, chain, idempotency_key)

    async def _move(self, kind, escrow_address, secret_handle, destination, amount, token_address, chain, idempotency_key) -> str:
        data = await self.client.post(
            kind,
            {
                "escrow_address": escrow_address,
                "secret_handle": secret_handle,
                "destination": destination,
                "amount": amount,
                "token_address": token_address,
                "chain": chain,
            },
            headers={"Idempotency-Key": idempotency_key},
        ) or {}
        return str(data.get("transaction_id") or "")

    async def close(self) -> None:
        await self.client.close()
