"""
Simulated ledger for local runs and tests.

Keeps balances nowhere; it only issues escrow accounts and transaction ids
and enforces one movement per idempotency key, like a real custody service.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Dict, List

from escrowmail.application.ports.custody_port import CustodyPort, EscrowAccount

logger = logging.getLogger(__name__)

_BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


class LedgerRejected(Exception):
    """The simulated ledger refused a movement."""


@dataclass(frozen=True)
class LedgerMovement:
    kind: str
    escrow_address: str
    destination: str
    amount: str
    token_address: str
    chain: str
    idempotency_key: str
    transaction_id: str


def _address(chain: str) -> str:
    if chain == "solana":
        return "".join(secrets.choice(_BASE58) for _ in range(44))
    if chain == "tron":
        return "T" + "".join(secrets.choice(_BASE58) for _ in range(33))
    return "0x" + secrets.token_hex(20)


class LocalCustodyAdapter(CustodyPort):
    def __init__(self) -> None:
        self.movements: List[LedgerMovement] = []
        self._by_key: Dict[str, LedgerMovement] = {}
        self._secrets: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def generate_account(self, chain: str) -> EscrowAccount:
        address = _address(chain)
        handle = f"local:{secrets.token_urlsafe(24)}"
        self._secrets[address] = handle
        logger.debug("generated %s escrow account %s", chain, address)
        return EscrowAccount(address=address, secret_handle=handle)

    async def debit(self, escrow_address, secret_handle, destination, amount, token_address, chain, *, idempotency_key) -> str:
        return await self._move("debit", escrow_address, secret_handle, destination, amount, token_address, chain, idempotency_key)

    async def refund(self, escrow_address, secret_handle, destination, amount, token_address, chain, *, idempotency_key) -> str:
        return await self._move("refund", escrow_address, secret_handle, destination, amount, token_address, chain, idempotency_key)

    async def _move(
        self,
        kind: str,
        escrow_address: str,
        secret_handle: str,
        destination: str,
        amount: str,
        token_address: str,
        chain: str,
        idempotency_key: str,
    ) -> str:
        async with self._lock:
            if self._secrets.get(escrow_address) != secret_handle:
                raise LedgerRejected(f"unknown escrow account or bad credentials: {escrow_address}")
            if idempotency_key in self._by_key:
                raise LedgerRejected(f"escrow already settled under key {idempotency_key}")
            movement = LedgerMovement(
                kind=kind,
                escrow_address=escrow_address,
                destination=destination,
                amount=amount,
                token_address=token_address,
                chain=chain,
                idempotency_key=idempotency_key,
                transaction_id=f"{chain}:{secrets.token_hex(16)}",
            )
            self._by_key[idempotency_key] = movement
            self.movements.append(movement)
        logger.info("ledger %s %s %s -> %s (%s)", kind, amount, escrow_address, destination, movement.transaction_id)
        return movement.transaction_id
