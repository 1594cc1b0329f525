"""
Test doubles for the external ports.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List

from escrowmail.application.notifications.messages import Notification
from escrowmail.application.ports.custody_port import EscrowAccount
from escrowmail.infrastructure.directory import InMemoryDirectory

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

SENDER = "u-alice"
RECIPIENT = "u-bob"
STRANGER = "u-carol"


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@dataclass
class Movement:
    kind: str
    escrow_address: str
    secret_handle: str
    destination: str
    amount: str
    idempotency_key: str
    transaction_id: str


class RecordingCustody:
    def __init__(self) -> None:
        self.accounts = 0
        self.calls: List[Movement] = []
        self.fail_generate = False
        self.fail_movements = 0

    async def generate_account(self, chain: str) -> EscrowAccount:
        if self.fail_generate:
            raise RuntimeError("custody unavailable")
        self.accounts += 1
        return EscrowAccount(address=f"escrow-{chain}-{self.accounts}", secret_handle=f"secret-{self.accounts}")

    async def debit(self, escrow_address, secret_handle, destination, amount, token_address, chain, *, idempotency_key):
        return await self._move("debit", escrow_address, secret_handle, destination, amount, idempotency_key)

    async def refund(self, escrow_address, secret_handle, destination, amount, token_address, chain, *, idempotency_key):
        return await self._move("refund", escrow_address, secret_handle, destination, amount, idempotency_key)

    async def _move(self, kind, escrow_address, secret_handle, destination, amount, idempotency_key) -> str:
        # Yield so concurrent resolvers interleave here.
        await asyncio.sleep(0)
        if self.fail_movements:
            self.fail_movements -= 1
            raise RuntimeError("ledger timeout")
        tx_id = f"tx-{kind}-{len(self.calls) + 1}"
        self.calls.append(
            Movement(kind, escrow_address, secret_handle, destination, amount, idempotency_key, tx_id)
        )
        return tx_id

    def of(self, kind: str) -> List[Movement]:
        return [c for c in self.calls if c.kind == kind]


class RecordingOutbox:
    def __init__(self) -> None:
        self.sent: List[Notification] = []
        self.closed = False

    async def enqueue(self, notification: Notification) -> None:
        self.sent.append(notification)

    async def close(self) -> None:
        self.closed = True

    def kinds(self) -> List[str]:
        return [n.kind.value for n in self.sent]


def seed_users(directory: InMemoryDirectory) -> None:
    directory.register_user(SENDER, "alice@example.com", "Alice", wallets={"evm": "0xalice", "solana": "AliceSol"})
    directory.register_user(RECIPIENT, "Bob@Example.com", None, wallets={"evm": "0xbob"})
    directory.register_user(STRANGER, "carol@example.com", "Carol")


async def create_transfer(service, **overrides):
    fields = dict(
        sender_user_id=SENDER,
        recipient_email="bob@example.com",
        amount="10.00",
        token="USDC",
        token_address="0xusdc",
        chain="evm",
        decimals=6,
    )
    fields.update(overrides)
    return await service.create(**fields)
