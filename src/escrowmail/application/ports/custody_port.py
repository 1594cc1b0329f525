from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class EscrowAccount:
    """A freshly generated per-transfer escrow account."""

    address: str
    # Opaque to the core: stored and handed back to custody, never parsed.
    secret_handle: str = field(repr=False)


@runtime_checkable
class CustodyPort(Protocol):
    """
    Ledger capability: escrow account generation plus debit/refund.

    Implementations raise on failure; the resolvers translate that into
    CustodyError. `idempotency_key` is bound 1:1 to a transfer so a ledger
    that honours it rejects a second movement out of the same escrow.
    """

    async def generate_account(self, chain: str) -> EscrowAccount:
        ...

    async def debit(
        self,
        escrow_address: str,
        secret_handle: str,
        destination: str,
        amount: str,
        token_address: str,
        chain: str,
        *,
        idempotency_key: str,
    ) -> str:
        """Move escrowed funds to the claimant; returns the ledger tx id."""

    async def refund(
        self,
        escrow_address: str,
        secret_handle: str,
        destination: str,
        amount: str,
        token_address: str,
        chain: str,
        *,
        idempotency_key: str,
    ) -> str:
        """Return escrowed funds to the sender; returns the ledger tx id."""
