from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from escrowmail.domain.transfer import TransferEvent


@runtime_checkable
class TransferEventLogPort(Protocol):
    """
    Append-only audit trail of transfer lifecycle events.

    Implementations may log to stdout, keep events in memory, or persist them.
    """

    def append(self, event: TransferEvent) -> None:
        """Append one event."""

    def stream(self, transfer_id: str) -> Iterable[dict]:
        """
        Stream events for one transfer in append order.

        Backends that cannot replay return an empty iterator.
        """

    def close(self) -> None:
        """Close underlying resources (optional)."""
