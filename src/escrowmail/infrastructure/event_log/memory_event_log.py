from __future__ import annotations

from typing import Iterable, List

from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.domain.transfer import TransferEvent


class InMemoryEventLog(TransferEventLogPort):
    """Simple in-memory event log (useful for tests)."""

    def __init__(self) -> None:
        self.events: List[dict] = []

    def append(self, event: TransferEvent) -> None:
        self.events.append(event.to_dict())

    def stream(self, transfer_id: str) -> Iterable[dict]:
        return (e for e in self.events if e.get("transfer_id") == transfer_id)

    def types(self, transfer_id: str) -> List[str]:
        return [e["type"] for e in self.stream(transfer_id)]

    def close(self) -> None:
        return None
