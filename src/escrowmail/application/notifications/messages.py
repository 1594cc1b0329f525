from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class NotificationKind(str, Enum):
    INVITE = "invite"
    SENDER_CONFIRMATION = "sender_confirmation"
    EXPIRING_REMINDER = "expiring_reminder"
    CLAIMED = "claimed"
    EXPIRED = "expired"


@dataclass
class Notification:
    """
    A templated email waiting for delivery.

    `context` must stay JSON-serializable: the arq outbox ships it through Redis.
    """

    kind: NotificationKind
    to: str
    transfer_id: str
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.kind = NotificationKind(self.kind)

    @property
    def dedupe_key(self) -> str:
        return f"{self.kind.value}:{self.transfer_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "to": self.to,
            "transfer_id": self.transfer_id,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        return cls(
            kind=NotificationKind(data["kind"]),
            to=data["to"],
            transfer_id=data["transfer_id"],
            context=dict(data.get("context") or {}),
        )
