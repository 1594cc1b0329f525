from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from escrowmail.application.notifications.messages import Notification


@dataclass(frozen=True)
class RenderedEmail:
    to: str
    subject: str
    html: str


@runtime_checkable
class NotificationGatewayPort(Protocol):
    """Email provider. May raise; only the outbox calls it."""

    async def send(self, email: RenderedEmail) -> None:
        ...


@runtime_checkable
class NotificationOutboxPort(Protocol):
    """
    Fire-and-forget hand-off point for notifications.

    enqueue() must never raise: delivery, retries and failures belong to the
    outbox, not to the transfer operation that produced the notification.
    """

    async def enqueue(self, notification: Notification) -> None:
        ...

    async def close(self) -> None:
        ...
