from __future__ import annotations

import logging

from escrowmail.application.ports.notification_port import NotificationGatewayPort, RenderedEmail
from escrowmail.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com"


class ResendGateway(NotificationGatewayPort):
    """Sends email through the Resend HTTP API. Raises on failure; the outbox retries."""

    def __init__(self, client: APIClient, *, from_address: str):
        self.client = client
        self.from_address = from_address

    async def send(self, email: RenderedEmail) -> None:
        data = await self.client.post(
            "emails",
            {"from": self.from_address, "to": [email.to], "subject": email.subject, "html": email.html},
        ) or {}
        logger.debug("resend accepted email %s", data.get("id"))

    async def close(self) -> None:
        await self.client.close()
