from __future__ import annotations

import logging
from typing import List, Optional

from escrowmail.application.ports.notification_port import NotificationGatewayPort, RenderedEmail


class LoggingGateway(NotificationGatewayPort):
    """Development gateway: logs the email instead of sending it."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("escrowmail.mail")
        self.sent: List[RenderedEmail] = []

    async def send(self, email: RenderedEmail) -> None:
        self.sent.append(email)
        self._logger.info("mail to=%s subject=%r (%d bytes)", email.to, email.subject, len(email.html))
