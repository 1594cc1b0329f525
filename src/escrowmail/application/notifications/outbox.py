"""
Notification delivery and the in-process outbox.

Transfer operations only ever call `enqueue()`. Rendering, provider calls and
retries happen here, off the request path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from escrowmail.application.background import BackgroundTasks
from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.application.ports.notification_port import NotificationGatewayPort
from escrowmail.domain.transfer import TransferEvent

from .messages import Notification
from .renderer import EmailRenderer

logger = logging.getLogger(__name__)


class NotificationDelivery:
    """Render + send one notification. Raises on failure so callers can retry."""

    def __init__(
        self,
        gateway: NotificationGatewayPort,
        renderer: Optional[EmailRenderer] = None,
        *,
        event_log: Optional[TransferEventLogPort] = None,
    ):
        self.gateway = gateway
        self.renderer = renderer or EmailRenderer()
        self.event_log = event_log

    async def deliver(self, notification: Notification) -> None:
        email = self.renderer.render(notification)
        await self.gateway.send(email)
        logger.info("notification %s sent for transfer %s", notification.kind.value, notification.transfer_id)
        self._record(notification, "notification_sent")

    async def close(self) -> None:
        close = getattr(self.gateway, "close", None)
        if close is not None:
            await close()

    def record_failure(self, notification: Notification, error: Exception, attempts: int) -> None:
        self._record(notification, "notification_failed", error=str(error), attempts=attempts)

    def _record(self, notification: Notification, event_type: str, **extra) -> None:
        if self.event_log is None:
            return
        try:
            self.event_log.append(
                TransferEvent(
                    transfer_id=notification.transfer_id,
                    type=event_type,
                    actor="outbox",
                    payload={"kind": notification.kind.value, **extra},
                )
            )
        except Exception as e:
            logger.debug(f"event log append failed: {e}")


class InProcessOutbox:
    """
    Delivers notifications as detached asyncio tasks with exponential backoff.

    Exhausted notifications are logged at error level and dropped.
    """

    def __init__(
        self,
        delivery: NotificationDelivery,
        *,
        max_attempts: int = 5,
        base_delay_seconds: float = 2.0,
        concurrency: int = 8,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.delivery = delivery
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_seconds = max(0.0, float(base_delay_seconds))
        self._concurrency = max(1, int(concurrency))
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._sleep = sleep
        self._tasks = BackgroundTasks("outbox")

    async def enqueue(self, notification: Notification) -> None:
        if not notification.to:
            logger.warning(
                "notification %s for transfer %s has no recipient address; skipped",
                notification.kind.value,
                notification.transfer_id,
            )
            return
        try:
            self._tasks.spawn(self._deliver_with_retry(notification), label=notification.dedupe_key)
        except Exception as e:
            logger.warning(f"could not schedule notification {notification.dedupe_key}: {e}")

    async def _deliver_with_retry(self, notification: Notification) -> None:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._concurrency)
        async with self._semaphore:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    await self.delivery.deliver(notification)
                    return
                except Exception as e:
                    if attempt >= self.max_attempts:
                        logger.error(
                            "notification %s dropped after %d attempts: %s",
                            notification.dedupe_key,
                            attempt,
                            e,
                        )
                        self.delivery.record_failure(notification, e, attempt)
                        return
                    delay = self.base_delay_seconds * (2 ** (attempt - 1))
                    logger.warning(
                        "notification %s attempt %d failed (%s); retrying in %.1fs",
                        notification.dedupe_key,
                        attempt,
                        e,
                        delay,
                    )
                    await self._sleep(delay)

    async def join(self) -> None:
        await self._tasks.drain()

    async def close(self) -> None:
        await self.join()
        await self.delivery.close()
