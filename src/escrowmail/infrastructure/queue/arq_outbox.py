from __future__ import annotations

import logging
from typing import Optional

from arq.connections import ArqRedis, RedisSettings, create_pool

from escrowmail.application.notifications.messages import Notification
from escrowmail.config import RedisConfig

logger = logging.getLogger(__name__)

DELIVER_JOB = "deliver_notification_job"


def redis_settings(config: Optional[RedisConfig] = None) -> RedisSettings:
    config = config or RedisConfig()
    return RedisSettings(
        host=config.host,
        port=int(config.port),
        database=int(config.database),
        password=config.password or None,
    )


class ArqOutbox:
    """
    Hands notifications to the arq worker through Redis.

    The dedupe key doubles as the arq job id, so a notification that is
    already queued is not queued twice.
    """

    def __init__(self, settings: Optional[RedisSettings] = None, *, pool: Optional[ArqRedis] = None):
        self.settings = settings or redis_settings()
        self._pool = pool

    async def _get_pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_pool(self.settings)
        return self._pool

    async def enqueue(self, notification: Notification) -> None:
        if not notification.to:
            logger.warning(
                "notification %s for transfer %s has no recipient address; skipped",
                notification.kind.value,
                notification.transfer_id,
            )
            return
        try:
            pool = await self._get_pool()
            job = await pool.enqueue_job(DELIVER_JOB, notification.to_dict(), _job_id=notification.dedupe_key)
        except Exception as e:
            logger.error(f"could not enqueue notification {notification.dedupe_key}: {e}")
            return
        if job is None:
            logger.info("notification %s already queued", notification.dedupe_key)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
