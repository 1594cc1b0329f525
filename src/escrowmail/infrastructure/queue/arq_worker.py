"""
arq worker: cron sweeps and queued notification delivery.

Run with:  arq escrowmail.infrastructure.queue.arq_worker.WorkerSettings
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from arq import cron
from arq.worker import Retry

from escrowmail.application.notifications.messages import Notification
from escrowmail.application.notifications.outbox import NotificationDelivery
from escrowmail.application.transfers.service import TransferServicePort
from escrowmail.config import AppConfig, WorkerConfig, load_config
from escrowmail.core.di import Container, bootstrap_dependencies
from escrowmail.infrastructure.logging import configure_logging
from escrowmail.infrastructure.queue.arq_outbox import redis_settings

logger = logging.getLogger(__name__)

_CONFIG: AppConfig = load_config()


async def startup(ctx) -> None:
    configure_logging(_CONFIG.logging)
    _CONFIG.validate_required()
    container = bootstrap_dependencies(_CONFIG, Container())
    ctx["container"] = container
    ctx["service"] = container.resolve(TransferServicePort)
    ctx["delivery"] = container.resolve(NotificationDelivery) if container.has(NotificationDelivery) else None
    logger.info("escrowmail worker started (mode=%s, outbox=%s)", _CONFIG.transfers.mode, _CONFIG.outbox.backend)


async def shutdown(ctx) -> None:
    service = ctx.get("service")
    if service is not None:
        await service.close()
    delivery = ctx.get("delivery")
    if delivery is not None and _CONFIG.outbox.backend == "arq":
        await delivery.close()


async def deliver_notification_job(ctx, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Deliver one queued notification; retried with backoff by arq."""
    notification = Notification.from_dict(payload)
    delivery: NotificationDelivery = ctx["delivery"]
    attempt = int(ctx.get("job_try") or 1)
    try:
        await delivery.deliver(notification)
    except Exception as e:
        if attempt >= _CONFIG.outbox.max_attempts:
            logger.error("notification %s dropped after %d attempts: %s", notification.dedupe_key, attempt, e)
            delivery.record_failure(notification, e, attempt)
            return {"status": "failed", "attempts": attempt}
        delay = _CONFIG.outbox.base_delay_seconds * (2 ** (attempt - 1))
        logger.warning("notification %s attempt %d failed (%s); retrying in %.1fs", notification.dedupe_key, attempt, e, delay)
        raise Retry(defer=delay) from e
    return {"status": "sent", "attempts": attempt}


async def sweep_expired_job(ctx) -> Dict[str, Any]:
    service: TransferServicePort = ctx["service"]
    return {"status": "ok", "expired_count": await service.sweep_expired()}


async def sweep_reminders_job(ctx) -> Dict[str, Any]:
    service: TransferServicePort = ctx["service"]
    return {"status": "ok", "reminded_count": await service.sweep_reminders()}


def build_cron_jobs(config: WorkerConfig):
    """Expiry every hour; reminders on the configured hours."""
    return [
        cron(sweep_expired_job, minute=config.expiry_cron_minute, run_at_startup=config.run_at_startup),
        cron(
            sweep_reminders_job,
            hour=set(config.reminder_cron_hours),
            minute=config.reminder_cron_minute,
            run_at_startup=config.run_at_startup,
        ),
    ]


class WorkerSettings:
    functions = [deliver_notification_job, sweep_expired_job, sweep_reminders_job]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings(_CONFIG.redis)
    max_tries = _CONFIG.outbox.max_attempts

    cron_jobs = build_cron_jobs(_CONFIG.worker)
