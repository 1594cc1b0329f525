"""
Composition root: pick every collaborator once, from configuration.

The API, the worker and the CLI all resolve TransferServicePort from the
container built here; nothing downstream branches on the chosen backends.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from escrowmail.application.notifications.outbox import InProcessOutbox, NotificationDelivery
from escrowmail.application.notifications.renderer import EmailRenderer
from escrowmail.application.ports.custody_port import CustodyPort
from escrowmail.application.ports.directory_port import DirectoryPort
from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.application.ports.notification_port import NotificationGatewayPort, NotificationOutboxPort
from escrowmail.application.ports.transfer_store_port import TransferStorePort
from escrowmail.application.transfers.runtime import TransferRuntime
from escrowmail.application.transfers.service import PendingTransferService, TransferServicePort
from escrowmail.config import AppConfig, load_config
from escrowmail.domain.transfer import utcnow
from escrowmail.infrastructure.api_clients.base import APIClient
from escrowmail.infrastructure.api_clients.remote_transfer_client import RemoteTransferService
from escrowmail.infrastructure.custody import HttpCustodyAdapter, LocalCustodyAdapter
from escrowmail.infrastructure.directory import HttpDirectory, InMemoryDirectory
from escrowmail.infrastructure.event_log import CompositeEventLog, InMemoryEventLog, LoggingEventLog, SqlAlchemyEventLog
from escrowmail.infrastructure.notifications import LoggingGateway, ResendGateway
from escrowmail.infrastructure.notifications.resend_gateway import RESEND_API_URL
from escrowmail.infrastructure.queue.arq_outbox import ArqOutbox, redis_settings
from escrowmail.infrastructure.stores.transfer_store import SqlAlchemyTransferStore

from .container import Container

logger = logging.getLogger(__name__)


def _event_log(config: AppConfig) -> TransferEventLogPort:
    backends: List[TransferEventLogPort] = []
    for name in config.event_log.backends:
        if name == "logging":
            backends.append(LoggingEventLog())
        elif name == "sqlalchemy":
            backends.append(SqlAlchemyEventLog(config.database.url, auto_create_schema=config.database.auto_create_schema))
        elif name == "memory":
            backends.append(InMemoryEventLog())
    if len(backends) == 1:
        return backends[0]
    return CompositeEventLog(backends)


def _custody(config: AppConfig) -> CustodyPort:
    cfg = config.custody
    if cfg.backend == "http":
        return HttpCustodyAdapter(APIClient(cfg.base_url, api_key=cfg.api_key, timeout=cfg.timeout))
    return LocalCustodyAdapter()


def _directory(config: AppConfig) -> DirectoryPort:
    cfg = config.directory
    if cfg.backend == "http":
        return HttpDirectory(APIClient(cfg.base_url, api_key=cfg.api_key, timeout=cfg.timeout))
    directory = InMemoryDirectory()
    for user in cfg.users:
        directory.register_user(user.user_id, user.email, user.display_name, wallets=user.wallets)
    return directory


def _gateway(config: AppConfig) -> NotificationGatewayPort:
    cfg = config.notifications
    if cfg.backend == "resend":
        return ResendGateway(APIClient(RESEND_API_URL, api_key=cfg.resend_api_key), from_address=cfg.from_address)
    return LoggingGateway()


def _outbox(config: AppConfig, delivery: NotificationDelivery) -> NotificationOutboxPort:
    cfg = config.outbox
    if cfg.backend == "arq":
        return ArqOutbox(redis_settings(config.redis))
    return InProcessOutbox(
        delivery,
        max_attempts=cfg.max_attempts,
        base_delay_seconds=cfg.base_delay_seconds,
        concurrency=cfg.concurrency,
    )


def bootstrap_dependencies(
    config: Optional[AppConfig] = None,
    container: Optional[Container] = None,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> Container:
    """Register the transfer service and its collaborators."""
    config = config or load_config()
    container = container or Container.instance()
    container.register_instance(AppConfig, config)

    if config.transfers.mode == "remote":
        client = APIClient(
            config.transfers.remote_base_url,
            api_key=config.transfers.remote_api_key,
            timeout=config.transfers.remote_timeout,
        )
        container.register_instance(TransferServicePort, RemoteTransferService(client))
        logger.info("transfer service: remote (%s)", config.transfers.remote_base_url)
        return container

    event_log = _event_log(config)
    store = SqlAlchemyTransferStore(config.database.url, auto_create_schema=config.database.auto_create_schema)
    custody = _custody(config)
    directory = _directory(config)
    renderer = EmailRenderer(config.notifications.templates_dir, support_email=config.notifications.support_email)
    delivery = NotificationDelivery(_gateway(config), renderer, event_log=event_log)
    outbox = _outbox(config, delivery)

    runtime = TransferRuntime(
        store=store,
        custody=custody,
        directory=directory,
        outbox=outbox,
        event_log=event_log,
        app_url=config.transfers.app_url,
        clock=clock,
    )
    service = PendingTransferService(
        runtime,
        supported_chains=config.transfers.supported_chains,
        reminder_window=timedelta(hours=config.transfers.reminder_window_hours),
        stall_after=timedelta(minutes=config.transfers.stall_after_minutes),
    )

    container.register_instance(TransferEventLogPort, event_log)
    container.register_instance(TransferStorePort, store)
    container.register_instance(CustodyPort, custody)
    container.register_instance(DirectoryPort, directory)
    container.register_instance(NotificationGatewayPort, delivery.gateway)
    container.register_instance(NotificationDelivery, delivery)
    container.register_instance(NotificationOutboxPort, outbox)
    container.register_instance(TransferServicePort, service)
    logger.info(
        "transfer service: local (custody=%s, directory=%s, mail=%s, outbox=%s)",
        config.custody.backend,
        config.directory.backend,
        config.notifications.backend,
        config.outbox.backend,
    )
    return container
