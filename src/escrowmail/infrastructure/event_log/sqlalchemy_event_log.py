from __future__ import annotations

import logging
from datetime import timezone
from typing import Iterable, List, Optional

from sqlalchemy import asc, select

from escrowmail.application.ports.event_log_port import TransferEventLogPort
from escrowmail.domain.transfer import TransferEvent, ensure_aware
from escrowmail.infrastructure.stores.models import Base, TransferEventModel
from escrowmail.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url

logger = logging.getLogger(__name__)


class SqlAlchemyEventLog(TransferEventLogPort):
    """
    Persist audit events via SQLAlchemy.

    - append(): insert one row
    - stream(transfer_id): yield events ordered by ts, then insertion order
    """

    def __init__(self, db_url: Optional[str] = None, *, auto_create_schema: bool = True):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        if auto_create_schema:
            # Safety net for local dev/tests. In production, prefer Alembic migrations.
            Base.metadata.create_all(self._provider.engine)

    def append(self, event: TransferEvent) -> None:
        if not event.transfer_id:
            raise ValueError("Event missing transfer_id")
        with self._provider.session() as session:
            row = TransferEventModel(
                transfer_id=event.transfer_id,
                type=event.type,
                actor=event.actor or "system",
                ts=event.ts.astimezone(timezone.utc),
            )
            row.set_payload(event.payload)
            session.add(row)
            session.commit()

    def stream(self, transfer_id: str) -> Iterable[dict]:
        return iter(self.list_events(transfer_id))

    def list_events(self, transfer_id: str, *, limit: int = 1000) -> List[dict]:
        with self._provider.session() as session:
            stmt = (
                select(TransferEventModel)
                .where(TransferEventModel.transfer_id == transfer_id)
                .order_by(asc(TransferEventModel.ts), asc(TransferEventModel.id))
                .limit(limit)
            )
            return [
                {
                    "transfer_id": row.transfer_id,
                    "type": row.type,
                    "actor": row.actor,
                    "payload": row.get_payload(),
                    "ts": ensure_aware(row.ts).isoformat(),
                }
                for row in session.execute(stmt).scalars()
            ]

    def close(self) -> None:
        try:
            self._provider.dispose()
        except Exception as e:
            logger.debug(f"event log dispose failed: {e}")
