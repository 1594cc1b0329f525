from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, TypeVar

from sqlalchemy import asc, select

from escrowmail.domain.transfer import PendingTransfer, TransferStatus
from escrowmail.infrastructure.stores.models import Base, PendingTransferModel
from escrowmail.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PENDING = TransferStatus.PENDING.value


def _utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _to_domain(row: PendingTransferModel) -> PendingTransfer:
    return PendingTransfer(
        transfer_id=row.transfer_id,
        recipient_email=row.recipient_email,
        sender_user_id=row.sender_user_id,
        sender_email=row.sender_email or "",
        sender_name=row.sender_name or "",
        amount=row.amount,
        token=row.token,
        token_address=row.token_address or "",
        chain=row.chain,
        decimals=int(row.decimals or 0),
        status=TransferStatus(row.status),
        escrow_address=row.escrow_address,
        escrow_secret=row.escrow_secret,
        deposit_transaction_id=row.deposit_transaction_id or "",
        message=row.message,
        created_at=row.created_at,
        expires_at=row.expires_at,
        claimed_at=row.claimed_at,
        claimed_by_user_id=row.claimed_by_user_id,
        resolution_transaction_id=row.resolution_transaction_id,
        reminder_sent_at=row.reminder_sent_at,
    )


class SqlAlchemyTransferStore:
    """
    SQL-backed transfer store.

    Sessions are synchronous; every public method hops to a worker thread so
    the event loop never blocks on the database. The reservation columns
    (resolution_token/action/started_at) are only touched through conditional
    UPDATEs, which makes acquire_resolution() an atomic compare-and-swap.
    """

    def __init__(self, db_url: Optional[str] = None, *, auto_create_schema: bool = True):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        if auto_create_schema:
            # Dev/test convenience; deployments run the Alembic migrations.
            Base.metadata.create_all(self._provider.engine)

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(fn, *args, **kwargs)

    # ---- CRUD ----

    async def create(self, transfer: PendingTransfer) -> PendingTransfer:
        return await self._run(self._create, transfer)

    def _create(self, transfer: PendingTransfer) -> PendingTransfer:
        with self._provider.session() as session:
            row = PendingTransferModel(
                transfer_id=transfer.transfer_id,
                recipient_email=transfer.recipient_email,
                sender_user_id=transfer.sender_user_id,
                sender_email=transfer.sender_email,
                sender_name=transfer.sender_name,
                amount=transfer.amount,
                token=transfer.token,
                token_address=transfer.token_address,
                chain=transfer.chain,
                decimals=transfer.decimals,
                status=transfer.status.value,
                escrow_address=transfer.escrow_address,
                escrow_secret=transfer.escrow_secret,
                deposit_transaction_id=transfer.deposit_transaction_id,
                message=transfer.message,
                created_at=_utc(transfer.created_at),
                expires_at=_utc(transfer.expires_at),
            )
            session.add(row)
            session.commit()
            return _to_domain(row)

    async def get(self, transfer_id: str) -> Optional[PendingTransfer]:
        return await self._run(self._get, transfer_id)

    def _get(self, transfer_id: str) -> Optional[PendingTransfer]:
        with self._provider.session() as session:
            row = session.get(PendingTransferModel, transfer_id)
            return _to_domain(row) if row is not None else None

    async def update_sender_profile(self, transfer_id: str, *, sender_email: str, sender_name: str) -> None:
        await self._run(self._update_sender_profile, transfer_id, sender_email, sender_name)

    def _update_sender_profile(self, transfer_id: str, sender_email: str, sender_name: str) -> None:
        table = PendingTransferModel.__table__
        with self._provider.session() as session:
            session.execute(
                table.update()
                .where(table.c.transfer_id == transfer_id)
                .values(sender_email=sender_email or "", sender_name=sender_name or "")
            )
            session.commit()

    # ---- Range queries ----

    async def list_by_recipient(self, recipient_email: str) -> List[PendingTransfer]:
        stmt = (
            select(PendingTransferModel)
            .where(
                PendingTransferModel.recipient_email == recipient_email,
                PendingTransferModel.status == _PENDING,
            )
            .order_by(asc(PendingTransferModel.created_at))
        )
        return await self._run(self._select, stmt)

    async def list_by_sender(self, sender_user_id: str) -> List[PendingTransfer]:
        stmt = (
            select(PendingTransferModel)
            .where(PendingTransferModel.sender_user_id == sender_user_id)
            .order_by(asc(PendingTransferModel.created_at))
        )
        return await self._run(self._select, stmt)

    async def list_expired(self, now: datetime) -> List[PendingTransfer]:
        stmt = (
            select(PendingTransferModel)
            .where(
                PendingTransferModel.status == _PENDING,
                PendingTransferModel.expires_at < _utc(now),
            )
            .order_by(asc(PendingTransferModel.expires_at))
        )
        return await self._run(self._select, stmt)

    async def list_expiring(self, now: datetime, until: datetime) -> List[PendingTransfer]:
        stmt = (
            select(PendingTransferModel)
            .where(
                PendingTransferModel.status == _PENDING,
                PendingTransferModel.expires_at > _utc(now),
                PendingTransferModel.expires_at <= _utc(until),
                PendingTransferModel.reminder_sent_at.is_(None),
            )
            .order_by(asc(PendingTransferModel.expires_at))
        )
        return await self._run(self._select, stmt)

    async def list_stalled_resolutions(self, older_than: datetime) -> List[PendingTransfer]:
        stmt = select(PendingTransferModel).where(
            PendingTransferModel.status == _PENDING,
            PendingTransferModel.resolution_token.is_not(None),
            PendingTransferModel.resolution_started_at < _utc(older_than),
        )
        return await self._run(self._select, stmt)

    def _select(self, stmt) -> List[PendingTransfer]:
        with self._provider.session() as session:
            return [_to_domain(row) for row in session.execute(stmt).scalars()]

    # ---- Reservation protocol ----

    async def acquire_resolution(self, transfer_id: str, *, token: str, action: str, now: datetime) -> bool:
        return await self._run(self._acquire_resolution, transfer_id, token, action, now)

    def _acquire_resolution(self, transfer_id: str, token: str, action: str, now: datetime) -> bool:
        table = PendingTransferModel.__table__
        with self._provider.session() as session:
            result = session.execute(
                table.update()
                .where(
                    table.c.transfer_id == transfer_id,
                    table.c.status == _PENDING,
                    table.c.resolution_token.is_(None),
                )
                .values(resolution_token=token, resolution_action=action, resolution_started_at=_utc(now))
            )
            session.commit()
            return result.rowcount == 1

    async def complete_resolution(
        self,
        transfer_id: str,
        *,
        token: str,
        status: TransferStatus,
        resolution_transaction_id: str,
        claimed_by_user_id: Optional[str] = None,
        claimed_at: Optional[datetime] = None,
    ) -> PendingTransfer:
        return await self._run(
            self._complete_resolution,
            transfer_id,
            token,
            TransferStatus(status),
            resolution_transaction_id,
            claimed_by_user_id,
            claimed_at,
        )

    def _complete_resolution(
        self,
        transfer_id: str,
        token: str,
        status: TransferStatus,
        resolution_transaction_id: str,
        claimed_by_user_id: Optional[str],
        claimed_at: Optional[datetime],
    ) -> PendingTransfer:
        if not status.is_terminal:
            raise ValueError("complete_resolution requires a terminal status")
        table = PendingTransferModel.__table__
        values = {
            "status": status.value,
            "resolution_transaction_id": resolution_transaction_id,
            "resolution_token": None,
            "resolution_action": None,
            "resolution_started_at": None,
        }
        if status is TransferStatus.CLAIMED:
            values["claimed_by_user_id"] = claimed_by_user_id
            values["claimed_at"] = _utc(claimed_at)
        with self._provider.session() as session:
            result = session.execute(
                table.update()
                .where(
                    table.c.transfer_id == transfer_id,
                    table.c.status == _PENDING,
                    table.c.resolution_token == token,
                )
                .values(**values)
            )
            if result.rowcount != 1:
                session.rollback()
                raise RuntimeError(f"reservation on {transfer_id} is not held by this resolver")
            session.commit()
            row = session.get(PendingTransferModel, transfer_id)
            return _to_domain(row)

    async def release_resolution(self, transfer_id: str, *, token: str) -> None:
        await self._run(self._release_resolution, transfer_id, token)

    def _release_resolution(self, transfer_id: str, token: str) -> None:
        table = PendingTransferModel.__table__
        with self._provider.session() as session:
            result = session.execute(
                table.update()
                .where(table.c.transfer_id == transfer_id, table.c.resolution_token == token)
                .values(resolution_token=None, resolution_action=None, resolution_started_at=None)
            )
            session.commit()
            if result.rowcount != 1:
                logger.warning("release of %s found no matching reservation", transfer_id)

    async def mark_reminder_sent(self, transfer_id: str, *, now: datetime) -> None:
        await self._run(self._mark_reminder_sent, transfer_id, now)

    def _mark_reminder_sent(self, transfer_id: str, now: datetime) -> None:
        table = PendingTransferModel.__table__
        with self._provider.session() as session:
            session.execute(
                table.update()
                .where(table.c.transfer_id == transfer_id, table.c.reminder_sent_at.is_(None))
                .values(reminder_sent_at=_utc(now))
            )
            session.commit()

    def close(self) -> None:
        self._provider.dispose()
