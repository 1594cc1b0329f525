"""baseline schema

Revision ID: 0001_baseline_schema
Revises: None
Create Date: 2026-10-19

Creates pending_transfers (with the resolution reservation columns and
reminder_sent_at) and transfer_events.
"""

from __future__ import annotations

from alembic import context, op
import sqlalchemy as sa


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def _is_offline() -> bool:
    try:
        return bool(context.is_offline_mode())
    except Exception:
        return False


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def upgrade() -> None:
    # Online mode skips tables that auto_create_schema already made.
    if _is_offline() or not _has_table("pending_transfers"):
        op.create_table(
            "pending_transfers",
            sa.Column("transfer_id", sa.String(length=64), primary_key=True),
            sa.Column("recipient_email", sa.String(length=320), nullable=False),
            sa.Column("sender_user_id", sa.String(length=128), nullable=False),
            sa.Column("sender_email", sa.String(length=320), server_default="", nullable=False),
            sa.Column("sender_name", sa.String(length=256), server_default="", nullable=False),
            sa.Column("amount", sa.String(length=80), nullable=False),
            sa.Column("token", sa.String(length=32), nullable=False),
            sa.Column("token_address", sa.String(length=128), server_default="", nullable=False),
            sa.Column("chain", sa.String(length=16), nullable=False),
            sa.Column("decimals", sa.Integer(), server_default="0", nullable=False),
            sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
            sa.Column("escrow_address", sa.String(length=128), nullable=False),
            sa.Column("escrow_secret", sa.Text(), nullable=False),
            sa.Column("deposit_transaction_id", sa.String(length=128), server_default="", nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("claimed_by_user_id", sa.String(length=128), nullable=True),
            sa.Column("resolution_transaction_id", sa.String(length=128), nullable=True),
            sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resolution_token", sa.String(length=64), nullable=True),
            sa.Column("resolution_action", sa.String(length=16), nullable=True),
            sa.Column("resolution_started_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_pending_transfers_sender_user_id", "pending_transfers", ["sender_user_id"])
        op.create_index("ix_pending_transfers_recipient_status", "pending_transfers", ["recipient_email", "status"])
        op.create_index("ix_pending_transfers_status_expires", "pending_transfers", ["status", "expires_at"])

    if _is_offline() or not _has_table("transfer_events"):
        op.create_table(
            "transfer_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("transfer_id", sa.String(length=64), nullable=False),
            sa.Column("type", sa.String(length=64), server_default="", nullable=False),
            sa.Column("actor", sa.String(length=128), server_default="system", nullable=False),
            sa.Column("payload_json", sa.Text(), server_default="{}", nullable=False),
            sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_transfer_events_transfer_id", "transfer_events", ["transfer_id"])
        op.create_index("ix_transfer_events_ts", "transfer_events", ["ts"])


def downgrade() -> None:
    op.drop_table("transfer_events")
    op.drop_table("pending_transfers")
