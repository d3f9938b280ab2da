"""Baseline migration - tickets, workflow children and sync bookkeeping

Revision ID: 0001_ticketflow_baseline
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_ticketflow_baseline"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # Tickets
    # ==========================================================================
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(64), nullable=False, unique=True),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("source_lang", sa.String(16), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("is_valid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_tickets_status_updated", "tickets", ["status", "updated_at"])

    op.create_table(
        "ticket_translations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("target_lang", sa.String(16), nullable=False),
        sa.Column("translated_title", sa.Text(), nullable=True),
        sa.Column("translated_content", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("ticket_id", "target_lang", name="uq_ticket_translation_lang"),
    )

    op.create_table(
        "ticket_replies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reply_lang", sa.String(16), nullable=True),
        sa.Column("zh_reply", sa.Text(), nullable=True),
        sa.Column("target_reply", sa.Text(), nullable=True),
        sa.Column("is_selected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_ticket_replies_ticket_created", "ticket_replies", ["ticket_id", "created_at"]
    )

    op.create_table(
        "ticket_audits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.Integer(),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reply_id", sa.Integer(), nullable=False),
        sa.Column("audit_result", sa.String(32), nullable=False),
        sa.Column("audit_remark", sa.Text(), nullable=True),
        sa.Column("auditor_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_ticket_audits_ticket_created", "ticket_audits", ["ticket_id", "created_at"]
    )

    # ==========================================================================
    # Sync bookkeeping
    # ==========================================================================
    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tickets_synced", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tickets_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("trigger_type", sa.String(32), nullable=False),
        sa.Column("error_message", sa.String(1024), nullable=True),
    )
    op.create_index("idx_sync_logs_start", "sync_logs", ["start_time"])
    op.create_index("idx_sync_logs_status", "sync_logs", ["status"])

    op.create_table(
        "sync_configs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("config_key", sa.String(64), nullable=False, unique=True),
        sa.Column("config_value", sa.Text(), nullable=True),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("sync_configs")
    op.drop_index("idx_sync_logs_status", table_name="sync_logs")
    op.drop_index("idx_sync_logs_start", table_name="sync_logs")
    op.drop_table("sync_logs")
    op.drop_index("idx_ticket_audits_ticket_created", table_name="ticket_audits")
    op.drop_table("ticket_audits")
    op.drop_index("idx_ticket_replies_ticket_created", table_name="ticket_replies")
    op.drop_table("ticket_replies")
    op.drop_table("ticket_translations")
    op.drop_index("idx_tickets_status_updated", table_name="tickets")
    op.drop_table("tickets")
