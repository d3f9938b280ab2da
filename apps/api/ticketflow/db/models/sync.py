"""Sync bookkeeping ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.db.base import Base
from ticketflow.db.enums import DEFAULT_SYNC_STATUS, SyncStatus, TriggerType
from ticketflow.db.models._types import enum_type, now_utc


class SyncLog(Base):
    """
    One row per sync attempt.

    RUNNING is transient: every row ends SUCCESS or FAILED, including rows
    left behind by a crashed process (see sync_config_service.recover_stale_sync_logs).
    """

    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("idx_sync_logs_start", "start_time"),
        Index("idx_sync_logs_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_time: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    tickets_synced: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tickets_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[SyncStatus] = mapped_column(
        enum_type(SyncStatus, name="sync_status"),
        default=DEFAULT_SYNC_STATUS,
        nullable=False,
    )
    trigger_type: Mapped[TriggerType] = mapped_column(
        enum_type(TriggerType, name="sync_trigger_type"), nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(String(1024), nullable=True)


class SyncConfig(Base):
    """Mutable key/value sync setting."""

    __tablename__ = "sync_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    config_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    config_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=now_utc, onupdate=now_utc, nullable=False
    )
