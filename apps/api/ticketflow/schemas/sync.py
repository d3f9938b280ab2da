"""Pydantic schemas for sync APIs."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ticketflow.db.enums import SyncStatus, TriggerType


class SyncOutcome(BaseModel):
    """Result of one sync attempt. Returned in every case, including busy and failure."""

    new_count: int = 0
    updated_count: int = 0
    success: bool
    message: str


class SyncConfigResponse(BaseModel):
    cron_expression: str | None = None
    sync_enabled: bool
    last_sync_time: datetime | None = None
    is_syncing: bool


class SyncStatusResponse(BaseModel):
    is_syncing: bool
    last_sync_time: datetime | None = None


class SyncConfigUpdate(BaseModel):
    """Partial update; omitted fields are left untouched."""

    cron_expression: str | None = Field(default=None, min_length=1)
    sync_enabled: bool | None = None
    # ISO-8601 timestamp, or "" to force the next run to be a full sync
    last_sync_time: str | None = None


class SyncLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_time: datetime
    end_time: datetime | None = None
    tickets_synced: int
    tickets_updated: int
    status: SyncStatus
    trigger_type: TriggerType
    error_message: str | None = None


class SyncLogListResponse(BaseModel):
    items: list[SyncLogRead]
