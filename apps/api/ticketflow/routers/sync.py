"""Sync trigger, configuration and log APIs."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ticketflow.core.cron import CronError, validate_cron
from ticketflow.core.deps import get_db, get_sync_engine
from ticketflow.db.enums import SyncConfigKey, TriggerType
from ticketflow.schemas.sync import (
    SyncConfigResponse,
    SyncConfigUpdate,
    SyncLogListResponse,
    SyncLogRead,
    SyncOutcome,
    SyncStatusResponse,
)
from ticketflow.services import sync_config_service
from ticketflow.services.sync_engine import SyncEngine

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("/freshdesk", response_model=SyncOutcome)
def trigger_sync(engine: SyncEngine = Depends(get_sync_engine)) -> SyncOutcome:
    """Manual sync. Returns immediately with success=false if a run is in progress."""
    return engine.run(TriggerType.MANUAL)


def _config_response(db: Session, engine: SyncEngine) -> SyncConfigResponse:
    return SyncConfigResponse(
        cron_expression=sync_config_service.get_cron_expression(db),
        sync_enabled=sync_config_service.is_sync_enabled(db),
        last_sync_time=sync_config_service.get_last_sync_time(db),
        is_syncing=engine.is_syncing,
    )


@router.get("/config", response_model=SyncConfigResponse)
def get_sync_config(
    db: Session = Depends(get_db),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncConfigResponse:
    return _config_response(db, engine)


@router.put("/config", response_model=SyncConfigResponse)
def update_sync_config(
    data: SyncConfigUpdate,
    db: Session = Depends(get_db),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncConfigResponse:
    """Partial update of cron, enabled flag and watermark."""
    if data.cron_expression is not None:
        try:
            validate_cron(data.cron_expression)
        except CronError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid cron expression: {exc}") from exc
        sync_config_service.update_config(db, SyncConfigKey.SYNC_CRON, data.cron_expression)
    if data.sync_enabled is not None:
        sync_config_service.update_config(
            db, SyncConfigKey.SYNC_ENABLED, "true" if data.sync_enabled else "false"
        )
    if data.last_sync_time is not None:
        try:
            parsed = sync_config_service.parse_sync_time(data.last_sync_time)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail="Invalid last_sync_time") from exc
        value = sync_config_service.format_sync_time(parsed) if parsed else ""
        sync_config_service.update_config(db, SyncConfigKey.LAST_SYNC_TIME, value)
    return _config_response(db, engine)


@router.get("/logs", response_model=SyncLogListResponse)
def list_sync_logs(
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    db: Session = Depends(get_db),
) -> SyncLogListResponse:
    logs = sync_config_service.list_sync_logs(db, limit=limit)
    return SyncLogListResponse(items=[SyncLogRead.model_validate(row) for row in logs])


@router.get("/status", response_model=SyncStatusResponse)
def get_sync_status(
    db: Session = Depends(get_db),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncStatusResponse:
    return SyncStatusResponse(
        is_syncing=engine.is_syncing,
        last_sync_time=sync_config_service.get_last_sync_time(db),
    )
