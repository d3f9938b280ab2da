"""Sync configuration and sync log bookkeeping."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ticketflow.core.config import settings
from ticketflow.db.enums import SyncConfigKey, SyncStatus, TriggerType
from ticketflow.db.models import SyncConfig, SyncLog
from ticketflow.services.errors import NotFoundError

logger = logging.getLogger(__name__)

ERROR_MESSAGE_MAX_LEN = 1024
INTERRUPTED_MESSAGE = "Interrupted before completion"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_sync_time(value: datetime) -> str:
    return _to_utc(value).replace(microsecond=0).isoformat()


def parse_sync_time(value: str | None) -> datetime | None:
    """Parse a stored watermark; empty means never synced."""
    if not value or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return _to_utc(datetime.fromisoformat(raw))


def _default_configs() -> list[tuple[SyncConfigKey, str, str]]:
    return [
        (SyncConfigKey.SYNC_CRON, settings.DEFAULT_SYNC_CRON, "Scheduled sync cron expression"),
        (SyncConfigKey.SYNC_ENABLED, "true", "Whether scheduled sync is enabled"),
        (SyncConfigKey.LAST_SYNC_TIME, "", "Last successful sync time"),
    ]


# =============================================================================
# Config
# =============================================================================


def init_default_config(db: Session) -> None:
    """Seed missing config keys. Existing values are never overwritten."""
    for key, value, description in _default_configs():
        exists = db.query(SyncConfig).filter(SyncConfig.config_key == key.value).first()
        if exists:
            continue
        db.add(SyncConfig(config_key=key.value, config_value=value, description=description))
        logger.info("Initialized sync config key=%s value=%s", key.value, value)
    db.commit()


def get_config_value(db: Session, key: SyncConfigKey) -> str | None:
    row = db.query(SyncConfig).filter(SyncConfig.config_key == key.value).first()
    return row.config_value if row else None


def update_config(db: Session, key: SyncConfigKey, value: str) -> SyncConfig:
    row = db.query(SyncConfig).filter(SyncConfig.config_key == key.value).first()
    if not row:
        raise NotFoundError(f"Config key not found: {key.value}")
    row.config_value = value
    db.commit()
    logger.info("Updated sync config key=%s", key.value)
    return row


def get_cron_expression(db: Session) -> str | None:
    return get_config_value(db, SyncConfigKey.SYNC_CRON)


def is_sync_enabled(db: Session) -> bool:
    return (get_config_value(db, SyncConfigKey.SYNC_ENABLED) or "").strip().lower() == "true"


def get_last_sync_time(db: Session) -> datetime | None:
    raw = get_config_value(db, SyncConfigKey.LAST_SYNC_TIME)
    try:
        return parse_sync_time(raw)
    except ValueError:
        logger.warning("Unparseable last_sync_time=%r; running a full sync", raw)
        return None


def update_last_sync_time(db: Session, value: datetime) -> None:
    """Advance the watermark, creating the key if startup seeding never ran."""
    key = SyncConfigKey.LAST_SYNC_TIME
    row = db.query(SyncConfig).filter(SyncConfig.config_key == key.value).first()
    if row is None:
        row = SyncConfig(config_key=key.value, description="Last successful sync time")
        db.add(row)
    row.config_value = format_sync_time(value)
    db.commit()


# =============================================================================
# Sync log
# =============================================================================


def create_sync_log(db: Session, trigger: TriggerType, *, start_time: datetime | None = None) -> SyncLog:
    sync_log = SyncLog(
        start_time=start_time or _now_utc(),
        trigger_type=trigger,
        status=SyncStatus.RUNNING,
    )
    db.add(sync_log)
    db.commit()
    db.refresh(sync_log)
    return sync_log


def complete_sync_log(db: Session, sync_log: SyncLog, *, synced: int, updated: int) -> SyncLog:
    sync_log.end_time = _now_utc()
    sync_log.tickets_synced = synced
    sync_log.tickets_updated = updated
    sync_log.status = SyncStatus.SUCCESS
    db.commit()
    return sync_log


def fail_sync_log(db: Session, sync_log: SyncLog, error_message: str | None) -> SyncLog:
    sync_log.end_time = _now_utc()
    sync_log.status = SyncStatus.FAILED
    sync_log.error_message = (error_message or "Unknown error")[:ERROR_MESSAGE_MAX_LEN]
    db.commit()
    return sync_log


def list_sync_logs(db: Session, limit: int = 20) -> list[SyncLog]:
    return (
        db.query(SyncLog)
        .order_by(SyncLog.start_time.desc(), SyncLog.id.desc())
        .limit(limit)
        .all()
    )


def recover_stale_sync_logs(db: Session) -> int:
    """Mark RUNNING rows left by a crashed process as FAILED. Call at process startup."""
    stale = db.query(SyncLog).filter(SyncLog.status == SyncStatus.RUNNING).all()
    now = _now_utc()
    for sync_log in stale:
        sync_log.status = SyncStatus.FAILED
        sync_log.end_time = now
        sync_log.error_message = INTERRUPTED_MESSAGE
    if stale:
        db.commit()
        logger.warning("Recovered stale sync logs count=%s", len(stale))
    return len(stale)
