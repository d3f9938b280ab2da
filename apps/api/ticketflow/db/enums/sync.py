"""Sync run enums."""

from enum import Enum


class SyncStatus(str, Enum):
    """Terminal or in-flight status of a sync run."""

    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TriggerType(str, Enum):
    """What started a sync run."""

    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"


class SyncConfigKey(str, Enum):
    """Persisted sync configuration keys."""

    SYNC_CRON = "sync_cron"
    SYNC_ENABLED = "sync_enabled"
    LAST_SYNC_TIME = "last_sync_time"
