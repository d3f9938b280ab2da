"""Enum definitions for application constants."""

from ticketflow.db.enums.defaults import (
    DEFAULT_SYNC_STATUS,
    DEFAULT_TICKET_STATUS,
)
from ticketflow.db.enums.sync import SyncConfigKey, SyncStatus, TriggerType
from ticketflow.db.enums.tasks import TaskKind
from ticketflow.db.enums.tickets import AuditResult, TicketStatus

__all__ = [
    "AuditResult",
    "DEFAULT_SYNC_STATUS",
    "DEFAULT_TICKET_STATUS",
    "SyncConfigKey",
    "SyncStatus",
    "TaskKind",
    "TicketStatus",
    "TriggerType",
]
