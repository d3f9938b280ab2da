"""SQLAlchemy ORM models."""

from ticketflow.db.models.sync import SyncConfig, SyncLog
from ticketflow.db.models.tickets import Ticket, TicketAudit, TicketReply, TicketTranslation

__all__ = [
    "SyncConfig",
    "SyncLog",
    "Ticket",
    "TicketAudit",
    "TicketReply",
    "TicketTranslation",
]
