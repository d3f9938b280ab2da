"""Centralized defaults for enums."""

from ticketflow.db.enums.sync import SyncStatus
from ticketflow.db.enums.tickets import TicketStatus


DEFAULT_TICKET_STATUS: TicketStatus = TicketStatus.PENDING_TRANS
DEFAULT_SYNC_STATUS: SyncStatus = SyncStatus.RUNNING
