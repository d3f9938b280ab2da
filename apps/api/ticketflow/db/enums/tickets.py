"""Ticket lifecycle enums."""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket pipeline state."""

    PENDING_TRANS = "PENDING_TRANS"
    TRANSLATING = "TRANSLATING"
    PENDING_REPLY = "PENDING_REPLY"
    REPLYING = "REPLYING"
    PENDING_AUDIT = "PENDING_AUDIT"
    AUDITING = "AUDITING"  # Reserved: no transition produces or consumes it yet
    COMPLETED = "COMPLETED"


class AuditResult(str, Enum):
    """Human audit verdict for a reply draft."""

    PASS = "PASS"
    REJECT = "REJECT"
