"""
Ticket lifecycle state machine.

Pure decision logic: given the current status and an event, return the next
status and the side effects the caller must carry out. No I/O happens here;
ticket_service and sync_engine apply the decision inside their own
per-ticket transaction and dispatch after commit.

    PENDING_TRANS -> TRANSLATING -> PENDING_REPLY -> REPLYING
        -> PENDING_AUDIT -> (AUDITING) -> COMPLETED

plus the audit-reject rollback PENDING_AUDIT -> PENDING_REPLY. Work is only
dispatched on entry to a PENDING_* state or by an explicit trigger.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ticketflow.db.enums import TaskKind, TicketStatus
from ticketflow.services.errors import InvalidTransitionError


class TicketEvent(str, Enum):
    SYNC_SURFACED = "sync_surfaced"
    TRIGGER_TRANSLATION = "trigger_translation"
    TRANSLATION_SUBMITTED = "translation_submitted"
    TRIGGER_REPLY = "trigger_reply"
    REPLY_SUBMITTED = "reply_submitted"
    AUDIT_PASSED = "audit_passed"
    AUDIT_REJECTED = "audit_rejected"


@dataclass(frozen=True)
class Transition:
    previous: TicketStatus
    next_status: TicketStatus
    dispatch: TaskKind | None = None
    push_reply: bool = False
    select_reply: bool = False

    @property
    def changed(self) -> bool:
        return self.previous != self.next_status

    @property
    def is_noop(self) -> bool:
        return not self.changed and self.dispatch is None and not self.push_reply


def _noop(status: TicketStatus) -> Transition:
    return Transition(previous=status, next_status=status)


def decide(
    status: TicketStatus,
    event: TicketEvent,
    *,
    is_new: bool = False,
    reply_exists: bool = True,
) -> Transition:
    """Map (status, event) to a Transition. Raises InvalidTransitionError on a failed precondition."""
    status = TicketStatus(status)

    if event == TicketEvent.SYNC_SURFACED:
        # A ticket still waiting in PENDING_TRANS already has a translate task in flight
        if not is_new and status == TicketStatus.PENDING_TRANS:
            return _noop(status)
        return Transition(status, TicketStatus.PENDING_TRANS, dispatch=TaskKind.TRANSLATE)

    if event == TicketEvent.TRIGGER_TRANSLATION:
        return Transition(status, TicketStatus.TRANSLATING, dispatch=TaskKind.TRANSLATE)

    if event == TicketEvent.TRANSLATION_SUBMITTED:
        # Duplicate delivery: the reply task was already queued
        if status == TicketStatus.PENDING_REPLY:
            return _noop(status)
        return Transition(status, TicketStatus.PENDING_REPLY, dispatch=TaskKind.REPLY)

    if event == TicketEvent.TRIGGER_REPLY:
        return Transition(status, TicketStatus.REPLYING, dispatch=TaskKind.REPLY)

    if event == TicketEvent.REPLY_SUBMITTED:
        return Transition(status, TicketStatus.PENDING_AUDIT, dispatch=TaskKind.AUDIT)

    if event == TicketEvent.AUDIT_PASSED:
        if not reply_exists:
            raise InvalidTransitionError("Audit pass requires an existing reply")
        return Transition(
            status,
            TicketStatus.COMPLETED,
            push_reply=True,
            select_reply=True,
        )

    if event == TicketEvent.AUDIT_REJECTED:
        return Transition(status, TicketStatus.PENDING_REPLY, dispatch=TaskKind.REPLY)

    raise InvalidTransitionError(f"Unknown event: {event}")
