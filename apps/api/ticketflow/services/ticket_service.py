"""Ticket workflow service - worker results and operator triggers."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketflow.core.structured_logging import build_log_context
from ticketflow.db.enums import AuditResult, TicketStatus
from ticketflow.db.models import Ticket, TicketAudit, TicketReply, TicketTranslation
from ticketflow.schemas.ticketing import AuditSubmit, ReplySubmit, TranslationSubmit
from ticketflow.services import ticket_workflow
from ticketflow.services.errors import NotFoundError
from ticketflow.services.task_dispatcher import TaskDispatcher
from ticketflow.services.ticket_workflow import TicketEvent, Transition

logger = logging.getLogger(__name__)

ReplyPusher = Callable[[str, str | None], bool]


# =============================================================================
# Reads
# =============================================================================


def get_ticket(db: Session, ticket_id: int) -> Ticket:
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise NotFoundError(f"Ticket not found: {ticket_id}")
    return ticket


def list_tickets(
    db: Session,
    *,
    status: TicketStatus | None = None,
    external_id: str | None = None,
    subject: str | None = None,
    is_valid: bool | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    limit: int = 50,
) -> list[Ticket]:
    """Filtered ticket list, most recently updated first."""
    query = db.query(Ticket)
    if status is not None:
        query = query.filter(Ticket.status == status)
    if external_id:
        query = query.filter(Ticket.external_id == external_id)
    if subject:
        query = query.filter(Ticket.subject.ilike(f"%{subject}%"))
    if is_valid is not None:
        query = query.filter(Ticket.is_valid.is_(is_valid))
    if created_after is not None:
        query = query.filter(Ticket.created_at >= created_after)
    if created_before is not None:
        query = query.filter(Ticket.created_at <= created_before)
    return query.order_by(Ticket.updated_at.desc(), Ticket.id.desc()).limit(limit).all()


# =============================================================================
# Writes (one per-ticket transaction each; dispatch after commit)
# =============================================================================


def _lock_ticket(db: Session, ticket_id: int) -> Ticket:
    """Load a ticket holding its row lock so transitions for it are serialized."""
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).with_for_update().first()
    if not ticket:
        raise NotFoundError(f"Ticket not found: {ticket_id}")
    return ticket


def _apply(ticket: Ticket, event: TicketEvent, **kwargs) -> Transition:
    transition = ticket_workflow.decide(ticket.status, event, **kwargs)
    ticket.status = transition.next_status
    return transition


def _dispatch_after_commit(
    dispatcher: TaskDispatcher, ticket: Ticket, transition: Transition
) -> None:
    if transition.dispatch is None:
        return
    dispatcher.dispatch(transition.dispatch, ticket)


def submit_translation(
    db: Session,
    ticket_id: int,
    data: TranslationSubmit,
    *,
    dispatcher: TaskDispatcher,
) -> TicketTranslation:
    """
    Store a translation and queue the reply step.

    Resubmitting for the same language replaces the row in place. A ticket
    already in PENDING_REPLY is not re-transitioned and no second reply task
    is queued, so a redelivered worker message is harmless.
    """
    for attempt in range(2):
        ticket = _lock_ticket(db, ticket_id)
        translation = (
            db.query(TicketTranslation)
            .filter(
                TicketTranslation.ticket_id == ticket.id,
                TicketTranslation.target_lang == data.target_lang,
            )
            .first()
        )
        if translation is None:
            translation = TicketTranslation(ticket_id=ticket.id, target_lang=data.target_lang)
            db.add(translation)
        translation.translated_title = data.translated_title
        translation.translated_content = data.translated_content

        transition = _apply(ticket, TicketEvent.TRANSLATION_SUBMITTED)
        try:
            db.commit()
            break
        except IntegrityError:
            # Raced another insert for the same (ticket, lang); replace theirs
            db.rollback()
            if attempt:
                raise

    logger.info(
        "Translation stored ticket_id=%s lang=%s transitioned=%s",
        ticket.id,
        data.target_lang,
        transition.changed,
        extra=build_log_context(ticket_id=ticket.id),
    )
    _dispatch_after_commit(dispatcher, ticket, transition)
    db.refresh(translation)
    return translation


def submit_reply(
    db: Session,
    ticket_id: int,
    data: ReplySubmit,
    *,
    dispatcher: TaskDispatcher,
) -> TicketReply:
    """Append a reply draft and queue the audit step."""
    ticket = _lock_ticket(db, ticket_id)
    reply = TicketReply(
        ticket_id=ticket.id,
        reply_lang=data.reply_lang,
        zh_reply=data.zh_reply,
        target_reply=data.target_reply,
    )
    db.add(reply)
    transition = _apply(ticket, TicketEvent.REPLY_SUBMITTED)
    db.commit()

    logger.info("Reply stored ticket_id=%s reply_id=%s", ticket.id, reply.id)
    _dispatch_after_commit(dispatcher, ticket, transition)
    db.refresh(reply)
    return reply


def submit_audit(
    db: Session,
    ticket_id: int,
    data: AuditSubmit,
    *,
    dispatcher: TaskDispatcher,
    reply_pusher: ReplyPusher,
    auditor_id: int | None = None,
) -> TicketAudit:
    """
    Record an audit verdict.

    PASS completes the ticket, marks the judged reply as the selected one and
    pushes its target-language text to Freshdesk. Anything else sends the
    ticket back to PENDING_REPLY and queues a fresh reply task.
    """
    ticket = _lock_ticket(db, ticket_id)
    reply = (
        db.query(TicketReply)
        .filter(TicketReply.id == data.reply_id, TicketReply.ticket_id == ticket.id)
        .first()
    )
    if reply is None:
        raise NotFoundError(f"Reply not found: {data.reply_id}")

    audit = TicketAudit(
        ticket_id=ticket.id,
        reply_id=reply.id,
        audit_result=data.audit_result,
        audit_remark=data.audit_remark,
        auditor_id=auditor_id,
    )
    db.add(audit)

    event = (
        TicketEvent.AUDIT_PASSED
        if data.audit_result == AuditResult.PASS
        else TicketEvent.AUDIT_REJECTED
    )
    transition = _apply(ticket, event, reply_exists=True)
    if transition.select_reply:
        (
            db.query(TicketReply)
            .filter(
                TicketReply.ticket_id == ticket.id,
                TicketReply.id != reply.id,
                TicketReply.is_selected.is_(True),
            )
            .update({TicketReply.is_selected: False}, synchronize_session="fetch")
        )
        reply.is_selected = True
    db.commit()

    logger.info(
        "Audit stored ticket_id=%s reply_id=%s result=%s status=%s",
        ticket.id,
        reply.id,
        data.audit_result.value,
        ticket.status.value,
    )
    if transition.push_reply:
        reply_pusher(ticket.external_id, reply.target_reply)
    _dispatch_after_commit(dispatcher, ticket, transition)
    db.refresh(audit)
    return audit


def trigger_translation(db: Session, ticket_id: int, *, dispatcher: TaskDispatcher) -> Ticket:
    """Operator trigger: mark TRANSLATING and queue a translate task."""
    ticket = _lock_ticket(db, ticket_id)
    transition = _apply(ticket, TicketEvent.TRIGGER_TRANSLATION)
    db.commit()
    _dispatch_after_commit(dispatcher, ticket, transition)
    return ticket


def trigger_reply(db: Session, ticket_id: int, *, dispatcher: TaskDispatcher) -> Ticket:
    """Operator trigger: mark REPLYING and queue a reply task."""
    ticket = _lock_ticket(db, ticket_id)
    transition = _apply(ticket, TicketEvent.TRIGGER_REPLY)
    db.commit()
    _dispatch_after_commit(dispatcher, ticket, transition)
    return ticket


def update_validity(db: Session, ticket_id: int, is_valid: bool) -> Ticket:
    ticket = _lock_ticket(db, ticket_id)
    ticket.is_valid = is_valid
    db.commit()
    db.refresh(ticket)
    return ticket
