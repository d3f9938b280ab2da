"""Ticket workflow APIs: worker result intake and operator triggers."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ticketflow.core.deps import get_db, get_reply_pusher, get_task_dispatcher
from ticketflow.db.enums import TicketStatus
from ticketflow.schemas.ticketing import (
    AuditSubmit,
    MessageResponse,
    ReplySubmit,
    TicketAuditRead,
    TicketDetailResponse,
    TicketListItem,
    TicketListResponse,
    TicketReplyRead,
    TicketTranslationRead,
    TranslationSubmit,
    ValidityUpdate,
)
from ticketflow.services import ticket_service
from ticketflow.services.task_dispatcher import TaskDispatcher
from ticketflow.services.ticket_service import ReplyPusher

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("", response_model=TicketListResponse)
def list_tickets(
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    status: TicketStatus | None = None,
    external_id: str | None = None,
    subject: str | None = None,
    is_valid: bool | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    db: Session = Depends(get_db),
) -> TicketListResponse:
    """List tickets, most recently updated first."""
    tickets = ticket_service.list_tickets(
        db,
        status=status,
        external_id=external_id,
        subject=subject,
        is_valid=is_valid,
        created_after=created_after,
        created_before=created_before,
        limit=limit,
    )
    return TicketListResponse(items=[TicketListItem.model_validate(t) for t in tickets])


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
def get_ticket(ticket_id: int, db: Session = Depends(get_db)) -> TicketDetailResponse:
    ticket = ticket_service.get_ticket(db, ticket_id)
    return TicketDetailResponse.model_validate(ticket)


@router.post("/{ticket_id}/translation", response_model=TicketTranslationRead)
def submit_translation(
    ticket_id: int,
    data: TranslationSubmit,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
) -> TicketTranslationRead:
    """Translation result from a worker."""
    translation = ticket_service.submit_translation(db, ticket_id, data, dispatcher=dispatcher)
    return TicketTranslationRead.model_validate(translation)


@router.post("/{ticket_id}/reply", response_model=TicketReplyRead)
def submit_reply(
    ticket_id: int,
    data: ReplySubmit,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
) -> TicketReplyRead:
    """Reply drafts from a worker."""
    reply = ticket_service.submit_reply(db, ticket_id, data, dispatcher=dispatcher)
    return TicketReplyRead.model_validate(reply)


@router.post("/{ticket_id}/audit", response_model=TicketAuditRead)
def submit_audit(
    ticket_id: int,
    data: AuditSubmit,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    reply_pusher: ReplyPusher = Depends(get_reply_pusher),
) -> TicketAuditRead:
    """Audit verdict on a reply."""
    audit = ticket_service.submit_audit(
        db, ticket_id, data, dispatcher=dispatcher, reply_pusher=reply_pusher
    )
    return TicketAuditRead.model_validate(audit)


@router.post("/{ticket_id}/ai-translate", response_model=MessageResponse)
def trigger_translation(
    ticket_id: int,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
) -> MessageResponse:
    ticket_service.trigger_translation(db, ticket_id, dispatcher=dispatcher)
    return MessageResponse(message="Translation task queued")


@router.post("/{ticket_id}/ai-reply", response_model=MessageResponse)
def trigger_reply(
    ticket_id: int,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
) -> MessageResponse:
    ticket_service.trigger_reply(db, ticket_id, dispatcher=dispatcher)
    return MessageResponse(message="Reply task queued")


@router.post("/{ticket_id}/valid", response_model=TicketListItem)
def update_validity(
    ticket_id: int,
    data: ValidityUpdate,
    db: Session = Depends(get_db),
) -> TicketListItem:
    ticket = ticket_service.update_validity(db, ticket_id, data.is_valid)
    return TicketListItem.model_validate(ticket)
