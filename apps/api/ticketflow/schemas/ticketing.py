"""Pydantic schemas for ticket workflow APIs."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ticketflow.db.enums import AuditResult, TicketStatus


class TranslationSubmit(BaseModel):
    """Translation result reported by a worker."""

    target_lang: str = Field(..., min_length=1, max_length=16)
    translated_title: str | None = None
    translated_content: str | None = None


class ReplySubmit(BaseModel):
    """Reply drafts reported by a worker."""

    zh_reply: str | None = None
    target_reply: str | None = None
    reply_lang: str | None = Field(default=None, max_length=16)


class AuditSubmit(BaseModel):
    """Human audit verdict on a reply."""

    reply_id: int
    audit_result: AuditResult
    audit_remark: str | None = None


class ValidityUpdate(BaseModel):
    is_valid: bool


class TicketTranslationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    target_lang: str
    translated_title: str | None = None
    translated_content: str | None = None
    created_at: datetime
    updated_at: datetime


class TicketReplyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    reply_lang: str | None = None
    zh_reply: str | None = None
    target_reply: str | None = None
    is_selected: bool
    created_at: datetime


class TicketAuditRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    reply_id: int
    audit_result: AuditResult
    audit_remark: str | None = None
    auditor_id: int | None = None
    created_at: datetime


class TicketListItem(BaseModel):
    """Ticket row without child collections."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    external_id: str
    subject: str | None = None
    source_lang: str | None = None
    status: TicketStatus
    is_valid: bool
    created_at: datetime
    updated_at: datetime


class TicketDetailResponse(TicketListItem):
    """Ticket with content and workflow history."""

    content: str | None = None
    translations: list[TicketTranslationRead] = Field(default_factory=list)
    replies: list[TicketReplyRead] = Field(default_factory=list)
    audits: list[TicketAuditRead] = Field(default_factory=list)


class TicketListResponse(BaseModel):
    items: list[TicketListItem]


class MessageResponse(BaseModel):
    message: str
