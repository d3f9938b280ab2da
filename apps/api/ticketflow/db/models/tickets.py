"""Ticket aggregate ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticketflow.db.base import Base
from ticketflow.db.enums import DEFAULT_TICKET_STATUS, AuditResult, TicketStatus
from ticketflow.db.models._types import enum_type, now_utc


class Ticket(Base):
    """
    A support ticket mirrored from the external helpdesk.

    Aggregate root: translations, replies and audits exist only through
    their ticket. `external_id` is the upsert key and never changes once set.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        Index("idx_tickets_status_updated", "status", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Serialized content document (description + conversation turns)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_lang: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[TicketStatus] = mapped_column(
        enum_type(TicketStatus, name="ticket_status"),
        default=DEFAULT_TICKET_STATUS,
        nullable=False,
    )
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=now_utc, onupdate=now_utc, nullable=False
    )

    translations: Mapped[list["TicketTranslation"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketTranslation.target_lang",
    )
    replies: Mapped[list["TicketReply"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketReply.created_at",
    )
    audits: Mapped[list["TicketAudit"]] = relationship(
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketAudit.created_at",
    )


class TicketTranslation(Base):
    """Translated title/content for one target language; replaced in place on resubmit."""

    __tablename__ = "ticket_translations"
    __table_args__ = (
        UniqueConstraint("ticket_id", "target_lang", name="uq_ticket_translation_lang"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    target_lang: Mapped[str] = mapped_column(String(16), nullable=False)
    translated_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    translated_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=now_utc, onupdate=now_utc, nullable=False
    )

    ticket: Mapped["Ticket"] = relationship(back_populates="translations")


class TicketReply(Base):
    """Reply draft pair; `is_selected` flips once, when an audit passes it."""

    __tablename__ = "ticket_replies"
    __table_args__ = (
        Index("idx_ticket_replies_ticket_created", "ticket_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    reply_lang: Mapped[str | None] = mapped_column(String(16), nullable=True)
    zh_reply: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_reply: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)

    ticket: Mapped["Ticket"] = relationship(back_populates="replies")


class TicketAudit(Base):
    """Append-only audit verdict. References the judged reply by id only."""

    __tablename__ = "ticket_audits"
    __table_args__ = (
        Index("idx_ticket_audits_ticket_created", "ticket_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    reply_id: Mapped[int] = mapped_column(Integer, nullable=False)
    audit_result: Mapped[AuditResult] = mapped_column(
        enum_type(AuditResult, name="audit_result"), nullable=False
    )
    audit_remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    auditor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)

    ticket: Mapped["Ticket"] = relationship(back_populates="audits")
