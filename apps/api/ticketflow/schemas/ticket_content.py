"""Structured ticket content document (description + conversation turns)."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ConversationTurn(BaseModel):
    """One public reply or private note on the external ticket."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    body_text: str = Field(..., alias="bodyText")
    is_private: bool | None = Field(default=None, alias="isPrivate")
    incoming: bool | None = None
    user_id: int | None = Field(default=None, alias="userId")
    created_at: str | None = Field(default=None, alias="createdAt")


class TicketContent(BaseModel):
    """Content document stored on `Ticket.content` and shipped to workers."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["conversation_document"] = "conversation_document"
    description: str | None = None
    conversations: list[ConversationTurn] = Field(default_factory=list)
