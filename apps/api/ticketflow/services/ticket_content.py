"""Build, serialize and read back ticket content documents."""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError

from ticketflow.schemas.ticket_content import ConversationTurn, TicketContent

logger = logging.getLogger(__name__)


def build_ticket_content(description: str | None, turns: Iterable[object] | None) -> TicketContent:
    """
    Build the content record from a description and raw conversation turns.

    Turns with a blank body are dropped. Turns that fail validation are
    skipped rather than failing the whole document.
    """
    conversations: list[ConversationTurn] = []
    for turn in turns or []:
        if isinstance(turn, ConversationTurn):
            candidate = turn
        else:
            data = turn.model_dump() if hasattr(turn, "model_dump") else turn
            if not isinstance(data, dict):
                continue
            try:
                candidate = ConversationTurn(
                    id=data.get("id"),
                    body_text=data.get("body_text") or "",
                    is_private=data.get("private", data.get("is_private")),
                    incoming=data.get("incoming"),
                    user_id=data.get("user_id"),
                    created_at=data.get("created_at"),
                )
            except ValidationError:
                logger.debug("Skipping malformed conversation turn id=%s", data.get("id"))
                continue
        if not candidate.body_text or not candidate.body_text.strip():
            continue
        conversations.append(candidate)
    return TicketContent(description=description, conversations=conversations)


def serialize_ticket_content(content: TicketContent) -> str | None:
    """Serialize to JSON; fall back to the plain description if that fails."""
    try:
        return content.model_dump_json(by_alias=True)
    except Exception:
        logger.error("Failed to serialize ticket content; falling back to description", exc_info=True)
        return content.description


def parse_ticket_content(raw: str | None) -> TicketContent:
    """Read a stored content value. Non-JSON values are treated as a bare description."""
    if raw is None:
        return TicketContent()
    try:
        return TicketContent.model_validate_json(raw)
    except ValidationError:
        return TicketContent(description=raw)
