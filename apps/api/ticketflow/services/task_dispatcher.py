"""Build task envelopes and hand them to the broker."""

from __future__ import annotations

import logging
import time
import uuid

from ticketflow.core.structured_logging import build_log_context
from ticketflow.db.enums import TaskKind
from ticketflow.db.models import Ticket
from ticketflow.services.task_publisher import TaskPublisher

logger = logging.getLogger(__name__)


def build_envelope(ticket: Ticket, *, now_ms: int | None = None) -> dict:
    """Envelope shape consumed by translate/reply/audit workers."""
    return {
        "msgId": str(uuid.uuid4()),
        "ticketId": ticket.id,
        "timestamp": now_ms if now_ms is not None else int(time.time() * 1000),
        "payload": {
            "externalId": ticket.external_id,
            "subject": ticket.subject or "",
            "content": ticket.content or "",
        },
    }


class TaskDispatcher:
    """
    Fire-and-forget dispatch of worker tasks.

    A publish failure is logged and swallowed: ticket state is never rolled
    back, the broker's own retry/dead-lettering owns delivery.
    """

    def __init__(self, publisher: TaskPublisher) -> None:
        self.publisher = publisher

    def dispatch(self, kind: TaskKind, ticket: Ticket) -> bool:
        envelope = build_envelope(ticket)
        topic = kind.value
        try:
            self.publisher.publish(topic, envelope)
        except Exception:
            logger.error(
                "Task publish failed topic=%s ticket_id=%s msg_id=%s",
                topic,
                ticket.id,
                envelope["msgId"],
                exc_info=True,
                extra=build_log_context(ticket_id=ticket.id, external_id=ticket.external_id),
            )
            return False

        logger.info(
            "Dispatched task topic=%s ticket_id=%s msg_id=%s content_len=%s",
            topic,
            ticket.id,
            envelope["msgId"],
            len(envelope["payload"]["content"]),
        )
        return True
