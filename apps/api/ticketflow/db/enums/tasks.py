"""Worker task enums."""

from enum import Enum


class TaskKind(str, Enum):
    """Kinds of out-of-process work; value is the broker topic."""

    TRANSLATE = "ticket.task.translate"
    REPLY = "ticket.task.reply"
    AUDIT = "ticket.task.audit"
