"""Structured logging helpers (content-safe)."""

from typing import Any


def build_log_context(
    *,
    ticket_id: int | None = None,
    external_id: str | None = None,
    sync_log_id: int | None = None,
    trigger: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict that never carries ticket subject or content."""
    context: dict[str, Any] = {}
    if ticket_id is not None:
        context["ticket_id"] = ticket_id
    if external_id:
        context["external_id"] = external_id
    if sync_log_id is not None:
        context["sync_log_id"] = sync_log_id
    if trigger:
        context["trigger"] = trigger
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
