"""FastAPI dependencies and process-wide service wiring."""

from __future__ import annotations

import threading
from typing import Generator

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from ticketflow.core.config import settings
from ticketflow.core.sync_lock import build_sync_lock
from ticketflow.db.session import SessionLocal
from ticketflow.services.freshdesk_client import FreshdeskClient
from ticketflow.services.sync_engine import SyncEngine
from ticketflow.services.task_dispatcher import TaskDispatcher
from ticketflow.services.task_publisher import get_task_publisher
from ticketflow.services.ticket_service import ReplyPusher

_init_lock = threading.Lock()
_dispatcher: TaskDispatcher | None = None
_sync_engine: SyncEngine | None = None


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_task_dispatcher() -> TaskDispatcher:
    global _dispatcher
    if _dispatcher is None:
        with _init_lock:
            if _dispatcher is None:
                _dispatcher = TaskDispatcher(get_task_publisher())
    return _dispatcher


def get_sync_engine() -> SyncEngine:
    """Shared engine for API, scheduler and CLI. Its lock spans processes when REDIS_URL is set."""
    global _sync_engine
    if _sync_engine is None:
        dispatcher = get_task_dispatcher()
        with _init_lock:
            if _sync_engine is None:
                _sync_engine = SyncEngine(
                    session_factory=SessionLocal,
                    lock=build_sync_lock(),
                    client_factory=FreshdeskClient.from_settings,
                    dispatcher=dispatcher,
                )
    return _sync_engine


def push_reply_to_freshdesk(external_id: str, body: str | None) -> bool:
    with FreshdeskClient.from_settings() as client:
        return client.push_reply(external_id, body)


def get_reply_pusher() -> ReplyPusher:
    return push_reply_to_freshdesk


def verify_internal_secret(x_internal_secret: str = Header(...)) -> None:
    """Verify the internal secret header for scheduled endpoints."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")
