"""
Test configuration and fixtures.

Provides:
- In-memory SQLite engine shared across sessions (StaticPool)
- A sync engine wired to a fake Freshdesk source and an in-memory publisher
- HTTPX AsyncClient with dependency overrides
"""
import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

# Keep module-level engines and publishers off real infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "memory://")

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockNotOwnedError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ticketflow.core.deps import get_db, get_reply_pusher, get_sync_engine, get_task_dispatcher
from ticketflow.core.sync_lock import SyncLock
from ticketflow.db.base import Base
from ticketflow.db.enums import TicketStatus
from ticketflow.db.models import Ticket, TicketReply
from ticketflow.main import app
from ticketflow.schemas.freshdesk import RawTicket, RawTurn
from ticketflow.services.sync_engine import SyncEngine
from ticketflow.services.task_dispatcher import TaskDispatcher
from ticketflow.services.task_publisher import InMemoryPublisher

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_ticket(db: Session):
    def _make(
        external_id: str = "77",
        status: TicketStatus = TicketStatus.PENDING_TRANS,
        subject: str | None = "Printer on fire",
        content: str | None = None,
    ) -> Ticket:
        ticket = Ticket(external_id=external_id, subject=subject, content=content, status=status)
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    return _make


@pytest.fixture
def make_reply(db: Session):
    def _make(ticket: Ticket, target_reply: str = "Hello, fixed.") -> TicketReply:
        reply = TicketReply(
            ticket_id=ticket.id,
            zh_reply="你好，已修复。",
            target_reply=target_reply,
            reply_lang="en",
        )
        db.add(reply)
        db.commit()
        db.refresh(reply)
        return reply

    return _make


# =============================================================================
# Collaborator fakes
# =============================================================================

class FakeTicketSource:
    """Stands in for FreshdeskClient; records every call."""

    def __init__(self) -> None:
        self.tickets: list[dict] = []
        self.conversations: dict[str, list[dict] | Exception] = {}
        self.fetch_error: Exception | None = None
        self.watermarks: list[datetime | None] = []
        self.conversation_calls: list[str] = []
        self.opened = 0

    def __enter__(self) -> "FakeTicketSource":
        self.opened += 1
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def fetch_updated_since(self, watermark: datetime | None) -> list[RawTicket]:
        self.watermarks.append(watermark)
        if self.fetch_error is not None:
            raise self.fetch_error
        return [RawTicket.model_validate(item) for item in self.tickets]

    def fetch_conversation_thread(self, external_id: str) -> list[RawTurn]:
        self.conversation_calls.append(external_id)
        value = self.conversations.get(external_id, [])
        if isinstance(value, Exception):
            raise value
        return [RawTurn.model_validate(item) for item in value]


class FakeRedisLock:
    """Mimics redis-py's Lock over a dict shared by every FakeRedis lock."""

    def __init__(self, server: "FakeRedis", name: str) -> None:
        self.server = server
        self.name = name
        self.token = object()

    def acquire(self, blocking: bool | None = None) -> bool:
        if self.server.unavailable:
            raise RedisConnectionError("redis down")
        if self.name in self.server.keys:
            return False
        self.server.keys[self.name] = self.token
        return True

    def release(self) -> None:
        if self.server.keys.get(self.name) is not self.token:
            raise LockNotOwnedError("Cannot release a lock that's no longer owned")
        del self.server.keys[self.name]

    def locked(self) -> bool:
        if self.server.unavailable:
            raise RedisConnectionError("redis down")
        return self.name in self.server.keys


class FakeRedis:
    """One fake redis server; each process would hold its own client to it."""

    def __init__(self) -> None:
        self.keys: dict[str, object] = {}
        self.unavailable = False
        self.lock_calls: list[dict] = []

    def lock(self, name: str, **kwargs) -> FakeRedisLock:
        self.lock_calls.append({"name": name, **kwargs})
        return FakeRedisLock(self, name)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_source() -> FakeTicketSource:
    return FakeTicketSource()


@pytest.fixture
def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest.fixture
def dispatcher(publisher: InMemoryPublisher) -> TaskDispatcher:
    return TaskDispatcher(publisher)


@pytest.fixture
def pushed_replies() -> list[tuple[str, str | None]]:
    return []


@pytest.fixture
def reply_pusher(pushed_replies):
    def _push(external_id: str, body: str | None) -> bool:
        pushed_replies.append((external_id, body))
        return True

    return _push


@pytest.fixture
def sync_engine(session_factory, fake_source, dispatcher) -> SyncEngine:
    return SyncEngine(
        session_factory=session_factory,
        lock=SyncLock(),
        client_factory=lambda: fake_source,
        dispatcher=dispatcher,
        open_status=2,
        clock=lambda: FIXED_NOW,
    )


# =============================================================================
# HTTP Client
# =============================================================================

@pytest.fixture
async def client(
    session_factory, dispatcher, sync_engine, reply_pusher
) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_sync_engine] = lambda: sync_engine
    app.dependency_overrides[get_reply_pusher] = lambda: reply_pusher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
