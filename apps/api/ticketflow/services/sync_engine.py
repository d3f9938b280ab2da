"""
Incremental pull sync from Freshdesk.

One run: take the SyncLock (fail fast if busy), open a RUNNING
sync log, fetch tickets updated since the watermark, upsert each open ticket
by external id, dispatch translate tasks where the workflow says so, then
close the log and advance the watermark. The lock is always released and the
log always ends SUCCESS or FAILED.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketflow.core.config import settings
from ticketflow.core.structured_logging import build_log_context
from ticketflow.core.sync_lock import RedisSyncLock, SyncLock
from ticketflow.db.enums import TicketStatus, TriggerType
from ticketflow.db.models import SyncLog, Ticket
from ticketflow.schemas.freshdesk import RawTicket, RawTurn
from ticketflow.schemas.sync import SyncOutcome
from ticketflow.services import sync_config_service, ticket_workflow
from ticketflow.services.task_dispatcher import TaskDispatcher
from ticketflow.services.ticket_content import build_ticket_content, serialize_ticket_content
from ticketflow.services.ticket_workflow import TicketEvent, Transition

logger = logging.getLogger(__name__)

SYNC_BUSY_MESSAGE = "Sync already in progress"
NO_TICKETS_MESSAGE = "No tickets to sync"


class TicketSource(Protocol):
    def __enter__(self) -> "TicketSource": ...

    def __exit__(self, *exc_info: object) -> None: ...

    def fetch_updated_since(self, watermark: datetime | None) -> list[RawTicket]: ...

    def fetch_conversation_thread(self, external_id: str) -> list[RawTurn]: ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Orchestrates sync runs behind one SyncLock or RedisSyncLock."""

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        lock: SyncLock | RedisSyncLock,
        client_factory: Callable[[], TicketSource],
        dispatcher: TaskDispatcher,
        open_status: int | None = None,
        clock: Callable[[], datetime] = _now_utc,
    ) -> None:
        self.session_factory = session_factory
        self.lock = lock
        self.client_factory = client_factory
        self.dispatcher = dispatcher
        self.open_status = settings.FRESHDESK_OPEN_STATUS if open_status is None else open_status
        self.clock = clock

    @property
    def is_syncing(self) -> bool:
        return self.lock.is_held()

    @property
    def lock_is_shared(self) -> bool:
        """True when the lock also excludes runs in other processes."""
        return getattr(self.lock, "shared", False)

    def recover_stale_logs(self) -> int:
        """
        Mark RUNNING sync logs left by a dead process as FAILED.

        Only done while holding the lock: a RUNNING row seen while another
        holder is active belongs to a live run.
        """
        if not self.lock.try_acquire():
            logger.info("Sync in progress; skipping stale sync log recovery")
            return 0
        try:
            with self.session_factory() as db:
                return sync_config_service.recover_stale_sync_logs(db)
        finally:
            self.lock.release()

    def run(self, trigger: TriggerType) -> SyncOutcome:
        if not self.lock.try_acquire():
            logger.warning("Sync already in progress, skipping trigger=%s", trigger.value)
            return SyncOutcome(success=False, message=SYNC_BUSY_MESSAGE)

        try:
            return self._run_locked(trigger)
        finally:
            self.lock.release()

    def _run_locked(self, trigger: TriggerType) -> SyncOutcome:
        with self.session_factory() as db:
            sync_log: SyncLog | None = None
            try:
                sync_log = sync_config_service.create_sync_log(
                    db, trigger, start_time=self.clock()
                )
                logger.info(
                    "Sync started sync_log=%s trigger=%s",
                    sync_log.id,
                    trigger.value,
                    extra=build_log_context(sync_log_id=sync_log.id, trigger=trigger.value),
                )

                new_count, updated_count, fetched = self._sync_tickets(db)

                sync_config_service.complete_sync_log(
                    db, sync_log, synced=new_count, updated=updated_count
                )
                sync_config_service.update_last_sync_time(db, self.clock())
            except Exception as exc:
                logger.exception("Sync failed trigger=%s", trigger.value)
                db.rollback()
                if sync_log is not None:
                    self._record_failure(db, sync_log, str(exc) or type(exc).__name__)
                return SyncOutcome(success=False, message=f"Sync failed: {exc}")

        message = (
            NO_TICKETS_MESSAGE
            if not fetched
            else f"Sync complete: new={new_count}, updated={updated_count}"
        )
        logger.info(
            "Sync finished trigger=%s new=%s updated=%s", trigger.value, new_count, updated_count
        )
        return SyncOutcome(
            new_count=new_count,
            updated_count=updated_count,
            success=True,
            message=message,
        )

    def _record_failure(self, db: Session, sync_log: SyncLog, error: str) -> None:
        try:
            sync_config_service.fail_sync_log(db, sync_log, error)
        except Exception:
            db.rollback()
            logger.exception("Could not mark sync log FAILED sync_log=%s", sync_log.id)

    def _sync_tickets(self, db: Session) -> tuple[int, int, int]:
        """Return (new_count, updated_count, fetched_count)."""
        watermark = sync_config_service.get_last_sync_time(db)
        new_count = 0
        updated_count = 0

        with self.client_factory() as client:
            raw_tickets = client.fetch_updated_since(watermark)
            if not raw_tickets:
                return 0, 0, 0

            for raw in raw_tickets:
                if raw.status != self.open_status:
                    continue
                try:
                    is_new = self._sync_ticket(db, client, raw)
                except Exception:
                    db.rollback()
                    logger.exception(
                        "Ticket sync failed external_id=%s; continuing batch",
                        raw.external_id,
                        extra=build_log_context(external_id=raw.external_id),
                    )
                    continue
                if is_new:
                    new_count += 1
                else:
                    updated_count += 1

        return new_count, updated_count, len(raw_tickets)

    def _sync_ticket(self, db: Session, client: TicketSource, raw: RawTicket) -> bool:
        """Upsert one open ticket and dispatch if warranted. Returns True if created."""
        external_id = raw.external_id
        try:
            turns = client.fetch_conversation_thread(external_id)
        except Exception as exc:
            logger.warning(
                "Conversation fetch failed external_id=%s error=%s", external_id, exc
            )
            turns = []
        content = serialize_ticket_content(build_ticket_content(raw.description_body, turns))

        try:
            ticket, is_new, transition = self._upsert(db, raw, content)
        except IntegrityError:
            # Another writer inserted the same external id first; update theirs
            db.rollback()
            logger.info("Concurrent insert for external_id=%s; retrying as update", external_id)
            ticket, is_new, transition = self._upsert(db, raw, content)

        if transition.dispatch is not None:
            self.dispatcher.dispatch(transition.dispatch, ticket)
            logger.info(
                "Queued translation ticket_id=%s external_id=%s is_new=%s",
                ticket.id,
                external_id,
                is_new,
            )
        else:
            logger.info(
                "Skipped dispatch ticket_id=%s external_id=%s status=%s",
                ticket.id,
                external_id,
                ticket.status.value,
            )
        return is_new

    def _upsert(
        self, db: Session, raw: RawTicket, content: str | None
    ) -> tuple[Ticket, bool, Transition]:
        ticket = (
            db.query(Ticket)
            .filter(Ticket.external_id == raw.external_id)
            .with_for_update()
            .first()
        )
        is_new = ticket is None
        if ticket is None:
            ticket = Ticket(external_id=raw.external_id, status=TicketStatus.PENDING_TRANS)
            db.add(ticket)

        ticket.subject = raw.subject
        ticket.content = content

        transition = ticket_workflow.decide(
            ticket.status, TicketEvent.SYNC_SURFACED, is_new=is_new
        )
        ticket.status = transition.next_status
        db.commit()
        return ticket, is_new, transition
