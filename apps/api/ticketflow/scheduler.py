"""
Scheduled ticket sync loop.

The API starts `scheduler_loop` as a background task in its lifespan, so
scheduled runs share the API's SyncEngine and lock. Set SCHEDULER_ENABLED=false
to turn it off, e.g. when POST /internal/scheduled/ticket-sync is called from an
external cron instead.

Usage (standalone, only with REDIS_URL set so the lock spans processes):
    python -m ticketflow.scheduler

Polls the sync config and runs a SCHEDULED sync when the configured cron
expression matched any minute since the previous poll.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytz

from ticketflow.core.config import settings
from ticketflow.core.cron import CronError, cron_matches, validate_cron
from ticketflow.core.deps import get_sync_engine
from ticketflow.core.structured_logging import build_log_context
from ticketflow.db.enums import TriggerType
from ticketflow.db.session import SessionLocal
from ticketflow.schemas.sync import SyncOutcome
from ticketflow.services import sync_config_service
from ticketflow.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

ONE_MINUTE = timedelta(minutes=1)
# A poll gap longer than this (suspended host, long stall) only looks back this far
MAX_CATCH_UP = timedelta(hours=24)


def _minute_key(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(second=0, microsecond=0)


def resolve_timezone(name: str | None):
    """pytz zone for `name`; unknown names fall back to UTC."""
    try:
        return pytz.timezone(name or "UTC")
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown SCHEDULER_TIMEZONE=%r; using UTC", name)
        return pytz.utc


class SyncScheduler:
    """
    Fires at most one scheduled sync per matching minute.

    Each tick looks at every minute in (last_checked, now], so a matching
    minute that falls between two polls still fires on the later poll.
    """

    def __init__(
        self,
        engine: SyncEngine,
        session_factory=SessionLocal,
        tz_name: str | None = None,
    ) -> None:
        self.engine = engine
        self.session_factory = session_factory
        self.tz = resolve_timezone(tz_name or settings.SCHEDULER_TIMEZONE)
        self.last_checked: datetime | None = None
        self.last_fired: datetime | None = None

    def _read_schedule(self) -> str | None:
        """Cron expression if scheduled sync is enabled and configured, else None."""
        with self.session_factory() as db:
            if not sync_config_service.is_sync_enabled(db):
                return None
            return sync_config_service.get_cron_expression(db) or None

    def _window(self, now: datetime) -> list[datetime]:
        current = _minute_key(now)
        if self.last_checked is None or self.last_checked >= current:
            return [current]
        start = max(self.last_checked + ONE_MINUTE, current - MAX_CATCH_UP)
        minutes = []
        while start <= current:
            minutes.append(start)
            start += ONE_MINUTE
        return minutes

    def due_minute(self, cron: str | None, now: datetime) -> datetime | None:
        """Latest unfired minute in the window that `cron` matches, in the scheduler zone."""
        window = self._window(now)
        self.last_checked = window[-1]
        if not cron:
            return None
        try:
            validate_cron(cron)
        except CronError as exc:
            logger.warning("Invalid sync cron=%r error=%s; not scheduling", cron, exc)
            return None
        for minute in reversed(window):
            if minute == self.last_fired:
                return None
            if cron_matches(cron, minute.astimezone(self.tz)):
                return minute
        return None

    async def tick(self, now: datetime | None = None) -> SyncOutcome | None:
        now = now or datetime.now(timezone.utc)
        cron = await asyncio.to_thread(self._read_schedule)
        minute = self.due_minute(cron, now)
        if minute is None:
            return None
        self.last_fired = minute
        outcome = await asyncio.to_thread(self.engine.run, TriggerType.SCHEDULED)
        logger.info(
            "Scheduled sync minute=%s success=%s message=%s",
            minute.isoformat(),
            outcome.success,
            outcome.message,
            extra=build_log_context(trigger=TriggerType.SCHEDULED.value, route="scheduler"),
        )
        return outcome


def recover_on_start(engine: SyncEngine, session_factory=SessionLocal) -> int:
    with session_factory() as db:
        sync_config_service.init_default_config(db)
    return engine.recover_stale_logs()


async def scheduler_loop(scheduler: SyncScheduler, poll_interval: int | None = None) -> None:
    interval = poll_interval or settings.SCHEDULER_POLL_INTERVAL
    logger.info(
        "Scheduler starting (poll interval: %ss, timezone: %s)", interval, scheduler.tz.zone
    )
    while True:
        try:
            await scheduler.tick()
        except Exception:
            logger.exception("Error in scheduler loop")
        await asyncio.sleep(interval)


def main() -> None:
    """Entry point for a standalone scheduler process."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    engine = get_sync_engine()
    if not engine.lock_is_shared:
        logger.error(
            "Standalone scheduler needs REDIS_URL so its sync lock is shared with the API; "
            "the API already runs the scheduler in-process"
        )
        raise SystemExit(1)
    recover_on_start(engine)
    scheduler = SyncScheduler(engine)
    try:
        asyncio.run(scheduler_loop(scheduler))
    except KeyboardInterrupt:
        logger.info("Scheduler shutting down")


if __name__ == "__main__":
    main()
