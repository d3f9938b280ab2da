import asyncio
import threading
from datetime import datetime, timezone

import pytest

from ticketflow import main as main_module
from ticketflow.db.enums import SyncConfigKey, SyncStatus, TriggerType
from ticketflow.db.models import SyncLog
from ticketflow.scheduler import SyncScheduler, recover_on_start, resolve_timezone
from ticketflow.services import sync_config_service


def _at(minute: int, second: int = 0, microsecond: int = 0, hour: int = 10) -> datetime:
    return datetime(2026, 3, 2, hour, minute, second, microsecond, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_fires_once_per_matching_minute(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    scheduler = SyncScheduler(sync_engine, session_factory)

    first = await scheduler.tick(_at(5, 1))
    same_minute = await scheduler.tick(_at(5, 40))
    off_schedule = await scheduler.tick(_at(6))
    next_slot = await scheduler.tick(_at(10))

    assert first is not None and first.success is True
    assert same_minute is None
    assert off_schedule is None
    assert next_slot is not None
    logs = db.query(SyncLog).all()
    assert len(logs) == 2
    assert {log.trigger_type for log in logs} == {TriggerType.SCHEDULED}


@pytest.mark.asyncio
async def test_matching_minute_between_polls_still_fires(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    sync_config_service.update_config(db, SyncConfigKey.SYNC_CRON, "5 * * * *")
    scheduler = SyncScheduler(sync_engine, session_factory)

    before = await scheduler.tick(_at(4, 59, 900000))
    after = await scheduler.tick(_at(6, 0, 100000))
    later = await scheduler.tick(_at(7))

    assert before is None
    assert after is not None and after.success is True
    assert scheduler.last_fired == _at(5)
    assert later is None
    assert db.query(SyncLog).count() == 1


@pytest.mark.asyncio
async def test_long_gap_fires_once(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    scheduler = SyncScheduler(sync_engine, session_factory)

    await scheduler.tick(_at(1))
    # 10:05, 10:10 and 10:15 all passed while the loop was stalled
    outcome = await scheduler.tick(_at(17))

    assert outcome is not None
    assert scheduler.last_fired == _at(15)
    assert db.query(SyncLog).count() == 1


@pytest.mark.asyncio
async def test_disabled_or_invalid_schedule_never_fires(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    scheduler = SyncScheduler(sync_engine, session_factory)

    sync_config_service.update_config(db, SyncConfigKey.SYNC_ENABLED, "false")
    assert await scheduler.tick(_at(5)) is None

    sync_config_service.update_config(db, SyncConfigKey.SYNC_ENABLED, "true")
    sync_config_service.update_config(db, SyncConfigKey.SYNC_CRON, "not a cron")
    assert await scheduler.tick(_at(10)) is None

    assert db.query(SyncLog).count() == 0


@pytest.mark.asyncio
async def test_minutes_passed_while_disabled_are_not_replayed(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    scheduler = SyncScheduler(sync_engine, session_factory)
    assert await scheduler.tick(_at(1)) is None

    sync_config_service.update_config(db, SyncConfigKey.SYNC_ENABLED, "false")
    # 10:05 matches but scheduling is off
    assert await scheduler.tick(_at(6)) is None
    sync_config_service.update_config(db, SyncConfigKey.SYNC_ENABLED, "true")

    assert await scheduler.tick(_at(7)) is None
    assert db.query(SyncLog).count() == 0


@pytest.mark.asyncio
async def test_cron_is_evaluated_in_configured_timezone(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    sync_config_service.update_config(db, SyncConfigKey.SYNC_CRON, "0 9 * * *")
    tokyo = SyncScheduler(sync_engine, session_factory, tz_name="Asia/Tokyo")

    # 00:00 UTC is 09:00 in Tokyo
    assert await tokyo.tick(_at(0, hour=0)) is not None
    assert await tokyo.tick(_at(0, hour=9)) is None


def test_unknown_timezone_falls_back_to_utc():
    assert resolve_timezone("Mars/Olympus_Mons").zone == "UTC"
    assert resolve_timezone("Europe/Berlin").zone == "Europe/Berlin"


@pytest.mark.asyncio
async def test_config_is_read_off_the_event_loop(db, session_factory, sync_engine):
    sync_config_service.init_default_config(db)
    loop_thread = threading.get_ident()
    reader_threads: list[int] = []

    def _recording_factory():
        reader_threads.append(threading.get_ident())
        return session_factory()

    scheduler = SyncScheduler(sync_engine, _recording_factory)
    await scheduler.tick(_at(6))

    assert reader_threads
    assert loop_thread not in reader_threads


def test_recover_on_start_seeds_config_and_closes_stale_logs(db, session_factory, sync_engine):
    stale = sync_config_service.create_sync_log(db, TriggerType.SCHEDULED)

    assert recover_on_start(sync_engine, session_factory) == 1

    db.expire_all()
    assert db.get(SyncLog, stale.id).status == SyncStatus.FAILED
    assert sync_config_service.get_cron_expression(db) is not None


def test_recover_on_start_skips_while_a_run_holds_the_lock(db, session_factory, sync_engine):
    live = sync_config_service.create_sync_log(db, TriggerType.MANUAL)
    sync_engine.lock.try_acquire()
    try:
        assert recover_on_start(sync_engine, session_factory) == 0
    finally:
        sync_engine.lock.release()

    db.expire_all()
    assert db.get(SyncLog, live.id).status == SyncStatus.RUNNING


# =============================================================================
# API lifespan
# =============================================================================


class _UpToDate:
    is_up_to_date = True


@pytest.mark.asyncio
async def test_api_lifespan_runs_scheduler_on_the_shared_engine(
    monkeypatch, session_factory, sync_engine
):
    started = asyncio.Event()
    seen: list[SyncScheduler] = []

    async def _fake_loop(scheduler, poll_interval=None):
        seen.append(scheduler)
        started.set()
        await asyncio.Event().wait()

    monkeypatch.setattr(main_module, "ensure_migrations", lambda *args: _UpToDate())
    monkeypatch.setattr(main_module, "SessionLocal", session_factory)
    monkeypatch.setattr(main_module, "get_sync_engine", lambda: sync_engine)
    monkeypatch.setattr(main_module, "scheduler_loop", _fake_loop)
    monkeypatch.setattr(main_module.settings, "SCHEDULER_ENABLED", True)

    async with main_module.lifespan(main_module.app):
        await asyncio.wait_for(started.wait(), timeout=1)
        task = main_module.app.state.scheduler_task
        assert seen[0].engine is sync_engine
        assert not task.done()

    assert task.cancelled()


@pytest.mark.asyncio
async def test_api_lifespan_without_scheduler(monkeypatch, session_factory, sync_engine):
    monkeypatch.setattr(main_module, "ensure_migrations", lambda *args: _UpToDate())
    monkeypatch.setattr(main_module, "SessionLocal", session_factory)
    monkeypatch.setattr(main_module, "get_sync_engine", lambda: sync_engine)
    monkeypatch.setattr(main_module.settings, "SCHEDULER_ENABLED", False)

    async with main_module.lifespan(main_module.app):
        assert main_module.app.state.scheduler_task is None
