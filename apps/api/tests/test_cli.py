import httpx
import pytest
from click.testing import CliRunner

from ticketflow import cli as cli_module
from ticketflow.core.sync_lock import RedisSyncLock
from ticketflow.db.enums import SyncStatus, TriggerType
from ticketflow.db.models import SyncLog
from ticketflow.services import sync_config_service
from ticketflow.services.errors import ExternalFetchFailure
from ticketflow.services.sync_engine import SyncEngine


def _wire(monkeypatch, session_factory, sync_engine):
    monkeypatch.setattr(cli_module, "SessionLocal", session_factory)
    monkeypatch.setattr(cli_module, "get_sync_engine", lambda: sync_engine)


@pytest.fixture
def shared_engine(session_factory, fake_source, dispatcher, fake_redis, fixed_now) -> SyncEngine:
    return SyncEngine(
        session_factory=session_factory,
        lock=RedisSyncLock(fake_redis, key="test:sync-lock", ttl_seconds=60),
        client_factory=lambda: fake_source,
        dispatcher=dispatcher,
        open_status=2,
        clock=lambda: fixed_now,
    )


def _api(monkeypatch, handler, calls):
    def _client(api_url):
        calls.append(api_url)
        return httpx.Client(base_url=api_url, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(cli_module, "_api_client", _client)


def test_sync_command_runs_locally_with_shared_lock(
    monkeypatch, session_factory, shared_engine, fake_source
):
    _wire(monkeypatch, session_factory, shared_engine)
    fake_source.tickets = [{"id": 77, "status": 2, "subject": "Help"}]

    result = CliRunner().invoke(cli_module.cli, ["sync"])

    assert result.exit_code == 0
    assert "Sync complete: new=1, updated=0" in result.output


def test_sync_command_failure_exits_nonzero(
    monkeypatch, session_factory, shared_engine, fake_source
):
    _wire(monkeypatch, session_factory, shared_engine)
    fake_source.fetch_error = ExternalFetchFailure("HTTP 401")

    result = CliRunner().invoke(cli_module.cli, ["sync"])

    assert result.exit_code == 1
    assert "Sync failed: HTTP 401" in result.output


def test_sync_command_is_busy_while_another_process_holds_the_lock(
    monkeypatch, session_factory, shared_engine, fake_redis, fake_source
):
    _wire(monkeypatch, session_factory, shared_engine)
    api_lock = RedisSyncLock(fake_redis, key="test:sync-lock", ttl_seconds=60)
    assert api_lock.try_acquire() is True

    result = CliRunner().invoke(cli_module.cli, ["sync"])

    assert result.exit_code == 1
    assert "Sync already in progress" in result.output
    assert fake_source.opened == 0


def test_sync_command_delegates_to_api_with_local_lock(
    monkeypatch, session_factory, sync_engine, fake_source
):
    _wire(monkeypatch, session_factory, sync_engine)
    calls: list[str] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/sync/freshdesk"
        return httpx.Response(
            200,
            json={
                "new_count": 2,
                "updated_count": 1,
                "success": True,
                "message": "Sync complete: new=2, updated=1",
            },
        )

    _api(monkeypatch, _handler, calls)

    result = CliRunner().invoke(cli_module.cli, ["sync", "--api-url", "http://api:8000"])

    assert result.exit_code == 0
    assert "Sync complete: new=2, updated=1" in result.output
    assert calls == ["http://api:8000"]
    # Nothing ran in this process
    assert fake_source.opened == 0


def test_sync_command_reports_api_busy(monkeypatch, session_factory, sync_engine):
    _wire(monkeypatch, session_factory, sync_engine)

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"success": False, "message": "Sync already in progress"}
        )

    _api(monkeypatch, _handler, [])

    result = CliRunner().invoke(cli_module.cli, ["sync"])

    assert result.exit_code == 1
    assert "Sync already in progress" in result.output


def test_sync_command_api_unreachable(monkeypatch, session_factory, sync_engine):
    _wire(monkeypatch, session_factory, sync_engine)

    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _api(monkeypatch, _handler, [])

    result = CliRunner().invoke(cli_module.cli, ["sync"])

    assert result.exit_code == 1
    assert "Could not reach the API" in result.output


def test_config_commands(monkeypatch, session_factory, sync_engine):
    _wire(monkeypatch, session_factory, sync_engine)
    runner = CliRunner()

    assert runner.invoke(cli_module.cli, ["init-config"]).exit_code == 0
    shown = runner.invoke(cli_module.cli, ["show-config"])

    assert "sync_cron: 0 0/5 * * * ?" in shown.output
    assert "sync_enabled: true" in shown.output


def test_recover_sync_logs_command(monkeypatch, db, session_factory, shared_engine):
    _wire(monkeypatch, session_factory, shared_engine)
    stale = sync_config_service.create_sync_log(db, TriggerType.MANUAL)

    result = CliRunner().invoke(cli_module.cli, ["recover-sync-logs"])

    assert result.exit_code == 0
    assert "Recovered 1" in result.output
    db.expire_all()
    assert db.get(SyncLog, stale.id).status == SyncStatus.FAILED


def test_recover_sync_logs_needs_force_with_local_lock(
    monkeypatch, db, session_factory, sync_engine
):
    _wire(monkeypatch, session_factory, sync_engine)
    stale = sync_config_service.create_sync_log(db, TriggerType.MANUAL)
    runner = CliRunner()

    refused = runner.invoke(cli_module.cli, ["recover-sync-logs"])
    assert refused.exit_code == 1
    db.expire_all()
    assert db.get(SyncLog, stale.id).status == SyncStatus.RUNNING

    forced = runner.invoke(cli_module.cli, ["recover-sync-logs", "--force"])
    assert forced.exit_code == 0
    db.expire_all()
    assert db.get(SyncLog, stale.id).status == SyncStatus.FAILED
