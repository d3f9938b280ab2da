"""CLI tools for ticket sync administration."""

import logging
import sys

import click
import httpx

from ticketflow.core.config import settings
from ticketflow.core.deps import get_sync_engine
from ticketflow.db.enums import SyncConfigKey, TriggerType
from ticketflow.db.session import SessionLocal
from ticketflow.schemas.sync import SyncOutcome
from ticketflow.services import sync_config_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def _api_client(api_url: str) -> httpx.Client:
    # A run may hold the request open for as long as the lock TTL
    return httpx.Client(base_url=api_url, timeout=float(settings.SYNC_LOCK_TTL_SECONDS))


def _sync_via_api(api_url: str) -> SyncOutcome:
    with _api_client(api_url) as client:
        response = client.post("/sync/freshdesk")
        response.raise_for_status()
        return SyncOutcome.model_validate(response.json())


@click.group()
def cli():
    """Ticketflow CLI tools."""
    pass


@cli.command()
@click.option("--api-url", default=None, help="API base URL (default: API_BASE_URL)")
def sync(api_url):
    """
    Run a manual sync now.

    With REDIS_URL set the run happens here under the shared lock. Otherwise
    the lock only exists inside the API process, so the run is triggered
    through POST /sync/freshdesk on the API.

    Exits with status 1 when the run fails or another sync is in progress.

    Example:
        python -m ticketflow.cli sync
    """
    engine = get_sync_engine()
    if engine.lock_is_shared:
        with SessionLocal() as db:
            sync_config_service.init_default_config(db)
        outcome = engine.run(TriggerType.MANUAL)
    else:
        target = api_url or settings.API_BASE_URL
        try:
            outcome = _sync_via_api(target)
        except httpx.HTTPError as exc:
            click.echo(f"❌ Could not reach the API at {target}: {exc}")
            sys.exit(1)

    if outcome.success:
        click.echo(f"✓ {outcome.message}")
        return
    click.echo(f"❌ {outcome.message}")
    sys.exit(1)


@cli.command()
def init_config():
    """Seed default sync config keys (existing values are kept)."""
    with SessionLocal() as db:
        sync_config_service.init_default_config(db)
    click.echo("✓ Sync config initialized")


@cli.command()
def show_config():
    """Print the current sync config."""
    with SessionLocal() as db:
        for key in SyncConfigKey:
            value = sync_config_service.get_config_value(db, key)
            click.echo(f"{key.value}: {value if value is not None else '(unset)'}")


@cli.command()
@click.option("--force", is_flag=True, help="Recover even though a running API cannot be detected")
def recover_sync_logs(force):
    """
    Mark sync logs left RUNNING by a crashed process as FAILED.

    Without REDIS_URL this process cannot see a sync running inside the API,
    so it refuses unless --force confirms the API is stopped.
    """
    engine = get_sync_engine()
    if not engine.lock_is_shared and not force:
        click.echo("❌ Sync lock is process-local; stop the API and rerun with --force")
        sys.exit(1)
    count = engine.recover_stale_logs()
    click.echo(f"✓ Recovered {count} stale sync log(s)")


if __name__ == "__main__":
    cli()
