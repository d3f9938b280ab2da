"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external cron when the in-process scheduler is not running.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ticketflow.core.deps import get_db, get_sync_engine, verify_internal_secret
from ticketflow.db.enums import TriggerType
from ticketflow.schemas.sync import SyncOutcome
from ticketflow.services import sync_config_service
from ticketflow.services.sync_engine import SyncEngine

router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)


@router.post("/ticket-sync", response_model=SyncOutcome)
def scheduled_ticket_sync(
    db: Session = Depends(get_db),
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncOutcome:
    """Scheduled sync; a no-op when auto-sync is disabled."""
    if not sync_config_service.is_sync_enabled(db):
        return SyncOutcome(success=False, message="Scheduled sync is disabled")
    return engine.run(TriggerType.SCHEDULED)
