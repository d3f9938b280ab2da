"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from ticketflow.core.config import settings
from ticketflow.core.deps import get_sync_engine
from ticketflow.core.migrations import MigrationError, ensure_migrations
from ticketflow.db.session import SessionLocal, engine
from ticketflow.scheduler import SyncScheduler, recover_on_start, scheduler_loop
from ticketflow.services.errors import InvalidTransitionError, NotFoundError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    status = ensure_migrations(engine, settings.DB_AUTO_MIGRATE)
    if not status.is_up_to_date:
        raise MigrationError(
            f"Database schema is behind head (current={status.current_heads}, "
            f"head={status.head_revisions}); run `alembic upgrade head` or set DB_AUTO_MIGRATE=true"
        )
    sync_engine = get_sync_engine()
    recover_on_start(sync_engine, SessionLocal)

    scheduler_task: asyncio.Task | None = None
    if settings.SCHEDULER_ENABLED:
        scheduler = SyncScheduler(sync_engine, SessionLocal)
        scheduler_task = asyncio.create_task(scheduler_loop(scheduler))
    app.state.scheduler_task = scheduler_task

    logger.info("Ticketflow API ready env=%s version=%s", settings.ENV, settings.VERSION)
    try:
        yield
    finally:
        if scheduler_task:
            scheduler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await scheduler_task


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Ticketflow API",
    description="Helpdesk ticket sync and AI workflow dispatch",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Internal-Secret"],
)


@app.exception_handler(NotFoundError)
async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
async def _invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    logger.warning("Rejected transition path=%s detail=%s", request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ============================================================================
# Routers
# ============================================================================

from ticketflow.routers import internal, sync, tickets  # noqa: E402

app.include_router(tickets.router)
app.include_router(sync.router)

# Internal endpoints (external cron - protected by INTERNAL_SECRET)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns version info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
