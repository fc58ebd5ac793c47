"""FastAPI application factory."""
import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI

from promptsync.api.errors import install_error_handlers
from promptsync.api.routes import health, sync as sync_routes
from promptsync.config import Settings, get_settings
from promptsync.scheduler.jobs import build_scheduler
from promptsync.store.backends import build_stores
from promptsync.sync.clock import Clock, utcnow
from promptsync.sync.download import DownloadCoordinator
from promptsync.sync.status import StatusReporter
from promptsync.sync.upload import UploadCoordinator

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


def create_app(
    settings: Optional[Settings] = None,
    engine=None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build and return the FastAPI app.

    Args:
        settings: defaults to get_settings().
        engine: SQLAlchemy engine for the "sql" backend; built from
            settings.database_url when omitted.
        clock: time source for stores and coordinators (tests pin it).
    """
    settings = settings or get_settings()
    clock = clock or utcnow
    stores = build_stores(settings, engine=engine, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if settings.session_sweep_interval_minutes > 0:
            scheduler = build_scheduler(stores.sessions, settings)
            scheduler.start()
            logger.info(
                "Stale session sweep every %d min (cutoff %d min)",
                settings.session_sweep_interval_minutes,
                settings.stale_session_minutes,
            )
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)

    app = FastAPI(
        title="Prompt Sync API",
        description="Desktop/cloud prompt synchronization",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.stores = stores
    app.state.started_at = time.monotonic()
    app.state.upload = UploadCoordinator(stores.prompts, stores.sessions)
    app.state.download = DownloadCoordinator(stores.prompts, clock=clock)
    app.state.status = StatusReporter(
        stores.prompts,
        stores.sessions,
        sync_enabled=settings.sync_enabled,
        connected_window=timedelta(minutes=settings.desktop_connected_window_minutes),
        clock=clock,
    )

    install_error_handlers(app)
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app
