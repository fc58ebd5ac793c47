"""
Main entrypoint.

Usage:
    python -m promptsync            # serve the API with uvicorn
    python -m promptsync sweep      # fail abandoned in_progress sync sessions once
"""
import logging
import sys

from promptsync.config import get_settings

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _run_server() -> None:
    import uvicorn

    settings = get_settings()
    logger.info(
        "Starting API on %s:%d (store backend: %s)",
        settings.host,
        settings.port,
        settings.store_backend,
    )
    uvicorn.run(
        "promptsync.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def _run_sweep() -> None:
    from promptsync.scheduler.jobs import sweep_stale_sessions
    from promptsync.store.backends import build_stores

    settings = get_settings()
    stores = build_stores(settings)
    swept = sweep_stale_sessions(stores.sessions, settings.stale_session_minutes)
    logger.info("Sweep done: %d session(s) marked failed", swept)


if __name__ == "__main__":
    _configure_logging()
    # Dispatch on first argument: `python -m promptsync sweep` or just `python -m promptsync`
    if len(sys.argv) > 1 and sys.argv[1] == "sweep":
        _run_sweep()
    else:
        _run_server()
