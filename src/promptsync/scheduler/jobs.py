"""
APScheduler jobs for session-ledger housekeeping.

An upload that dies between starting its session and finishing it (process
killed, worker restarted) leaves the session "in_progress" forever. The sweep
marks such sessions "failed" once they are older than stale_session_minutes,
so status and history stop reporting a sync that will never end.

The scheduler is started from the FastAPI lifespan (wired in api/main.py).
"""
import asyncio
import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from promptsync.config import Settings, get_settings
from promptsync.store.base import SessionLedger
from promptsync.sync.clock import utcnow

logger = logging.getLogger(__name__)


def build_scheduler(
    ledger: SessionLedger, settings: Optional[Settings] = None
) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        ledger: session ledger the sweep job operates on.
        settings: defaults to get_settings().

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _sweep_stale_sessions,
        trigger="interval",
        minutes=settings.session_sweep_interval_minutes,
        id="stale_session_sweep",
        replace_existing=True,
        kwargs={
            "ledger": ledger,
            "max_age_minutes": settings.stale_session_minutes,
        },
    )

    return scheduler


def sweep_stale_sessions(ledger: SessionLedger, max_age_minutes: int) -> int:
    """Fail in_progress sessions older than max_age_minutes. Returns how many."""
    cutoff = utcnow() - timedelta(minutes=max_age_minutes)
    swept = ledger.fail_stale(cutoff)
    if swept:
        logger.warning("Marked %d abandoned sync session(s) as failed", swept)
    return swept


async def _sweep_stale_sessions(ledger: SessionLedger, max_age_minutes: int) -> None:
    """
    Scheduled job body.

    Runs the blocking store call in a worker thread. Catches everything so one
    bad run doesn't kill the scheduler.
    """
    try:
        await asyncio.to_thread(sweep_stale_sessions, ledger, max_age_minutes)
    except Exception as exc:
        logger.error("Stale session sweep failed: %s", exc)
