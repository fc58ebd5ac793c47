"""Liveness route."""
import time

from fastapi import APIRouter, Request

from promptsync.sync.clock import format_iso8601, utcnow

router = APIRouter()


@router.get("")
def health(request: Request):
    """Unauthenticated liveness check."""
    return {
        "status": "healthy",
        "timestamp": format_iso8601(utcnow()),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "environment": request.app.state.settings.environment,
        "version": request.app.version,
    }
