"""Desktop sync routes: upload, download and status."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from promptsync.api.deps import (
    get_download_coordinator,
    get_status_reporter,
    get_upload_coordinator,
    require_user,
)
from promptsync.api.errors import error_response, ok
from promptsync.models.payloads import SyncUploadRequest
from promptsync.sync.download import DownloadCoordinator
from promptsync.sync.queries import (
    ValidationFailure,
    parse_download_query,
    parse_history_limit,
)
from promptsync.sync.status import StatusReporter
from promptsync.sync.upload import UploadCoordinator

router = APIRouter()


@router.post("/upload")
def upload_prompts(
    payload: SyncUploadRequest,
    user_id: str = Depends(require_user),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    """
    Merge a batch of desktop edits. Conflicts come back in the 200 body;
    the client re-downloads those prompts before retrying.
    """
    result = coordinator.upload(user_id, payload.sync_session_id, payload.prompts)
    return ok(result.model_dump())


@router.get("/download")
def download_prompts(
    last_sync: Optional[str] = Query(default=None, alias="lastSync"),
    offset: Optional[str] = None,
    limit: Optional[str] = None,
    user_id: str = Depends(require_user),
    coordinator: DownloadCoordinator = Depends(get_download_coordinator),
):
    """Full sync without lastSync, otherwise only prompts changed after it."""
    query = parse_download_query(last_sync, offset, limit)
    if isinstance(query, ValidationFailure):
        return error_response(400, query.message)
    return ok(coordinator.download(user_id, query).to_response())


@router.get("/status")
def sync_status(
    history: Optional[str] = None,
    limit: Optional[str] = None,
    user_id: str = Depends(require_user),
    reporter: StatusReporter = Depends(get_status_reporter),
):
    """Current sync state; with history=true, also the most recent sessions."""
    history_limit = parse_history_limit(limit)
    if isinstance(history_limit, ValidationFailure):
        return error_response(400, history_limit.message)

    summary = reporter.status(user_id).model_dump()
    if history != "true":
        return ok(summary)

    sessions = reporter.history(user_id, history_limit)
    return ok({"status": summary, "history": [s.model_dump() for s in sessions]})
