"""Sync session ledger model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from promptsync.sync.clock import utcnow

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_COMPLETED_WITH_CONFLICTS = "completed_with_conflicts"
STATUS_FAILED = "failed"

FINISHED_STATUSES = (STATUS_COMPLETED, STATUS_COMPLETED_WITH_CONFLICTS)


class SyncSession(SQLModel, table=True):
    """Records each desktop upload round for status and history reporting."""

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True)  # client-supplied correlation id
    user_id: str = Field(index=True)
    started_at: datetime = Field(default_factory=utcnow, index=True)
    completed_at: Optional[datetime] = None
    status: str = STATUS_IN_PROGRESS  # "in_progress", "completed", "completed_with_conflicts", "failed"
    uploaded: int = 0
    updated: int = 0
    conflicts: int = 0
    error_message: Optional[str] = None  # internal only, never sent to clients
