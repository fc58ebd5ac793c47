"""
Storage interfaces the sync engine depends on.

Two backends implement them (see store/sql.py and store/memory.py); one is
picked at startup by build_stores() and handed to the coordinators.

Writes report their outcome as values rather than exceptions:

    Written(record)          the write was applied
    NotFound()               no such record for this user
    VersionConflict(v)       the stored version is v, not what the caller expected

StoreError (or any SQLAlchemyError) means the backend itself failed.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Union

from promptsync.models.prompt import Prompt
from promptsync.models.sync import SyncSession


class StoreError(RuntimeError):
    """Raised when the underlying persistence layer is unavailable or fails."""


# ── Write inputs and results ──────────────────────────────────────────────────

@dataclass
class PromptFields:
    """Mutable business fields of a prompt, as written by create/update."""

    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    is_public: bool = False
    quick_access_key: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "is_public": self.is_public,
            "quick_access_key": self.quick_access_key,
        }


@dataclass(frozen=True)
class Written:
    record: Prompt


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class VersionConflict:
    current_version: int


CreateResult = Union[Written, VersionConflict]
UpdateResult = Union[Written, NotFound, VersionConflict]


@dataclass
class PromptPage:
    records: List[Prompt]
    total: int  # matching records before offset/limit


# ── Interfaces ────────────────────────────────────────────────────────────────

class PromptStore(Protocol):
    def create(
        self, user_id: str, fields: PromptFields, desktop_id: Optional[str] = None
    ) -> CreateResult:
        """Insert at version 1. VersionConflict if (user_id, desktop_id) already exists."""

    def update(
        self, prompt_id: str, user_id: str, fields: PromptFields, expected_version: int
    ) -> UpdateResult:
        """Compare-and-write: applies only if the stored version equals expected_version."""

    def get_by_desktop_id(self, user_id: str, desktop_id: str) -> Optional[Prompt]:
        ...

    def get_by_user_id(self, user_id: str) -> List[Prompt]:
        ...

    def get_all_for_sync(self, user_id: str, offset: int, limit: int) -> PromptPage:
        ...

    def get_updated_since(
        self, user_id: str, since: datetime, offset: int, limit: int
    ) -> PromptPage:
        ...

    def count_for_user(self, user_id: str) -> int:
        ...


class SessionLedger(Protocol):
    def start(self, user_id: str, session_id: str) -> SyncSession:
        """Append an in_progress session and return it (with its row id)."""

    def finish(
        self,
        row_id: int,
        *,
        status: str,
        uploaded: int = 0,
        updated: int = 0,
        conflicts: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        """Finalize an in_progress session. Rows already finished are left as they are."""

    def history(self, user_id: str, limit: int) -> List[SyncSession]:
        """Most recent first."""

    def latest(
        self, user_id: str, statuses: Optional[Sequence[str]] = None
    ) -> Optional[SyncSession]:
        ...

    def count_since(
        self, user_id: str, status: str, since: Optional[datetime]
    ) -> int:
        """Sessions with this status started after `since` (all of them if None)."""

    def fail_stale(self, started_before: datetime) -> int:
        """Mark in_progress sessions started before the cutoff as failed."""
