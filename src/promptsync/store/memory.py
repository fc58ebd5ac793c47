"""
In-process prompt store and session ledger.

Used for local development (store_backend="memory") and as a fast test
double. A single lock covers every read-check-write, which gives the same
compare-and-write guarantee the SQL store gets from its conditional UPDATE.
Records handed out are copies; callers cannot mutate stored state.
"""
import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from promptsync.models.prompt import Prompt
from promptsync.models.sync import STATUS_FAILED, STATUS_IN_PROGRESS, SyncSession
from promptsync.store.base import (
    CreateResult,
    NotFound,
    PromptFields,
    PromptPage,
    UpdateResult,
    VersionConflict,
    Written,
)
from promptsync.sync.clock import Clock, utcnow

logger = logging.getLogger(__name__)


def _copy_prompt(prompt: Prompt) -> Prompt:
    data = prompt.model_dump()
    data["tags"] = list(prompt.tags)
    return Prompt(**data)


def _copy_session(row: SyncSession) -> SyncSession:
    return SyncSession(**row.model_dump())


class InMemoryPromptStore:
    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._lock = threading.Lock()
        self._prompts: Dict[str, Prompt] = {}

    def create(
        self, user_id: str, fields: PromptFields, desktop_id: Optional[str] = None
    ) -> CreateResult:
        with self._lock:
            if desktop_id is not None:
                existing = self._find_by_desktop_id(user_id, desktop_id)
                if existing is not None:
                    return VersionConflict(current_version=existing.version)
            now = self.clock()
            prompt = Prompt(
                user_id=user_id,
                desktop_id=desktop_id,
                version=1,
                created_at=now,
                updated_at=now,
                **fields.as_dict(),
            )
            self._prompts[prompt.id] = prompt
            return Written(_copy_prompt(prompt))

    def update(
        self, prompt_id: str, user_id: str, fields: PromptFields, expected_version: int
    ) -> UpdateResult:
        with self._lock:
            prompt = self._prompts.get(prompt_id)
            if prompt is None or prompt.user_id != user_id:
                return NotFound()
            if prompt.version != expected_version:
                return VersionConflict(current_version=prompt.version)
            for key, value in fields.as_dict().items():
                setattr(prompt, key, value)
            prompt.version = expected_version + 1
            prompt.updated_at = self.clock()
            return Written(_copy_prompt(prompt))

    def get_by_desktop_id(self, user_id: str, desktop_id: str) -> Optional[Prompt]:
        with self._lock:
            found = self._find_by_desktop_id(user_id, desktop_id)
            return _copy_prompt(found) if found is not None else None

    def get_by_user_id(self, user_id: str) -> List[Prompt]:
        with self._lock:
            owned = [p for p in self._prompts.values() if p.user_id == user_id]
        owned.sort(key=lambda p: p.updated_at, reverse=True)
        return [_copy_prompt(p) for p in owned]

    def get_all_for_sync(self, user_id: str, offset: int, limit: int) -> PromptPage:
        return self._page(user_id, None, offset, limit)

    def get_updated_since(
        self, user_id: str, since: datetime, offset: int, limit: int
    ) -> PromptPage:
        return self._page(user_id, since, offset, limit)

    def count_for_user(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for p in self._prompts.values() if p.user_id == user_id)

    def _find_by_desktop_id(self, user_id: str, desktop_id: str) -> Optional[Prompt]:
        for prompt in self._prompts.values():
            if prompt.user_id == user_id and prompt.desktop_id == desktop_id:
                return prompt
        return None

    def _page(
        self, user_id: str, since: Optional[datetime], offset: int, limit: int
    ) -> PromptPage:
        with self._lock:
            matching = [
                p
                for p in self._prompts.values()
                if p.user_id == user_id and (since is None or p.updated_at > since)
            ]
        matching.sort(key=lambda p: (p.updated_at, p.id))
        return PromptPage(
            records=[_copy_prompt(p) for p in matching[offset : offset + limit]],
            total=len(matching),
        )


class InMemorySessionLedger:
    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._lock = threading.Lock()
        self._rows: List[SyncSession] = []
        self._next_id = 1

    def start(self, user_id: str, session_id: str) -> SyncSession:
        with self._lock:
            row = SyncSession(
                id=self._next_id,
                user_id=user_id,
                session_id=session_id,
                started_at=self.clock(),
                status=STATUS_IN_PROGRESS,
            )
            self._next_id += 1
            self._rows.append(row)
            return _copy_session(row)

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
        with self._lock:
            for row in self._rows:
                if row.id == row_id:
                    if row.status != STATUS_IN_PROGRESS:
                        logger.warning(
                            "Sync session row %s not finished as %s (current status: %s)",
                            row_id,
                            status,
                            row.status,
                        )
                        return
                    row.status = status
                    row.completed_at = self.clock()
                    row.uploaded = uploaded
                    row.updated = updated
                    row.conflicts = conflicts
                    row.error_message = error_message
                    return

    def history(self, user_id: str, limit: int) -> List[SyncSession]:
        return [_copy_session(r) for r in self._newest_first(user_id)[:limit]]

    def latest(
        self, user_id: str, statuses: Optional[Sequence[str]] = None
    ) -> Optional[SyncSession]:
        for row in self._newest_first(user_id):
            if not statuses or row.status in statuses:
                return _copy_session(row)
        return None

    def count_since(
        self, user_id: str, status: str, since: Optional[datetime]
    ) -> int:
        return sum(
            1
            for row in self._newest_first(user_id)
            if row.status == status and (since is None or row.started_at > since)
        )

    def fail_stale(self, started_before: datetime) -> int:
        with self._lock:
            now = self.clock()
            stale = [
                r
                for r in self._rows
                if r.status == STATUS_IN_PROGRESS and r.started_at < started_before
            ]
            for row in stale:
                row.status = STATUS_FAILED
                row.completed_at = now
                row.error_message = "abandoned: session never finished"
            return len(stale)

    def _newest_first(self, user_id: str) -> List[SyncSession]:
        with self._lock:
            owned = [r for r in self._rows if r.user_id == user_id]
        return sorted(owned, key=lambda r: (r.started_at, r.id), reverse=True)
