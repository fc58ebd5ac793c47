"""StatusReporter: a read-only view over the session ledger and prompt store."""
from datetime import timedelta
from typing import List

from promptsync.models.payloads import SyncSessionSummary, SyncStatusSummary
from promptsync.models.sync import (
    FINISHED_STATUSES,
    STATUS_COMPLETED,
    STATUS_COMPLETED_WITH_CONFLICTS,
)
from promptsync.store.base import PromptStore, SessionLedger
from promptsync.sync.clock import Clock, utcnow


class StatusReporter:
    def __init__(
        self,
        store: PromptStore,
        ledger: SessionLedger,
        *,
        sync_enabled: bool = True,
        connected_window: timedelta = timedelta(minutes=60),
        clock: Clock = utcnow,
    ):
        self.store = store
        self.ledger = ledger
        self.sync_enabled = sync_enabled
        self.connected_window = connected_window
        self.clock = clock

    def status(self, user_id: str) -> SyncStatusSummary:
        """
        Summarize the user's sync state.

        pending_conflicts counts conflicted sessions since the last clean
        sync; a clean "completed" session means the client caught up.
        """
        latest = self.ledger.latest(user_id)
        last_finished = self.ledger.latest(user_id, statuses=FINISHED_STATUSES)
        last_clean = self.ledger.latest(user_id, statuses=[STATUS_COMPLETED])

        pending = self.ledger.count_since(
            user_id,
            STATUS_COMPLETED_WITH_CONFLICTS,
            last_clean.started_at if last_clean else None,
        )

        connected = (
            latest is not None
            and self.clock() - latest.started_at <= self.connected_window
        )

        return SyncStatusSummary(
            last_sync_at=last_finished.completed_at if last_finished else None,
            total_prompts=self.store.count_for_user(user_id),
            pending_conflicts=pending,
            last_session_id=latest.session_id if latest else None,
            sync_enabled=self.sync_enabled,
            desktop_connected=connected,
        )

    def history(self, user_id: str, limit: int) -> List[SyncSessionSummary]:
        return [
            SyncSessionSummary.model_validate(row)
            for row in self.ledger.history(user_id, limit)
        ]
