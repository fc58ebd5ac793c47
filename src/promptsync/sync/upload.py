"""
UploadCoordinator applies a batch of desktop prompt changes.

Flow for one upload:
  1. Start a SyncSession (status="in_progress")
  2. For each mutation, in submission order:
       look up (user_id, desktop_id) → resolve → create / update / record conflict
  3. Finish the SyncSession ("completed" or "completed_with_conflicts")

Records are independent: a conflict on one does not stop the rest of the
batch. The request body is validated before this class is reached, so a
malformed batch never starts a session.

On a store failure mid-batch: finish the session as "failed" and re-raise.
Writes that already went through stay applied with their own version bumps.
"""
import logging
from typing import Sequence

from promptsync.models.payloads import ConflictRecord, DesktopPrompt, UploadResult
from promptsync.models.sync import (
    STATUS_COMPLETED,
    STATUS_COMPLETED_WITH_CONFLICTS,
    STATUS_FAILED,
)
from promptsync.store.base import (
    NotFound,
    PromptFields,
    PromptStore,
    SessionLedger,
    VersionConflict,
    Written,
)
from promptsync.sync.resolver import Action, resolve, version_conflict

logger = logging.getLogger(__name__)


def fields_from_mutation(mutation: DesktopPrompt) -> PromptFields:
    return PromptFields(
        title=mutation.title,
        content=mutation.content,
        tags=list(mutation.tags),
        is_public=mutation.is_public,
        quick_access_key=mutation.quick_access_key,
    )


class UploadCoordinator:
    """Merges desktop mutations into the prompt store and records the session."""

    def __init__(self, store: PromptStore, ledger: SessionLedger):
        self.store = store
        self.ledger = ledger

    def upload(
        self, user_id: str, session_id: str, mutations: Sequence[DesktopPrompt]
    ) -> UploadResult:
        """
        Apply `mutations` for `user_id` under the client's `session_id`.

        Returns:
            UploadResult with created/updated counts and one ConflictRecord per
            rejected mutation.

        Raises:
            Any store error (after the session has been recorded as failed).
        """
        logger.info(
            "Upload started user=%s session=%s prompts=%d",
            user_id,
            session_id,
            len(mutations),
        )
        session = self.ledger.start(user_id, session_id)
        result = UploadResult(session_id=session_id)

        try:
            for mutation in mutations:
                self._apply(user_id, mutation, result)
        except Exception as exc:
            logger.exception("Upload failed user=%s session=%s", user_id, session_id)
            self.ledger.finish(
                session.id,
                status=STATUS_FAILED,
                uploaded=result.uploaded,
                updated=result.updated,
                conflicts=len(result.conflicts),
                error_message=str(exc),
            )
            raise

        status = STATUS_COMPLETED_WITH_CONFLICTS if result.conflicts else STATUS_COMPLETED
        self.ledger.finish(
            session.id,
            status=status,
            uploaded=result.uploaded,
            updated=result.updated,
            conflicts=len(result.conflicts),
        )
        logger.info(
            "Upload finished user=%s session=%s uploaded=%d updated=%d conflicts=%d",
            user_id,
            session_id,
            result.uploaded,
            result.updated,
            len(result.conflicts),
        )
        return result

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _apply(self, user_id: str, mutation: DesktopPrompt, result: UploadResult) -> None:
        stored = self.store.get_by_desktop_id(user_id, mutation.desktop_id)
        resolution = resolve(mutation, stored)
        fields = fields_from_mutation(mutation)

        if resolution.action is Action.CONFLICT:
            self._conflict(result, resolution.conflict)
            return

        if resolution.action is Action.CREATE:
            outcome = self.store.create(user_id, fields, desktop_id=mutation.desktop_id)
        else:
            outcome = self.store.update(stored.id, user_id, fields, expected_version=mutation.version)

        if isinstance(outcome, Written):
            if resolution.action is Action.CREATE:
                result.uploaded += 1
            else:
                result.updated += 1
        elif isinstance(outcome, VersionConflict):
            # Another writer got there between our read and our write
            self._conflict(
                result,
                version_conflict(mutation.desktop_id, outcome.current_version, mutation.version),
            )
        elif isinstance(outcome, NotFound):
            # Row disappeared under us; the client has to re-download to see why
            logger.warning(
                "desktop_id=%s vanished during upload for user=%s",
                mutation.desktop_id,
                user_id,
            )
            self._conflict(
                result,
                version_conflict(mutation.desktop_id, 0, mutation.version),
            )

    @staticmethod
    def _conflict(result: UploadResult, conflict: ConflictRecord) -> None:
        logger.info(
            "Conflict desktop_id=%s web_version=%d desktop_version=%d",
            conflict.desktop_id,
            conflict.web_version,
            conflict.desktop_version,
        )
        result.conflicts.append(conflict)
