"""
SQLModel-backed prompt store and session ledger.

Each operation opens its own Session on the shared engine, so instances are
safe to share across FastAPI's worker threads.

Optimistic concurrency lives here: update() is a single
UPDATE ... WHERE id = :id AND version = :expected statement, and create()
leans on the (user_id, desktop_id) unique constraint. Whichever writer loses
the race gets a VersionConflict back instead of overwriting.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

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


class SqlPromptStore:
    """Prompt persistence on a SQLAlchemy engine."""

    def __init__(self, engine, clock: Clock = utcnow):
        self.engine = engine
        self.clock = clock

    def create(
        self, user_id: str, fields: PromptFields, desktop_id: Optional[str] = None
    ) -> CreateResult:
        now = self.clock()
        prompt = Prompt(
            user_id=user_id,
            desktop_id=desktop_id,
            version=1,
            created_at=now,
            updated_at=now,
            **fields.as_dict(),
        )
        with Session(self.engine) as s:
            s.add(prompt)
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                if desktop_id is None:
                    raise
                existing = self._find_by_desktop_id(s, user_id, desktop_id)
                if existing is None:
                    raise
                logger.info(
                    "Create of desktop_id=%s lost a race (stored version %s)",
                    desktop_id,
                    existing.version,
                )
                return VersionConflict(current_version=existing.version)
            s.refresh(prompt)
            return Written(prompt)

    def update(
        self, prompt_id: str, user_id: str, fields: PromptFields, expected_version: int
    ) -> UpdateResult:
        values = fields.as_dict()
        values["version"] = expected_version + 1
        values["updated_at"] = self.clock()

        with Session(self.engine) as s:
            result = s.execute(
                update(Prompt)
                .where(Prompt.id == prompt_id)
                .where(Prompt.user_id == user_id)
                .where(Prompt.version == expected_version)
                .values(**values)
            )
            s.commit()

            if result.rowcount == 0:
                current = s.exec(
                    select(Prompt)
                    .where(Prompt.id == prompt_id)
                    .where(Prompt.user_id == user_id)
                ).first()
                if current is None:
                    return NotFound()
                return VersionConflict(current_version=current.version)

            return Written(s.get(Prompt, prompt_id))

    def get_by_desktop_id(self, user_id: str, desktop_id: str) -> Optional[Prompt]:
        with Session(self.engine) as s:
            return self._find_by_desktop_id(s, user_id, desktop_id)

    def get_by_user_id(self, user_id: str) -> List[Prompt]:
        with Session(self.engine) as s:
            return list(
                s.exec(
                    select(Prompt)
                    .where(Prompt.user_id == user_id)
                    .order_by(Prompt.updated_at.desc())
                ).all()
            )

    def get_all_for_sync(self, user_id: str, offset: int, limit: int) -> PromptPage:
        return self._page(user_id, None, offset, limit)

    def get_updated_since(
        self, user_id: str, since: datetime, offset: int, limit: int
    ) -> PromptPage:
        return self._page(user_id, since, offset, limit)

    def count_for_user(self, user_id: str) -> int:
        with Session(self.engine) as s:
            return s.exec(
                select(func.count()).select_from(Prompt).where(Prompt.user_id == user_id)
            ).one()

    # ─── Internal helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _find_by_desktop_id(s: Session, user_id: str, desktop_id: str) -> Optional[Prompt]:
        return s.exec(
            select(Prompt)
            .where(Prompt.user_id == user_id)
            .where(Prompt.desktop_id == desktop_id)
        ).first()

    def _page(
        self, user_id: str, since: Optional[datetime], offset: int, limit: int
    ) -> PromptPage:
        query = select(Prompt).where(Prompt.user_id == user_id)
        if since is not None:
            query = query.where(Prompt.updated_at > since)

        with Session(self.engine) as s:
            total = s.exec(select(func.count()).select_from(query.subquery())).one()
            if offset >= total:
                # SQLite rejects bound integers >= 2**63, so past-the-end never reaches it
                return PromptPage(records=[], total=total)
            records = s.exec(
                query.order_by(Prompt.updated_at, Prompt.id).offset(offset).limit(limit)
            ).all()
        return PromptPage(records=list(records), total=total)


class SqlSessionLedger:
    """Sync session history in the syncsession table."""

    def __init__(self, engine, clock: Clock = utcnow):
        self.engine = engine
        self.clock = clock

    def start(self, user_id: str, session_id: str) -> SyncSession:
        row = SyncSession(
            user_id=user_id,
            session_id=session_id,
            started_at=self.clock(),
            status=STATUS_IN_PROGRESS,
        )
        with Session(self.engine) as s:
            s.add(row)
            s.commit()
            s.refresh(row)
        return row

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
        with Session(self.engine) as s:
            # Only in_progress rows are finalized; the sweeper may have failed it already
            result = s.execute(
                update(SyncSession)
                .where(SyncSession.id == row_id)
                .where(SyncSession.status == STATUS_IN_PROGRESS)
                .values(
                    status=status,
                    completed_at=self.clock(),
                    uploaded=uploaded,
                    updated=updated,
                    conflicts=conflicts,
                    error_message=error_message,
                )
            )
            s.commit()

            if result.rowcount == 0:
                row = s.get(SyncSession, row_id)
                logger.warning(
                    "Sync session row %s not finished as %s (current status: %s)",
                    row_id,
                    status,
                    row.status if row else "missing",
                )

    def history(self, user_id: str, limit: int) -> List[SyncSession]:
        with Session(self.engine) as s:
            return list(
                s.exec(
                    select(SyncSession)
                    .where(SyncSession.user_id == user_id)
                    .order_by(SyncSession.started_at.desc(), SyncSession.id.desc())
                    .limit(limit)
                ).all()
            )

    def latest(
        self, user_id: str, statuses: Optional[Sequence[str]] = None
    ) -> Optional[SyncSession]:
        query = select(SyncSession).where(SyncSession.user_id == user_id)
        if statuses:
            query = query.where(SyncSession.status.in_(list(statuses)))
        with Session(self.engine) as s:
            return s.exec(
                query.order_by(SyncSession.started_at.desc(), SyncSession.id.desc())
            ).first()

    def count_since(
        self, user_id: str, status: str, since: Optional[datetime]
    ) -> int:
        query = (
            select(func.count())
            .select_from(SyncSession)
            .where(SyncSession.user_id == user_id)
            .where(SyncSession.status == status)
        )
        if since is not None:
            query = query.where(SyncSession.started_at > since)
        with Session(self.engine) as s:
            return s.exec(query).one()

    def fail_stale(self, started_before: datetime) -> int:
        with Session(self.engine) as s:
            stale = s.exec(
                select(SyncSession)
                .where(SyncSession.status == STATUS_IN_PROGRESS)
                .where(SyncSession.started_at < started_before)
            ).all()
            now = self.clock()
            for row in stale:
                row.status = STATUS_FAILED
                row.completed_at = now
                row.error_message = "abandoned: session never finished"
                s.add(row)
            s.commit()
            return len(stale)
