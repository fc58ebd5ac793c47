"""
Classify one desktop mutation against the stored record.

    no stored record              -> CREATE   (stored at version 1)
    mutation.version == stored    -> UPDATE   (stored becomes version + 1)
    anything else                 -> CONFLICT (nothing written)

Timestamps never break a tie: the server owns `version`, and a client whose
claim is stale in either direction must re-download before retrying. An
unchanged resubmission at the current version is an UPDATE like any other.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from promptsync.models.payloads import ConflictRecord, DesktopPrompt
from promptsync.models.prompt import Prompt


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Resolution:
    action: Action
    new_version: Optional[int] = None  # version the record will have once written
    conflict: Optional[ConflictRecord] = None


def version_conflict(desktop_id: str, web_version: int, desktop_version: int) -> ConflictRecord:
    return ConflictRecord(
        desktop_id=desktop_id,
        web_version=web_version,
        desktop_version=desktop_version,
    )


def resolve(mutation: DesktopPrompt, stored: Optional[Prompt]) -> Resolution:
    """Decide what to do with `mutation` given the current stored row (or None)."""
    if stored is None:
        return Resolution(action=Action.CREATE, new_version=1)

    if mutation.version == stored.version:
        return Resolution(action=Action.UPDATE, new_version=stored.version + 1)

    return Resolution(
        action=Action.CONFLICT,
        conflict=version_conflict(mutation.desktop_id, stored.version, mutation.version),
    )
