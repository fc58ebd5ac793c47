"""Request and response models for the sync API."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from promptsync.sync.clock import format_iso8601, parse_iso8601

CONFLICT_VERSION_MISMATCH = "version_mismatch"


def normalize_tags(tags: List[str]) -> List[str]:
    """Trim, drop empties and de-duplicate, keeping first-seen order."""
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


# ─── Upload ───────────────────────────────────────────────────────────────────

class DesktopPrompt(BaseModel):
    """A desktop-side prompt change, carrying the version it was based on."""

    desktop_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    is_public: bool = Field(default=False, strict=True)
    quick_access_key: Optional[str] = None
    version: int = Field(gt=0, strict=True)
    last_modified: str  # ISO-8601, kept as sent

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: List[str]) -> List[str]:
        return normalize_tags(value)

    @field_validator("quick_access_key")
    @classmethod
    def _clean_quick_access_key(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("last_modified")
    @classmethod
    def _check_last_modified(cls, value: str) -> str:
        if parse_iso8601(value) is None:
            raise ValueError("last_modified must be an ISO-8601 timestamp")
        return value


class SyncUploadRequest(BaseModel):
    prompts: List[DesktopPrompt]
    sync_session_id: str = Field(min_length=1)


class ConflictRecord(BaseModel):
    desktop_id: str
    web_version: int
    desktop_version: int
    conflict_type: str = CONFLICT_VERSION_MISMATCH


class UploadResult(BaseModel):
    uploaded: int = 0
    updated: int = 0
    conflicts: List[ConflictRecord] = Field(default_factory=list)
    session_id: str


# ─── Download ─────────────────────────────────────────────────────────────────

class PromptRecord(BaseModel):
    """Client-facing view of a stored Prompt row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    desktop_id: Optional[str]
    user_id: str
    title: str
    content: str
    tags: List[str]
    is_public: bool
    quick_access_key: Optional[str]
    version: int
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_iso8601(value)


class DownloadResult(BaseModel):
    prompts: List[PromptRecord]
    total: int
    offset: int
    limit: int
    last_sync: Optional[str] = None  # echoed back exactly as the client sent it
    sync_timestamp: datetime

    def to_response(self) -> Dict[str, Any]:
        """Wire shape: camelCase watermark keys, lastSync only on incremental syncs."""
        data: Dict[str, Any] = {
            "prompts": [p.model_dump() for p in self.prompts],
            "total": self.total,
            "offset": self.offset,
            "limit": self.limit,
        }
        if self.last_sync is not None:
            data["lastSync"] = self.last_sync
        data["syncTimestamp"] = format_iso8601(self.sync_timestamp)
        return data


# ─── Status ───────────────────────────────────────────────────────────────────

class SyncStatusSummary(BaseModel):
    last_sync_at: Optional[datetime] = None
    total_prompts: int = 0
    pending_conflicts: int = 0
    last_session_id: Optional[str] = None
    sync_enabled: bool = True
    desktop_connected: bool = False

    @field_serializer("last_sync_at")
    def _serialize_last_sync(self, value: Optional[datetime]) -> Optional[str]:
        return format_iso8601(value) if value else None


class SyncSessionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    started_at: datetime
    completed_at: Optional[datetime]
    uploaded: int
    updated: int
    conflicts: int
    status: str

    @field_serializer("started_at", "completed_at")
    def _serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return format_iso8601(value) if value else None
