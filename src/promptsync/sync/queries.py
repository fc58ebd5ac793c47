"""Query-string parsing for download and status requests.

Parsers return either the validated query or a ValidationFailure; nothing
here raises for bad client input.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from promptsync.sync.clock import parse_iso8601

DOWNLOAD_DEFAULT_LIMIT = 1000
DOWNLOAD_MAX_LIMIT = 1000
HISTORY_DEFAULT_LIMIT = 10
HISTORY_MAX_LIMIT = 100

INVALID_LAST_SYNC = "Invalid lastSync format. Expected ISO date string."
INVALID_PAGINATION = (
    "Invalid pagination parameters. Offset must be >= 0, limit must be 1-1000."
)
INVALID_HISTORY_LIMIT = "Invalid limit parameter. Must be between 1 and 100."


@dataclass(frozen=True)
class ValidationFailure:
    message: str


@dataclass(frozen=True)
class DownloadQuery:
    last_sync: Optional[datetime] = None
    last_sync_raw: Optional[str] = None  # echoed back to the client verbatim
    offset: int = 0
    limit: int = DOWNLOAD_DEFAULT_LIMIT

    @property
    def incremental(self) -> bool:
        return self.last_sync is not None


def _parse_int(value: Optional[str], default: int) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_download_query(
    last_sync: Optional[str] = None,
    offset: Optional[str] = None,
    limit: Optional[str] = None,
) -> Union[DownloadQuery, ValidationFailure]:
    since = None
    if last_sync:
        since = parse_iso8601(last_sync)
        if since is None:
            return ValidationFailure(INVALID_LAST_SYNC)

    parsed_offset = _parse_int(offset, 0)
    parsed_limit = _parse_int(limit, DOWNLOAD_DEFAULT_LIMIT)
    if (
        parsed_offset is None
        or parsed_limit is None
        or parsed_offset < 0
        or not 1 <= parsed_limit <= DOWNLOAD_MAX_LIMIT
    ):
        return ValidationFailure(INVALID_PAGINATION)

    return DownloadQuery(
        last_sync=since,
        last_sync_raw=last_sync if since is not None else None,
        offset=parsed_offset,
        limit=parsed_limit,
    )


def parse_history_limit(limit: Optional[str] = None) -> Union[int, ValidationFailure]:
    parsed = _parse_int(limit, HISTORY_DEFAULT_LIMIT)
    if parsed is None or not 1 <= parsed <= HISTORY_MAX_LIMIT:
        return ValidationFailure(INVALID_HISTORY_LIMIT)
    return parsed
