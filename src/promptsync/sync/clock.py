"""UTC time helpers shared by the stores, coordinators and API models.

All timestamps are stored and compared as naive UTC datetimes (SQLite drops
tzinfo on the way back out, so aware values would not round-trip).
"""
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a naive UTC datetime.

    Accepts a trailing "Z" and explicit offsets; aware values are converted to
    UTC. Returns None when the string is empty or unparsable.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is not None:
            # Offsets at the edges of the calendar can push UTC out of range
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except (ValueError, OverflowError):
        return None
    return parsed


def format_iso8601(value: datetime) -> str:
    """Render a naive UTC datetime as ISO-8601 with microseconds and a Z suffix."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds") + "Z"
