"""
Timestamp parsing and formatting utilities.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into an aware datetime.

    Accepts datetime/date objects (YAML front matter yields these) and
    ISO-8601 strings, including a trailing ``Z``. Naive values are taken
    as UTC.

    Returns:
        Parsed datetime or None if invalid
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def from_mtime(mtime: float) -> datetime:
    """Convert a file modification time into an aware UTC datetime."""
    return datetime.fromtimestamp(mtime, tz=timezone.utc)
