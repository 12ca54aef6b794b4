"""UTC timestamp helpers for SQLite text columns.

Timestamps are stored as fixed-width ISO-8601 strings
(``2026-01-31T23:59:59.000000Z``) so that plain string comparison in SQL
orders them chronologically.
"""

from __future__ import annotations

from datetime import datetime, timezone

_DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_db_time(value: datetime) -> str:
    """Render *value* (naive values are taken as UTC) in the stored format."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_DB_FORMAT)


def from_db_time(value: str | None) -> datetime | None:
    """Parse a stored timestamp; ``None`` and empty strings give ``None``."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
