"""Timezone-aware datetime helpers."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """Format a datetime as ISO 8601 with millisecond precision and a Z suffix.

    Matches the timestamps already present in existing feeds.json files,
    e.g. ``2025-08-02T05:00:00.000Z``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
