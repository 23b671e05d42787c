"""Time utilities for database models."""

from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def next_utc_midnight(now: datetime) -> datetime:
    """Return the first instant of the UTC day after ``now``."""
    current = as_utc(now)
    return datetime(current.year, current.month, current.day, tzinfo=UTC) + timedelta(days=1)
