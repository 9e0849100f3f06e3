"""UTC helpers shared by services.

SQLite hands back naive datetimes for timezone-aware columns; everything stored
by this application is UTC, so naive values are treated as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current UTC calendar day."""
    return utcnow().date()


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime | None) -> str | None:
    """ISO-8601 with explicit UTC offset, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def as_date(value: date | datetime | str) -> date:
    """Normalize a day-bucket value returned by the database to a date."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
