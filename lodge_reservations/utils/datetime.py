"""UTC datetime and calendar-date utilities."""

from datetime import date, datetime, timezone
from typing import Union

from dateutil import parser as date_parser

DateLike = Union[date, datetime, str]


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def today() -> date:
    """Current calendar date in UTC."""
    return utc_now().date()


def to_calendar_date(value: DateLike) -> date:
    """
    Normalize a date-ish value to its calendar date.

    Reservations are day-granular: the time of day and any timezone offset
    are dropped, never converted. ``2025-01-05T23:30:00-05:00`` is January 5th
    even though it is January 6th in UTC.

    Args:
        value: date, datetime, or ISO-8601 / basic-format string

    Returns:
        date: the calendar date as written

    Raises:
        ValueError: If a string cannot be parsed as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("Empty date string")
        return date_parser.parse(stripped).date()
    raise ValueError(f"Unsupported date value: {value!r}")
