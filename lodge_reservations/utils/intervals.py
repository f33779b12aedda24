"""
Half-open calendar date range arithmetic.

All ranges are ``[start, end)``: the end date is excluded, so a checkout on
day D and a check-in on day D for the same room do not conflict. Every input
is normalized with ``to_calendar_date`` first.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator

from lodge_reservations.utils.datetime import DateLike, to_calendar_date


def overlaps(a_start: DateLike, a_end: DateLike, b_start: DateLike, b_end: DateLike) -> bool:
    """
    Return True if ``[a_start, a_end)`` and ``[b_start, b_end)`` share a night.

    Example:
        >>> overlaps("2025-01-01", "2025-01-05", "2025-01-05", "2025-01-08")
        False
        >>> overlaps("2025-01-01", "2025-01-05", "2025-01-04", "2025-01-08")
        True
    """
    a0, a1 = to_calendar_date(a_start), to_calendar_date(a_end)
    b0, b1 = to_calendar_date(b_start), to_calendar_date(b_end)
    return a0 < b1 and b0 < a1


def contains(start: DateLike, end: DateLike, day: DateLike) -> bool:
    """Return True if ``day`` is one of the nights of ``[start, end)``."""
    d = to_calendar_date(day)
    return to_calendar_date(start) <= d < to_calendar_date(end)


def nights(start: DateLike, end: DateLike) -> int:
    """Number of nights in ``[start, end)``; zero for empty or inverted ranges."""
    return max((to_calendar_date(end) - to_calendar_date(start)).days, 0)


def iter_nights(start: DateLike, end: DateLike) -> Iterator[date]:
    """Yield each night of ``[start, end)`` in order."""
    current = to_calendar_date(start)
    stop = to_calendar_date(end)
    while current < stop:
        yield current
        current += timedelta(days=1)


def is_valid_range(start: DateLike, end: DateLike) -> bool:
    """A stay must cover at least one night: ``start < end`` strictly."""
    return to_calendar_date(start) < to_calendar_date(end)
