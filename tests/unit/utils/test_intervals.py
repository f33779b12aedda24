"""
Unit tests for half-open date range arithmetic.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from lodge_reservations.utils.datetime import to_calendar_date
from lodge_reservations.utils.intervals import contains, is_valid_range, iter_nights, nights, overlaps


@pytest.mark.unit
def test_back_to_back_stays_do_not_overlap() -> None:
    """Checkout on day D and check-in on day D share no night."""
    assert overlaps(date(2025, 1, 10), date(2025, 1, 15), date(2025, 1, 15), date(2025, 1, 20)) is False
    assert overlaps(date(2025, 1, 15), date(2025, 1, 20), date(2025, 1, 10), date(2025, 1, 15)) is False


@pytest.mark.unit
@pytest.mark.parametrize(
    "b_start,b_end",
    [
        (date(2025, 1, 14), date(2025, 1, 16)),  # last night
        (date(2025, 1, 8), date(2025, 1, 11)),  # first night
        (date(2025, 1, 11), date(2025, 1, 12)),  # inside
        (date(2025, 1, 1), date(2025, 1, 31)),  # around
    ],
)
def test_sharing_a_night_overlaps(b_start: date, b_end: date) -> None:
    """Any shared night is an overlap, in both argument orders."""
    a_start, a_end = date(2025, 1, 10), date(2025, 1, 15)
    assert overlaps(a_start, a_end, b_start, b_end) is True
    assert overlaps(b_start, b_end, a_start, a_end) is True


@pytest.mark.unit
def test_overlaps_accepts_strings_and_datetimes() -> None:
    """Mixed date-ish inputs are normalized to calendar dates first."""
    assert overlaps("2025-01-10", "2025-01-15", datetime(2025, 1, 14, 22, 0), "2025-01-16") is True


@pytest.mark.unit
def test_offsets_are_dropped_not_converted() -> None:
    """A late-evening local time stays on its own calendar day."""
    late = datetime(2025, 1, 5, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert to_calendar_date(late) == date(2025, 1, 5)
    assert to_calendar_date("2025-01-05T23:30:00-05:00") == date(2025, 1, 5)


@pytest.mark.unit
def test_to_calendar_date_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        to_calendar_date("")
    with pytest.raises(ValueError):
        to_calendar_date(12345)  # type: ignore[arg-type]


@pytest.mark.unit
def test_nights_and_iteration() -> None:
    start, end = date(2025, 1, 30), date(2025, 2, 2)
    assert nights(start, end) == 3
    assert list(iter_nights(start, end)) == [date(2025, 1, 30), date(2025, 1, 31), date(2025, 2, 1)]
    assert nights(end, start) == 0
    assert list(iter_nights(end, start)) == []


@pytest.mark.unit
def test_contains_excludes_departure_day() -> None:
    assert contains(date(2025, 1, 10), date(2025, 1, 15), date(2025, 1, 14)) is True
    assert contains(date(2025, 1, 10), date(2025, 1, 15), date(2025, 1, 15)) is False


@pytest.mark.unit
def test_valid_range_needs_one_night() -> None:
    assert is_valid_range(date(2025, 1, 10), date(2025, 1, 11)) is True
    assert is_valid_range(date(2025, 1, 10), date(2025, 1, 10)) is False
    assert is_valid_range(date(2025, 1, 11), date(2025, 1, 10)) is False
