"""
Unit tests for the iCal busy-period codec.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from lodge_reservations.normalizers.ical import BusyPeriod, event_nights, parse_busy_periods, render_calendar

AIRBNB_FEED = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "PRODID:-//Airbnb Inc//Hosting Calendar 0.8.8//EN",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        "DTSTART;VALUE=DATE:20250110",
        "DTEND;VALUE=DATE:20250115",
        "UID:1418fb94e984-a1b2@airbnb.com",
        "SUMMARY:Reserved",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "DTSTART;VALUE=DATE:20250120",
        "DTEND;VALUE=DATE:20250122",
        "UID:1418fb94e984-c3d4@airbnb.com",
        "SUMMARY:Airbnb (Not available)",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
)


def _calendar(*events: str) -> str:
    return "\r\n".join(["BEGIN:VCALENDAR", "VERSION:2.0", *events, "END:VCALENDAR"])


@pytest.mark.unit
def test_parse_airbnb_feed() -> None:
    periods = parse_busy_periods(AIRBNB_FEED)

    assert periods == [
        BusyPeriod("1418fb94e984-a1b2@airbnb.com", date(2025, 1, 10), date(2025, 1, 15), "Reserved"),
        BusyPeriod(
            "1418fb94e984-c3d4@airbnb.com",
            date(2025, 1, 20),
            date(2025, 1, 22),
            "Airbnb (Not available)",
        ),
    ]


@pytest.mark.unit
def test_not_a_calendar_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_busy_periods("<html>Not found</html>")


@pytest.mark.unit
def test_empty_calendar_has_no_periods() -> None:
    assert parse_busy_periods(_calendar()) == []


@pytest.mark.unit
def test_datetime_values_keep_their_calendar_day() -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "UID:x",
        "DTSTART;TZID=America/New_York:20250105T230000",
        "DTEND:20250107T100000Z",
        "END:VEVENT",
    )
    [period] = parse_busy_periods(feed)
    assert (period.start, period.end) == (date(2025, 1, 5), date(2025, 1, 7))


@pytest.mark.unit
def test_missing_dtend_uses_duration_or_one_day() -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "UID:a",
        "DTSTART;VALUE=DATE:20250301",
        "DURATION:P1W",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:b",
        "DTSTART;VALUE=DATE:20250320",
        "END:VEVENT",
    )
    a, b = parse_busy_periods(feed)
    assert a.end == date(2025, 3, 8)
    assert b.end == date(2025, 3, 21)


@pytest.mark.unit
def test_cancelled_transparent_and_broken_events_are_skipped() -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "UID:cancelled",
        "STATUS:CANCELLED",
        "DTSTART;VALUE=DATE:20250301",
        "DTEND;VALUE=DATE:20250302",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:free",
        "TRANSP:TRANSPARENT",
        "DTSTART;VALUE=DATE:20250301",
        "DTEND;VALUE=DATE:20250302",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:zero",
        "DTSTART;VALUE=DATE:20250301",
        "DTEND;VALUE=DATE:20250301",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:nostart",
        "DTEND;VALUE=DATE:20250301",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:garbage",
        "DTSTART:not-a-date",
        "END:VEVENT",
    )
    assert parse_busy_periods(feed) == []


@pytest.mark.unit
def test_missing_uid_gets_a_stable_id() -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "DTSTART;VALUE=DATE:20250301",
        "DTEND;VALUE=DATE:20250303",
        "SUMMARY:Blocked",
        "END:VEVENT",
    )
    first = parse_busy_periods(feed)[0].external_id
    assert first.startswith("hash-")
    assert parse_busy_periods(feed)[0].external_id == first


@pytest.mark.unit
def test_repeated_uid_is_disambiguated_by_start() -> None:
    event = [
        "BEGIN:VEVENT",
        "UID:recurring@vrbo.com",
        "DTSTART;VALUE=DATE:{start}",
        "DTEND;VALUE=DATE:{end}",
        "END:VEVENT",
    ]
    feed = _calendar(
        *[line.format(start="20250301", end="20250303") for line in event],
        *[line.format(start="20250310", end="20250312") for line in event],
    )
    ids = [p.external_id for p in parse_busy_periods(feed)]
    assert ids == ["recurring@vrbo.com", "recurring@vrbo.com#2025-03-10"]


@pytest.mark.unit
def test_alarm_properties_do_not_leak_into_event() -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "UID:with-alarm",
        "DTSTART;VALUE=DATE:20250301",
        "DTEND;VALUE=DATE:20250302",
        "BEGIN:VALARM",
        "SUMMARY:Reminder",
        "END:VALARM",
        "SUMMARY:Booked",
        "END:VEVENT",
    )
    [period] = parse_busy_periods(feed)
    assert period.summary == "Booked"


@pytest.mark.unit
def test_render_calendar_structure() -> None:
    stamp = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    body = render_calendar(
        [BusyPeriod("closed-20250110-20250115@lodge", date(2025, 1, 10), date(2025, 1, 15), "Closed")],
        "Lakeside Lodge - Deluxe Room",
        stamp=stamp,
    )

    assert body.startswith("BEGIN:VCALENDAR\r\n")
    assert body.endswith("END:VCALENDAR\r\n")
    assert "DTSTART;VALUE=DATE:20250110\r\n" in body
    assert "DTEND;VALUE=DATE:20250115\r\n" in body
    assert "DTSTAMP:20250101T120000Z\r\n" in body
    assert "TRANSP:OPAQUE" in body
    assert "\n" not in body.replace("\r\n", "")


@pytest.mark.unit
def test_rendered_feed_parses_back() -> None:
    periods = [
        BusyPeriod("a@lodge", date(2025, 1, 10), date(2025, 1, 15), "Closed"),
        BusyPeriod("b@lodge", date(2025, 2, 1), date(2025, 2, 3), "Closed; by owner, sorry"),
    ]
    assert parse_busy_periods(render_calendar(periods, "Lodge")) == periods


@pytest.mark.unit
@pytest.mark.parametrize(
    "duration, expected_end",
    [
        ("PT48H", date(2025, 1, 12)),
        ("P1DT12H", date(2025, 1, 12)),
        ("PT36H", date(2025, 1, 12)),
        ("PT2H", date(2025, 1, 11)),
    ],
)
def test_duration_with_time_parts_keeps_the_stay(duration: str, expected_end: date) -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "UID:timed@channel",
        "DTSTART:20250110T140000Z",
        f"DURATION:{duration}",
        "END:VEVENT",
    )
    [period] = parse_busy_periods(feed)
    assert (period.start, period.end) == (date(2025, 1, 10), expected_end)


@pytest.mark.unit
def test_event_nights_rules() -> None:
    start = datetime(2025, 1, 10, 14, 0)

    assert event_nights(start, None, timedelta(hours=48)) == (date(2025, 1, 10), date(2025, 1, 12))
    assert event_nights(start, datetime(2025, 1, 10, 18, 0), None) == (date(2025, 1, 10), date(2025, 1, 11))
    assert event_nights(date(2025, 1, 10), None, None) == (date(2025, 1, 10), date(2025, 1, 11))
    with pytest.raises(ValueError):
        event_nights(start, None, timedelta(0))
    with pytest.raises(ValueError):
        event_nights(date(2025, 1, 10), date(2025, 1, 10), None)


@pytest.mark.unit
def test_escaped_backslash_before_n_is_not_a_newline() -> None:
    feed = _calendar(
        "BEGIN:VEVENT",
        "UID:path",
        "DTSTART;VALUE=DATE:20250301",
        "DTEND;VALUE=DATE:20250302",
        "SUMMARY:C:\\\\new\\, blocked\\nby owner",
        "END:VEVENT",
    )
    [period] = parse_busy_periods(feed)
    assert period.summary == "C:\\new, blocked\nby owner"


@pytest.mark.unit
def test_long_summaries_are_folded_and_read_back() -> None:
    summary = "Bloqueado pelo proprietário " * 6
    body = render_calendar([BusyPeriod("long@lodge", date(2025, 1, 10), date(2025, 1, 12), summary)], "Lodge")

    for line in body.split("\r\n"):
        assert len(line.encode("utf-8")) <= 75
    assert parse_busy_periods(body)[0].summary == summary.strip()
