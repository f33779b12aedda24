"""
iCalendar (RFC 5545) busy-period import and export.

Feeds are read and written with the ``icalendar`` package. Only what channels
use for availability is interpreted: VEVENT DTSTART, DTEND or DURATION, UID,
SUMMARY, STATUS and TRANSP. Recurrence rules are not expanded.
"""

import hashlib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import structlog
from icalendar import Calendar, Event

from lodge_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

PRODID = "-//Lodge Reservations//Channel Export//EN"


@dataclass(frozen=True)
class BusyPeriod:
    """A half-open ``[start, end)`` range of nights reported busy by a channel."""

    external_id: str
    start: date
    end: date
    summary: str = ""


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def event_nights(start: date, end: Optional[date], duration: Optional[timedelta]) -> tuple[date, date]:
    """
    Reduce an event's DTSTART with DTEND or DURATION to calendar nights.

    Time of day and offsets are dropped, never converted: the dates are the
    ones written in the feed. An event that lasts a positive amount of time
    but ends on its start date still holds that night.

    Raises:
        ValueError: The event has no positive length.
    """
    if end is not None:
        if _as_datetime(end).replace(tzinfo=None) <= _as_datetime(start).replace(tzinfo=None):
            raise ValueError("DTEND is not after DTSTART")
        last = _as_datetime(end).date()
    elif duration is not None:
        if duration <= timedelta(0):
            raise ValueError("DURATION is not positive")
        last = (_as_datetime(start) + duration).date()
    else:
        last = _as_datetime(start).date() + timedelta(days=1)

    first = _as_datetime(start).date()
    return first, max(last, first + timedelta(days=1))


def _decoded_date(event: Event, name: str) -> Optional[date]:
    if name not in event:
        return None
    value = event.decoded(name)
    if not isinstance(value, date):
        raise ValueError(f"{name} is not a date")
    return value


def _decoded_duration(event: Event) -> Optional[timedelta]:
    if "DURATION" not in event:
        return None
    value = event.decoded("DURATION")
    if not isinstance(value, timedelta):
        raise ValueError("DURATION is not a duration")
    return value


def _text(event: Event, name: str) -> str:
    return str(event.get(name, "")).strip()


def _fallback_uid(start: date, end: date, summary: str) -> str:
    digest = hashlib.sha1(f"{start.isoformat()}|{end.isoformat()}|{summary}".encode()).hexdigest()
    return f"hash-{digest[:32]}"


def parse_busy_periods(text: str) -> list[BusyPeriod]:
    """
    Parse an iCal feed into busy periods.

    Events that are cancelled, transparent, zero-length or unparseable are
    skipped. Events without a UID get a stable hash id. Repeated UIDs (for
    example overridden recurrence instances) are disambiguated by start date.

    Args:
        text (str): Raw calendar text.

    Returns:
        list[BusyPeriod]: Busy periods in feed order.

    Raises:
        ValueError: If the text is not a VCALENDAR.
    """
    if "BEGIN:VCALENDAR" not in text.upper():
        raise ValueError("Not an iCalendar feed (missing BEGIN:VCALENDAR)")
    calendar = Calendar.from_ical(text)

    periods: list[BusyPeriod] = []
    seen: set[str] = set()
    skipped = 0

    for event in calendar.walk("VEVENT"):
        if _text(event, "STATUS").upper() == "CANCELLED" or _text(event, "TRANSP").upper() == "TRANSPARENT":
            skipped += 1
            continue

        try:
            start_value = _decoded_date(event, "DTSTART")
            if start_value is None:
                skipped += 1
                continue
            start, end = event_nights(
                start_value, _decoded_date(event, "DTEND"), _decoded_duration(event)
            )
        except (ValueError, TypeError, AttributeError, OverflowError) as e:
            logger.warning("ical_event_unparseable", uid=_text(event, "UID"), error=str(e))
            skipped += 1
            continue

        summary = _text(event, "SUMMARY")
        uid = _text(event, "UID") or _fallback_uid(start, end, summary)
        if uid in seen:
            uid = f"{uid}#{start.isoformat()}"
        seen.add(uid)

        periods.append(BusyPeriod(external_id=uid, start=start, end=end, summary=summary))

    logger.info("ical_parsed", events=len(periods), skipped=skipped)
    return periods


def render_calendar(
    periods: Iterable[BusyPeriod],
    calendar_name: str,
    stamp: Optional[datetime] = None,
) -> str:
    """
    Render busy periods as an iCal feed of all-day events.

    Args:
        periods: Busy periods to publish.
        calendar_name (str): Value of X-WR-CALNAME.
        stamp (Optional[datetime]): DTSTAMP for every event (defaults to now, UTC).

    Returns:
        str: CRLF-delimited calendar text ending in CRLF.
    """
    stamp = stamp or utc_now()

    calendar = Calendar()
    calendar.add("prodid", PRODID)
    calendar.add("version", "2.0")
    calendar.add("calscale", "GREGORIAN")
    calendar.add("method", "PUBLISH")
    calendar.add("x-wr-calname", calendar_name)

    for period in periods:
        event = Event()
        event.add("uid", period.external_id)
        event.add("dtstamp", stamp)
        event.add("dtstart", period.start)
        event.add("dtend", period.end)
        event.add("summary", period.summary)
        event.add("transp", "OPAQUE")
        calendar.add_component(event)

    return calendar.to_ical().decode("utf-8")
