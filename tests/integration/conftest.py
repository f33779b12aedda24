"""
Channel fixtures shared by the integration tests.
"""

from __future__ import annotations

import pytest
from sqlalchemy.engine import Engine

from lodge_reservations.db.records import ChannelMappingRecord
from lodge_reservations.services import channel_export

AIRBNB_FEED_URL = "https://www.airbnb.example/calendar/ical/4242.ics?s=abc"
BOOKING_FEED_URL = "https://admin.booking.example/hotel/ical/777.ics"


@pytest.fixture
def airbnb_mapping(engine: Engine) -> ChannelMappingRecord:
    """Airbnb calendar mapped onto the Deluxe Room type."""
    channel_export.create_connection(engine, "airbnb")
    return channel_export.create_mapping(engine, "airbnb", "rt-deluxe", AIRBNB_FEED_URL)


@pytest.fixture
def booking_mapping(engine: Engine) -> ChannelMappingRecord:
    """Booking.com calendar mapped onto the Family Suite type."""
    channel_export.create_connection(engine, "booking")
    return channel_export.create_mapping(engine, "booking", "rt-family", BOOKING_FEED_URL)


def ical_feed(*events: tuple[str, str, str]) -> str:
    """Build a channel feed from (uid, start YYYYMMDD, end YYYYMMDD) triples."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test Channel//EN"]
    for uid, start, end in events:
        lines += [
            "BEGIN:VEVENT",
            f"UID:{uid}",
            f"DTSTART;VALUE=DATE:{start}",
            f"DTEND;VALUE=DATE:{end}",
            "SUMMARY:Reserved",
            "END:VEVENT",
        ]
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def feed():
    return ical_feed
