"""
Channel calendar export and mapping management.

The export feed is served per mapping behind an unguessable token. It carries
only busy intervals, never guest data: a night is busy when holding
reservations on the mapped room type reach the type's sellable inventory
(rooms not under maintenance). Consecutive busy nights are merged into one
all-day "Closed" event.
"""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Optional
from urllib.parse import urlparse

import structlog
from sqlalchemy.engine import Engine

from lodge_reservations.config import EXPORT_FUTURE_DAYS, EXPORT_PAST_DAYS, PROPERTY_NAME
from lodge_reservations.db.readers.channels import (
    get_connection_by_channel,
    get_mapping,
    get_mapping_by_token,
    list_mappings,
)
from lodge_reservations.db.readers.reservations import list_holding_for_room_type, list_reservations
from lodge_reservations.db.readers.rooms import get_room_type, list_rooms
from lodge_reservations.db.records import ChannelMappingRecord
from lodge_reservations.db.writers.channels import (
    delete_mapping as delete_mapping_row,
    insert_connection,
    insert_mapping,
    set_connection_active,
)
from lodge_reservations.db.writers.reservations import update_status
from lodge_reservations.errors import NotFound, ValidationError
from lodge_reservations.metrics import export_requests
from lodge_reservations.models.reservations import CANCELLED
from lodge_reservations.models.rooms import ROOM_MAINTENANCE
from lodge_reservations.normalizers.ical import BusyPeriod, render_calendar
from lodge_reservations.services.locks import mapping_locks
from lodge_reservations.utils.datetime import utc_now
from lodge_reservations.utils.intervals import iter_nights

logger = structlog.get_logger(__name__)

CLOSED_SUMMARY = "Closed"
EXPORT_TOKEN_BYTES = 32

CHANNEL_NAMES = {
    "airbnb": "Airbnb",
    "booking": "Booking.com",
    "expedia": "Expedia",
    "vrbo": "VRBO",
    "tripadvisor": "TripAdvisor",
    "hotels": "Hotels.com",
}

_CHANNEL_SLUG = re.compile(r"^[a-z0-9][a-z0-9_-]{0,49}$")


def channel_display_name(channel: str) -> str:
    return CHANNEL_NAMES.get(channel, channel.replace("-", " ").replace("_", " ").title())


def generate_export_token() -> str:
    return secrets.token_urlsafe(EXPORT_TOKEN_BYTES)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "lodge"


# -----------------------------------------------------------------------------
# Export
# -----------------------------------------------------------------------------


def busy_periods_for_room_type(
    occupancy: dict[date, int], inventory: int, start: date, end: date, uid_suffix: str
) -> list[BusyPeriod]:
    """
    Merge fully booked nights of ``[start, end)`` into busy periods.

    Args:
        occupancy (dict[date, int]): Holding reservations per night.
        inventory (int): Sellable rooms of the type.
        start (date): Window start.
        end (date): Window end (exclusive).
        uid_suffix (str): Domain part of the generated UIDs.

    Returns:
        list[BusyPeriod]: Closed periods in date order.
    """
    periods: list[BusyPeriod] = []
    streak_start: Optional[date] = None

    for night in iter_nights(start, end):
        busy = occupancy.get(night, 0) >= inventory
        if busy and streak_start is None:
            streak_start = night
        elif not busy and streak_start is not None:
            periods.append(_closed_period(streak_start, night, uid_suffix))
            streak_start = None

    if streak_start is not None:
        periods.append(_closed_period(streak_start, end, uid_suffix))
    return periods


def _closed_period(start: date, end: date, uid_suffix: str) -> BusyPeriod:
    return BusyPeriod(
        external_id=f"closed-{start:%Y%m%d}-{end:%Y%m%d}@{uid_suffix}",
        start=start,
        end=end,
        summary=CLOSED_SUMMARY,
    )


def render_export_feed(
    engine: Engine, token: str, now: Optional[datetime] = None
) -> str:
    """
    Build the public iCal feed for the mapping behind ``token``.

    Args:
        engine (Engine): SQLAlchemy engine.
        token (str): Export token from the feed URL.
        now (Optional[datetime]): Reference time (defaults to now, UTC).

    Returns:
        str: Calendar text.

    Raises:
        ValidationError: Missing token.
        NotFound: Unknown token.
    """
    if not token:
        export_requests.labels(outcome="missing_token").inc()
        raise ValidationError("Missing export token")

    now = now or utc_now()
    window_start = now.date() - timedelta(days=EXPORT_PAST_DAYS)
    window_end = now.date() + timedelta(days=EXPORT_FUTURE_DAYS)

    with engine.connect() as conn:
        mapping = get_mapping_by_token(conn, token)
        if mapping is None:
            export_requests.labels(outcome="not_found").inc()
            raise NotFound("Calendar not found")

        room_type = get_room_type(conn, mapping.room_type_id)
        rooms = list_rooms(conn, room_type_id=mapping.room_type_id)
        holding = list_holding_for_room_type(conn, mapping.room_type_id, window_start, window_end)

    inventory = sum(1 for room in rooms if room.status != ROOM_MAINTENANCE)

    occupancy: dict[date, int] = {}
    for reservation in holding:
        for night in iter_nights(
            max(reservation.check_in, window_start), min(reservation.check_out, window_end)
        ):
            occupancy[night] = occupancy.get(night, 0) + 1

    uid_suffix = _slug(PROPERTY_NAME)
    periods = busy_periods_for_room_type(occupancy, inventory, window_start, window_end, uid_suffix)

    type_name = room_type.name if room_type else mapping.room_type_id
    body = render_calendar(periods, f"{PROPERTY_NAME} - {type_name}", stamp=now)

    export_requests.labels(outcome="success").inc()
    logger.info(
        "channel_export_served",
        mapping_id=mapping.id,
        channel=mapping.channel,
        inventory=inventory,
        closed_periods=len(periods),
    )
    return body


# -----------------------------------------------------------------------------
# Connections and mappings
# -----------------------------------------------------------------------------


def _validate_channel(channel: str) -> str:
    slug = (channel or "").strip().lower()
    if not _CHANNEL_SLUG.match(slug):
        raise ValidationError(f"Invalid channel name: '{channel}'")
    return slug


def create_connection(
    engine: Engine,
    channel: str,
    is_active: bool = True,
    settings: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """
    Create a channel connection, or update the active flag of an existing one.

    Returns:
        dict: The connection (id, channel, name, is_active, settings).
    """
    slug = _validate_channel(channel)

    with engine.begin() as conn:
        existing = get_connection_by_channel(conn, slug)
        if existing is None:
            insert_connection(
                conn,
                {
                    "id": str(uuid.uuid4()),
                    "channel": slug,
                    "name": channel_display_name(slug),
                    "is_active": is_active,
                    "settings": settings or {},
                },
            )
            logger.info("channel_connection_created", channel=slug, is_active=is_active)
        elif existing["is_active"] != is_active:
            set_connection_active(conn, existing["id"], is_active)
            logger.info("channel_connection_toggled", channel=slug, is_active=is_active)
        connection = get_connection_by_channel(conn, slug)

    return connection


def toggle_connection(engine: Engine, channel: str, is_active: bool) -> dict[str, Any]:
    """Enable or disable imports for a channel; creates the connection if missing."""
    return create_connection(engine, channel, is_active=is_active)


def _validate_import_url(import_url: Optional[str]) -> Optional[str]:
    if import_url is None or not import_url.strip():
        return None
    parsed = urlparse(import_url.strip())
    if parsed.scheme not in ("http", "https", "webcal") or not parsed.netloc:
        raise ValidationError(f"import_url must be an http(s) URL; got '{import_url}'")
    if parsed.scheme == "webcal":
        return "https" + import_url.strip()[len("webcal") :]
    return import_url.strip()


def create_mapping(
    engine: Engine, channel: str, room_type_id: str, import_url: Optional[str] = None
) -> ChannelMappingRecord:
    """
    Map a room type to a channel calendar and issue a fresh export token.

    The mapping starts in ``pending`` sync status.

    Raises:
        ValidationError: Bad channel name or import URL.
        NotFound: Unknown connection or room type.
    """
    slug = _validate_channel(channel)
    url = _validate_import_url(import_url)
    mapping_id = str(uuid.uuid4())

    with engine.begin() as conn:
        connection = get_connection_by_channel(conn, slug)
        if connection is None:
            raise NotFound(f"Channel connection '{slug}' not found")
        if get_room_type(conn, room_type_id) is None:
            raise NotFound(f"Room type {room_type_id} not found")

        insert_mapping(
            conn,
            {
                "id": mapping_id,
                "channel_connection_id": connection["id"],
                "room_type_id": room_type_id,
                "import_url": url,
                "export_token": generate_export_token(),
            },
        )
        mapping = get_mapping(conn, mapping_id)

    logger.info(
        "channel_mapping_created",
        mapping_id=mapping_id,
        channel=slug,
        room_type_id=room_type_id,
        has_import=bool(url),
    )
    return mapping


def list_channel_mappings(engine: Engine) -> list[ChannelMappingRecord]:
    with engine.connect() as conn:
        return list_mappings(conn)


def delete_mapping(engine: Engine, mapping_id: str) -> int:
    """
    Delete a mapping. Its export token stops resolving and its active channel
    holds are cancelled, since nothing will keep them in sync any more.

    Returns:
        int: Number of channel holds cancelled.

    Raises:
        NotFound: Unknown mapping.
    """
    cancelled = 0
    with mapping_locks.hold(mapping_id):
        with engine.begin() as conn:
            if get_mapping(conn, mapping_id) is None:
                raise NotFound(f"Mapping {mapping_id} not found")

            for hold in list_reservations(conn, mapping_id=mapping_id):
                if hold.status == CANCELLED:
                    continue
                if update_status(
                    conn, hold.id, CANCELLED, expected_status=hold.status, cancelled_at=utc_now()
                ):
                    cancelled += 1

            delete_mapping_row(conn, mapping_id)

    logger.info("channel_mapping_deleted", mapping_id=mapping_id, holds_cancelled=cancelled)
    return cancelled
