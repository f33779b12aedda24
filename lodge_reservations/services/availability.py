"""
Room availability.

Availability queries are advisory inputs to a UI: a read error degrades to
"not available" (False / 0 / empty) and is logged, never raised. Malformed
date ranges are still rejected with ``ValidationError`` before any I/O.

``evaluate`` is the raising variant used inside write transactions, where a
read error must abort the write instead of being masked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from lodge_reservations.db.readers.reservations import find_overlapping, list_holding_for_room_type
from lodge_reservations.db.readers.rooms import get_room, list_room_types, list_rooms
from lodge_reservations.db.records import RoomRecord
from lodge_reservations.errors import ValidationError
from lodge_reservations.metrics import availability_checks
from lodge_reservations.models.rooms import ROOM_MAINTENANCE
from lodge_reservations.services.booking_session import BookingSession
from lodge_reservations.services.conflicts import classify
from lodge_reservations.utils.datetime import DateLike, to_calendar_date, today

logger = structlog.get_logger(__name__)

REASON_MAINTENANCE = "maintenance"
REASON_CART_CONFLICT = "cart_conflict"
REASON_UNKNOWN_ROOM = "unknown_room"
REASON_READ_ERROR = "read_error"


@dataclass(frozen=True)
class AvailabilityResult:
    """Outcome of one availability check, with the reason when the room is not free."""

    room_id: str
    check_in: date
    check_out: date
    available: bool
    reason: Optional[str] = None
    room_number: Optional[str] = None
    conflicting_ids: list[str] = field(default_factory=list)

    def snapshot(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "room_number": self.room_number,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "available": self.available,
            "reason": self.reason,
            "conflicting_ids": self.conflicting_ids,
        }


@dataclass(frozen=True)
class RoomTypeAvailability:
    room_type_id: str
    name: str
    capacity: int
    base_price: str
    available_count: int
    room_ids: list[str]

    def snapshot(self) -> dict[str, Any]:
        return {
            "room_type_id": self.room_type_id,
            "name": self.name,
            "capacity": self.capacity,
            "base_price": self.base_price,
            "available_count": self.available_count,
            "room_ids": self.room_ids,
        }


def normalize_range(check_in: DateLike, check_out: DateLike) -> tuple[date, date]:
    """
    Normalize both ends to calendar dates and require at least one night.

    Raises:
        ValidationError: Unparseable date or ``check_in >= check_out``.
    """
    try:
        start = to_calendar_date(check_in)
        end = to_calendar_date(check_out)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid date: {e}") from e

    if start >= end:
        raise ValidationError(
            f"check_in ({start.isoformat()}) must be before check_out ({end.isoformat()})"
        )
    return start, end


def evaluate(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    session: Optional[BookingSession] = None,
    exclude_ids: Sequence[str] = (),
    for_update: bool = False,
) -> AvailabilityResult:
    """
    Decide whether ``room_id`` is free for ``[check_in, check_out)``.

    Order of checks: the room exists, it is not under maintenance, no holding
    reservation (channel holds included) overlaps, no line of the caller's
    in-flight cart overlaps.

    Args:
        conn (Connection): Connection (or transaction) to read through.
        room_id (str): Room to check.
        check_in (date): First night.
        check_out (date): Departure date.
        session (Optional[BookingSession]): Caller's uncommitted cart.
        exclude_ids (Sequence[str]): Reservation ids to ignore.
        for_update (bool): Lock the room row for the rest of the transaction.

    Returns:
        AvailabilityResult: Decision and reason.

    Raises:
        SQLAlchemyError: Read failures propagate.
    """
    room: Optional[RoomRecord] = get_room(conn, room_id, for_update=for_update)
    if room is None:
        return AvailabilityResult(room_id, check_in, check_out, False, REASON_UNKNOWN_ROOM)

    if room.status == ROOM_MAINTENANCE:
        return AvailabilityResult(
            room_id, check_in, check_out, False, REASON_MAINTENANCE, room.room_number
        )

    rows = find_overlapping(conn, room_id, check_in, check_out, exclude_ids=exclude_ids)
    kind = classify(rows)
    if kind is not None:
        return AvailabilityResult(
            room_id,
            check_in,
            check_out,
            False,
            kind,
            room.room_number,
            [r.id for r in rows],
        )

    if session is not None and session.overlapping(room_id, check_in, check_out):
        return AvailabilityResult(
            room_id, check_in, check_out, False, REASON_CART_CONFLICT, room.room_number
        )

    return AvailabilityResult(room_id, check_in, check_out, True, None, room.room_number)


def check_availability(
    engine: Engine,
    room_id: str,
    check_in: DateLike,
    check_out: DateLike,
    session: Optional[BookingSession] = None,
) -> AvailabilityResult:
    """
    Advisory availability check with the reason a room is not free.

    Args:
        engine (Engine): SQLAlchemy engine.
        room_id (str): Room to check.
        check_in (DateLike): First night.
        check_out (DateLike): Departure date.
        session (Optional[BookingSession]): Caller's uncommitted cart.

    Returns:
        AvailabilityResult: ``available=False, reason="read_error"`` when the
        store cannot be read.

    Raises:
        ValidationError: Malformed range.
    """
    start, end = normalize_range(check_in, check_out)

    try:
        with engine.connect() as conn:
            result = evaluate(conn, room_id, start, end, session=session)
    except SQLAlchemyError as e:
        logger.error(
            "availability_read_failed",
            room_id=room_id,
            check_in=start.isoformat(),
            check_out=end.isoformat(),
            error=str(e),
        )
        result = AvailabilityResult(room_id, start, end, False, REASON_READ_ERROR)

    availability_checks.labels(result="available" if result.available else result.reason).inc()
    logger.debug(
        "availability_checked",
        room_id=room_id,
        available=result.available,
        reason=result.reason,
    )
    return result


def is_available(
    engine: Engine,
    room_id: str,
    check_in: DateLike,
    check_out: DateLike,
    session: Optional[BookingSession] = None,
) -> bool:
    """Return True if the room can be booked for ``[check_in, check_out)``."""
    return check_availability(engine, room_id, check_in, check_out, session=session).available


def count_available(
    engine: Engine,
    room_type_id: str,
    check_in: Optional[DateLike] = None,
    check_out: Optional[DateLike] = None,
) -> int:
    """
    Count rooms of a type that are free.

    With a range, a room counts when nothing holding overlaps it. Without a
    range, a room counts when it is not occupied today: occupied means some
    holding reservation has ``check_in <= today < check_out``. Rooms under
    maintenance never count, whatever the range.

    Returns:
        int: Free rooms, or 0 when the store cannot be read.

    Raises:
        ValidationError: Only one end of the range given, or malformed range.
    """
    if (check_in is None) != (check_out is None):
        raise ValidationError("check_in and check_out must be given together")

    if check_in is None:
        start = today()
        end = start + timedelta(days=1)
    else:
        start, end = normalize_range(check_in, check_out)

    try:
        with engine.connect() as conn:
            rooms = list_rooms(conn, room_type_id=room_type_id)
            holding = list_holding_for_room_type(conn, room_type_id, start, end)
    except SQLAlchemyError as e:
        logger.error("availability_count_failed", room_type_id=room_type_id, error=str(e))
        return 0

    busy = {r.room_id for r in holding}
    return sum(1 for room in rooms if room.status != ROOM_MAINTENANCE and room.id not in busy)


def availability_by_room_type(
    engine: Engine,
    check_in: DateLike,
    check_out: DateLike,
    guests: int = 1,
) -> list[RoomTypeAvailability]:
    """
    Free rooms per room type for a stay, limited to types that fit ``guests``.

    Returns:
        list[RoomTypeAvailability]: One entry per fitting room type, ordered by
        name; empty when the store cannot be read.
    """
    start, end = normalize_range(check_in, check_out)

    try:
        with engine.connect() as conn:
            results = []
            for room_type in list_room_types(conn):
                if room_type.capacity < guests:
                    continue
                rooms = list_rooms(conn, room_type_id=room_type.id)
                busy = {r.room_id for r in list_holding_for_room_type(conn, room_type.id, start, end)}
                free = [
                    room.id for room in rooms if room.status != ROOM_MAINTENANCE and room.id not in busy
                ]
                results.append(
                    RoomTypeAvailability(
                        room_type_id=room_type.id,
                        name=room_type.name,
                        capacity=room_type.capacity,
                        base_price=str(room_type.base_price),
                        available_count=len(free),
                        room_ids=free,
                    )
                )
            return results
    except SQLAlchemyError as e:
        logger.error("availability_search_failed", error=str(e))
        return []
