"""
Single-reservation writes and lifecycle transitions.

Creating a reservation holds the room's in-process lock and, inside the write
transaction, locks the room row (``SELECT ... FOR UPDATE`` on PostgreSQL)
before re-reading overlaps. Two callers racing for the same room therefore
serialize, and the loser sees the winner's row and gets a conflict.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from lodge_reservations import events
from lodge_reservations.db.readers.reservations import find_overlapping, get_reservation
from lodge_reservations.db.readers.rooms import get_room
from lodge_reservations.db.records import ReservationRecord
from lodge_reservations.db.writers.reservations import insert_reservation, update_status
from lodge_reservations.db.writers.rooms import set_room_status
from lodge_reservations.errors import (
    AvailabilityConflict,
    ConflictError,
    InvalidTransition,
    NotFound,
    ReservationEngineError,
    ValidationError,
)
from lodge_reservations.metrics import reservation_writes
from lodge_reservations.models.reservations import (
    CANCELLED,
    CHECKED_IN,
    CHECKED_OUT,
    CONFIRMED,
    INTERNAL_SOURCES,
    RESERVED,
)
from lodge_reservations.models.rooms import ROOM_CLEANING, ROOM_MAINTENANCE, ROOM_OCCUPIED
from lodge_reservations.schemas.reservations import ReservationDraft
from lodge_reservations.services.availability import normalize_range
from lodge_reservations.services.booking_session import BookingSession
from lodge_reservations.services.conflicts import raise_for_conflicts
from lodge_reservations.services.lifecycle import TIMESTAMP_COLUMNS, require_transition
from lodge_reservations.services.locks import room_locks
from lodge_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def validate_draft(draft: ReservationDraft) -> tuple[date, date]:
    """
    Reject malformed drafts before any I/O.

    Returns:
        tuple[date, date]: Normalized (check_in, check_out).

    Raises:
        ValidationError: Missing room or guest, unknown source, or bad range.
    """
    if not draft.room_id or not draft.room_id.strip():
        raise ValidationError("room_id is required")
    if not draft.guest_name or not draft.guest_name.strip():
        raise ValidationError("guest_name is required")
    if draft.source not in INTERNAL_SOURCES:
        raise ValidationError(
            f"source must be one of {', '.join(INTERNAL_SOURCES)}; got '{draft.source}'"
        )
    return normalize_range(draft.check_in, draft.check_out)


def build_row(
    draft: ReservationDraft,
    reservation_id: Optional[str] = None,
    status: str = RESERVED,
    **extra: Any,
) -> dict[str, Any]:
    """Turn a validated draft into a ``reservations`` row."""
    check_in, check_out = normalize_range(draft.check_in, draft.check_out)
    return {
        "id": reservation_id or str(uuid.uuid4()),
        "room_id": draft.room_id,
        "guest_name": draft.guest_name.strip(),
        "guest_email": draft.guest_email,
        "guest_phone": draft.guest_phone,
        "check_in": check_in,
        "check_out": check_out,
        "status": status,
        "source": draft.source,
        "num_guests": draft.num_guests,
        "notes": draft.notes,
        "subtotal": draft.subtotal,
        "total_amount": draft.total_amount,
        **extra,
    }


def write_checked(
    conn: Connection,
    row: dict[str, Any],
    session: Optional[BookingSession] = None,
    draft: Optional[ReservationDraft] = None,
) -> None:
    """
    Re-check availability for ``row`` and insert it, in the caller's transaction.

    The caller must hold ``room_locks`` for ``row["room_id"]``. ``draft`` is
    the cart line being committed, if any; it does not conflict with itself.

    Raises:
        NotFound: Room does not exist.
        AvailabilityConflict: Room under maintenance, overlapping internal
            reservation, or overlapping line in the caller's cart.
        ChannelConflict: Overlapping channel hold.
    """
    room = get_room(conn, row["room_id"], for_update=True)
    if room is None:
        raise NotFound(f"Room {row['room_id']} not found")

    check_in, check_out = row["check_in"], row["check_out"]

    if room.status == ROOM_MAINTENANCE:
        raise AvailabilityConflict(
            room.room_number,
            check_in,
            check_out,
            message=f"Room {room.room_number} is under maintenance",
        )

    rows = find_overlapping(conn, room.id, check_in, check_out)
    raise_for_conflicts(room.room_number, check_in, check_out, rows)

    if session is not None and session.overlapping(room.id, check_in, check_out, exclude=draft):
        raise AvailabilityConflict(
            room.room_number,
            check_in,
            check_out,
            message=f"Room {room.room_number} is already selected in this booking session",
        )

    insert_reservation(conn, row)


def create_reservation(
    engine: Engine,
    draft: ReservationDraft,
    session: Optional[BookingSession] = None,
    publisher: Optional[events.EventPublisher] = None,
) -> ReservationRecord:
    """
    Create one reservation in ``reserved`` status.

    Args:
        engine (Engine): SQLAlchemy engine.
        draft (ReservationDraft): What to book.
        session (Optional[BookingSession]): Caller's uncommitted cart; lines in
            it block the room as if they were committed.
        publisher (Optional[EventPublisher]): Where to publish ReservationCreated.

    Returns:
        ReservationRecord: The stored reservation.

    Raises:
        ValidationError, NotFound, AvailabilityConflict, ChannelConflict
    """
    publisher = publisher or events.publisher
    validate_draft(draft)
    row = build_row(draft)

    try:
        with room_locks.hold(row["room_id"]):
            with engine.begin() as conn:
                write_checked(conn, row, session=session, draft=draft)
                record = get_reservation(conn, row["id"])
    except ConflictError as e:
        reservation_writes.labels(operation="create", outcome=e.code).inc()
        raise
    except ReservationEngineError:
        reservation_writes.labels(operation="create", outcome="invalid").inc()
        raise
    except SQLAlchemyError as e:
        reservation_writes.labels(operation="create", outcome="error").inc()
        logger.error("reservation_create_failed", room_id=row["room_id"], error=str(e))
        raise

    reservation_writes.labels(operation="create", outcome="success").inc()
    logger.info(
        "reservation_created",
        reservation_id=record.id,
        room_number=record.room_number,
        check_in=record.check_in.isoformat(),
        check_out=record.check_out.isoformat(),
        source=record.source,
    )
    publisher.publish(events.RESERVATION_CREATED, record.snapshot())
    return record


def apply_transition(
    conn: Connection, reservation_id: str, target: str
) -> tuple[ReservationRecord, ReservationRecord]:
    """
    Move one reservation to ``target`` inside the caller's transaction.

    Check-in refuses a room that already has a checked-in guest and marks the
    room occupied; check-out leaves the room in cleaning.

    Returns:
        tuple: (record before, record after)

    Raises:
        NotFound, InvalidTransition, AvailabilityConflict
    """
    current = get_reservation(conn, reservation_id)
    if current is None:
        raise NotFound(f"Reservation {reservation_id} not found")

    if current.is_channel_hold and target in (CHECKED_IN, CHECKED_OUT):
        raise InvalidTransition(reservation_id, current.source, target)

    require_transition(reservation_id, current.status, target)

    if target == CHECKED_IN:
        occupants = [
            r
            for r in find_overlapping(conn, current.room_id, current.check_in, current.check_out)
            if r.status == CHECKED_IN and r.id != reservation_id
        ]
        if occupants:
            raise AvailabilityConflict(
                current.room_number,
                current.check_in,
                current.check_out,
                [r.id for r in occupants],
                message=(
                    f"Cannot check in: room {current.room_number} is occupied by "
                    f"{occupants[0].guest_name}. Check out the previous guest first."
                ),
            )

    timestamps = {}
    if target in TIMESTAMP_COLUMNS:
        timestamps[TIMESTAMP_COLUMNS[target]] = utc_now()

    if not update_status(conn, reservation_id, target, expected_status=current.status, **timestamps):
        # Lost a race with another transition of the same row
        fresh = get_reservation(conn, reservation_id)
        raise InvalidTransition(reservation_id, fresh.status if fresh else current.status, target)

    if target == CHECKED_IN:
        set_room_status(conn, current.room_id, ROOM_OCCUPIED)
    elif target == CHECKED_OUT:
        set_room_status(conn, current.room_id, ROOM_CLEANING)

    return current, get_reservation(conn, reservation_id)


def _transition(
    engine: Engine,
    reservation_id: str,
    target: str,
    operation: str,
    event_type: str,
    publisher: Optional[events.EventPublisher],
) -> ReservationRecord:
    publisher = publisher or events.publisher

    try:
        with engine.begin() as conn:
            before, after = apply_transition(conn, reservation_id, target)
    except ReservationEngineError as e:
        reservation_writes.labels(operation=operation, outcome=e.code).inc()
        raise
    except SQLAlchemyError as e:
        reservation_writes.labels(operation=operation, outcome="error").inc()
        logger.error(f"reservation_{operation}_failed", reservation_id=reservation_id, error=str(e))
        raise

    reservation_writes.labels(operation=operation, outcome="success").inc()
    logger.info(
        "reservation_status_changed",
        reservation_id=reservation_id,
        room_number=after.room_number,
        previous_status=before.status,
        status=after.status,
    )
    publisher.publish(event_type, after.snapshot())
    return after


def confirm(
    engine: Engine, reservation_id: str, publisher: Optional[events.EventPublisher] = None
) -> ReservationRecord:
    return _transition(
        engine, reservation_id, CONFIRMED, "confirm", events.RESERVATION_CONFIRMED, publisher
    )


def check_in(
    engine: Engine, reservation_id: str, publisher: Optional[events.EventPublisher] = None
) -> ReservationRecord:
    """Check a guest in; the room becomes occupied."""
    return _transition(engine, reservation_id, CHECKED_IN, "check_in", events.CHECKED_IN, publisher)


def check_out(
    engine: Engine, reservation_id: str, publisher: Optional[events.EventPublisher] = None
) -> ReservationRecord:
    """Check a guest out; the room goes to cleaning and housekeeping reacts to CheckedOut."""
    return _transition(
        engine, reservation_id, CHECKED_OUT, "check_out", events.CHECKED_OUT, publisher
    )


def cancel(
    engine: Engine, reservation_id: str, publisher: Optional[events.EventPublisher] = None
) -> ReservationRecord:
    """Cancel a reservation. The row stays in storage with status ``cancelled``."""
    return _transition(engine, reservation_id, CANCELLED, "cancel", events.CANCELLED, publisher)
