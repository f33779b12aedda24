"""Reservation queries. No business rules live here; callers decide what a result means."""

from datetime import date
from typing import Iterable, Optional, Sequence

from sqlalchemy import Select, select
from sqlalchemy.engine import Connection

from lodge_reservations.db.records import ReservationRecord
from lodge_reservations.models.reservations import HOLDING_STATUSES, Reservation
from lodge_reservations.models.rooms import Room


def _base_query() -> Select:
    return select(
        Reservation.id,
        Reservation.room_id,
        Room.room_number,
        Reservation.guest_name,
        Reservation.guest_email,
        Reservation.guest_phone,
        Reservation.check_in,
        Reservation.check_out,
        Reservation.status,
        Reservation.source,
        Reservation.num_guests,
        Reservation.notes,
        Reservation.group_id,
        Reservation.group_reference,
        Reservation.is_primary_booking,
        Reservation.billing_contact,
        Reservation.additional_charges,
        Reservation.discount,
        Reservation.subtotal,
        Reservation.total_amount,
        Reservation.mapping_id,
        Reservation.external_id,
        Reservation.contention,
        Reservation.created_at,
        Reservation.updated_at,
        Reservation.checked_in_at,
        Reservation.checked_out_at,
        Reservation.cancelled_at,
    ).join(Room, Room.id == Reservation.room_id)


def _fetch(conn: Connection, stmt: Select) -> list[ReservationRecord]:
    return [ReservationRecord.from_row(row) for row in conn.execute(stmt).mappings()]


def get_reservation(conn: Connection, reservation_id: str) -> Optional[ReservationRecord]:
    """
    Fetch a single reservation by id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        reservation_id (str): Reservation identifier.

    Returns:
        Optional[ReservationRecord]: The reservation or None if not found.
    """
    rows = _fetch(conn, _base_query().where(Reservation.id == reservation_id))
    return rows[0] if rows else None


def list_reservations(
    conn: Connection,
    statuses: Optional[Iterable[str]] = None,
    room_id: Optional[str] = None,
    group_id: Optional[str] = None,
    mapping_id: Optional[str] = None,
) -> list[ReservationRecord]:
    """
    List reservations ordered by creation time, with optional filters.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        statuses (Optional[Iterable[str]]): Only these statuses.
        room_id (Optional[str]): Only this room.
        group_id (Optional[str]): Only members of this group.
        mapping_id (Optional[str]): Only channel holds imported through this mapping.

    Returns:
        list[ReservationRecord]: Matching reservations, oldest first.
    """
    stmt = _base_query()
    if statuses is not None:
        stmt = stmt.where(Reservation.status.in_(list(statuses)))
    if room_id is not None:
        stmt = stmt.where(Reservation.room_id == room_id)
    if group_id is not None:
        stmt = stmt.where(Reservation.group_id == group_id)
    if mapping_id is not None:
        stmt = stmt.where(Reservation.mapping_id == mapping_id)
    return _fetch(conn, stmt.order_by(Reservation.created_at, Reservation.id))


def find_overlapping(
    conn: Connection,
    room_id: str,
    check_in: date,
    check_out: date,
    exclude_ids: Sequence[str] = (),
) -> list[ReservationRecord]:
    """
    Holding reservations (channel holds included) on a room that share a night
    with ``[check_in, check_out)``.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_id (str): Room to inspect.
        check_in (date): Range start (inclusive).
        check_out (date): Range end (exclusive).
        exclude_ids (Sequence[str]): Reservation ids to ignore.

    Returns:
        list[ReservationRecord]: Overlapping holding reservations.
    """
    stmt = _base_query().where(
        Reservation.room_id == room_id,
        Reservation.status.in_(HOLDING_STATUSES),
        Reservation.check_in < check_out,
        Reservation.check_out > check_in,
    )
    if exclude_ids:
        stmt = stmt.where(Reservation.id.not_in(list(exclude_ids)))
    return _fetch(conn, stmt.order_by(Reservation.check_in))


def list_holding_for_room_type(
    conn: Connection, room_type_id: str, start: date, end: date
) -> list[ReservationRecord]:
    """Holding reservations on any room of a type that touch ``[start, end)``."""
    stmt = _base_query().where(
        Room.room_type_id == room_type_id,
        Reservation.status.in_(HOLDING_STATUSES),
        Reservation.check_in < end,
        Reservation.check_out > start,
    )
    return _fetch(conn, stmt.order_by(Reservation.check_in))


def list_group(conn: Connection, group_id: str) -> list[ReservationRecord]:
    """Group members, primary first."""
    stmt = _base_query().where(Reservation.group_id == group_id)
    return _fetch(
        conn,
        stmt.order_by(Reservation.is_primary_booking.desc(), Reservation.created_at, Reservation.id),
    )
