"""Read-only view of rooms and room types."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from lodge_reservations.db.records import RoomRecord, RoomTypeRecord
from lodge_reservations.models.rooms import Room, RoomType

_ROOM_COLUMNS = (Room.id, Room.room_number, Room.room_type_id, Room.status)
_ROOM_TYPE_COLUMNS = (RoomType.id, RoomType.name, RoomType.capacity, RoomType.base_price)


def get_room(conn: Connection, room_id: str, for_update: bool = False) -> Optional[RoomRecord]:
    """
    Fetch a single room by id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_id (str): Room identifier.
        for_update (bool): Lock the row until the surrounding transaction ends
            (PostgreSQL; ignored by SQLite).

    Returns:
        Optional[RoomRecord]: The room, or None if it does not exist.
    """
    stmt = select(*_ROOM_COLUMNS).where(Room.id == room_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return RoomRecord.from_row(row) if row else None


def get_room_by_number(conn: Connection, room_number: str) -> Optional[RoomRecord]:
    row = (
        conn.execute(select(*_ROOM_COLUMNS).where(Room.room_number == room_number))
        .mappings()
        .fetchone()
    )
    return RoomRecord.from_row(row) if row else None


def list_rooms(conn: Connection, room_type_id: Optional[str] = None) -> list[RoomRecord]:
    """
    List rooms ordered by room number, optionally restricted to one room type.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        room_type_id (Optional[str]): Room type filter.

    Returns:
        list[RoomRecord]: Matching rooms.
    """
    stmt = select(*_ROOM_COLUMNS).order_by(Room.room_number)
    if room_type_id is not None:
        stmt = stmt.where(Room.room_type_id == room_type_id)
    return [RoomRecord.from_row(row) for row in conn.execute(stmt).mappings()]


def get_room_type(conn: Connection, room_type_id: str) -> Optional[RoomTypeRecord]:
    row = (
        conn.execute(select(*_ROOM_TYPE_COLUMNS).where(RoomType.id == room_type_id))
        .mappings()
        .fetchone()
    )
    return RoomTypeRecord.from_row(row) if row else None


def list_room_types(conn: Connection) -> list[RoomTypeRecord]:
    stmt = select(*_ROOM_TYPE_COLUMNS).order_by(RoomType.name)
    return [RoomTypeRecord.from_row(row) for row in conn.execute(stmt).mappings()]
