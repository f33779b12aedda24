from sqlalchemy import update
from sqlalchemy.engine import Connection

from lodge_reservations.models.rooms import ROOM_STATUSES, Room
from lodge_reservations.utils.datetime import utc_now


def set_room_status(conn: Connection, room_id: str, status: str) -> None:
    """
    Set the operational status of a room.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        room_id (str): Room id.
        status (str): One of available, occupied, cleaning, maintenance.
    """
    if status not in ROOM_STATUSES:
        raise ValueError(f"Unknown room status: {status}")
    conn.execute(update(Room).where(Room.id == room_id).values(status=status, updated_at=utc_now()))
