"""SQLAlchemy models for the room inventory."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from lodge_reservations.models.base import Base

ROOM_AVAILABLE = "available"
ROOM_OCCUPIED = "occupied"
ROOM_CLEANING = "cleaning"
ROOM_MAINTENANCE = "maintenance"

ROOM_STATUSES = (ROOM_AVAILABLE, ROOM_OCCUPIED, ROOM_CLEANING, ROOM_MAINTENANCE)


class RoomType(Base):
    """
    ORM model for a sellable room category (e.g. "Deluxe Room").

    Capacity and base price are owned by the pricing screens; the engine only
    reads them.
    """

    __tablename__ = "room_types"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False, unique=True)
    capacity = Column(Integer, nullable=False, server_default="2")
    base_price = Column(Numeric(12, 2), nullable=False, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Room(Base):
    """
    ORM model for a physical room.

    ``status`` is moved by check-in/check-out and housekeeping collaborators.
    The engine treats it as read-only; ``maintenance`` always blocks booking.
    """

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True)
    room_number = Column(String, nullable=False, unique=True)
    room_type_id = Column(
        String(36), ForeignKey("room_types.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status = Column(String, nullable=False, server_default=ROOM_AVAILABLE)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
