"""SQLAlchemy models for external channel (OTA) connections and calendar mappings."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, text
from sqlalchemy.sql import func

from lodge_reservations.models.base import Base, JSONType

SYNC_PENDING = "pending"
SYNC_SUCCESS = "success"
SYNC_ERROR = "error"


class ChannelConnection(Base):
    """
    ORM model for a connected distribution channel (Airbnb, Booking.com, ...).

    One row per channel for the property. Deactivating a connection stops
    imports for all of its mappings without deleting them.
    """

    __tablename__ = "channel_connections"

    id = Column(String(36), primary_key=True)
    channel = Column(String, nullable=False, unique=True)  # e.g. "airbnb"
    name = Column(String, nullable=False)  # Display name, e.g. "Airbnb"
    is_active = Column(Boolean, nullable=False, server_default=text("TRUE"))
    settings = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ChannelRoomMapping(Base):
    """
    ORM model linking a local room type to one channel's calendar.

    ``import_url`` is the channel's iCal feed of busy periods. ``export_token``
    is an unguessable capability string; the public export feed is looked up by
    it, never by the mapping id. Tokens are rotated by recreating the mapping.
    """

    __tablename__ = "channel_room_mappings"

    id = Column(String(36), primary_key=True)
    channel_connection_id = Column(
        String(36),
        ForeignKey("channel_connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    room_type_id = Column(
        String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False, index=True
    )
    import_url = Column(String, nullable=True)
    export_token = Column(String, nullable=False, unique=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    sync_status = Column(String, nullable=False, server_default=SYNC_PENDING)
    sync_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
