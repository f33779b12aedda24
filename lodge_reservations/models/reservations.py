# models/reservations.py

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.sql import func

from lodge_reservations.models.base import Base, JSONType

RESERVED = "reserved"
CONFIRMED = "confirmed"
CHECKED_IN = "checked-in"
CHECKED_OUT = "checked-out"
CANCELLED = "cancelled"

STATUSES = (RESERVED, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED)

# Statuses that occupy the room for their date range
HOLDING_STATUSES = (RESERVED, CONFIRMED, CHECKED_IN)

SOURCE_RECEPTION = "reception"
SOURCE_ONLINE = "online"
SOURCE_VOICE_AGENT = "voice-agent"
CHANNEL_SOURCE_PREFIX = "channel:"

INTERNAL_SOURCES = (SOURCE_RECEPTION, SOURCE_ONLINE, SOURCE_VOICE_AGENT)


def channel_source(channel: str) -> str:
    """Build the ``source`` value used for rows imported from a channel."""
    return f"{CHANNEL_SOURCE_PREFIX}{channel}"


class Reservation(Base):
    """
    ORM model for a room reservation.

    Internal bookings and channel holds share this table. A channel hold is a
    row whose ``source`` starts with ``channel:``; it carries the mapping it
    was imported from and the external event id, unique per mapping, so that
    repeated imports update rather than duplicate.

    Group bookings link siblings through ``group_id``. Only the primary member
    carries ``additional_charges`` and ``discount``; every member carries the
    shared ``billing_contact``. Monetary columns are opaque to the engine.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("mapping_id", "external_id", name="uq_reservations_mapping_external"),
    )

    id = Column(String(36), primary_key=True)
    room_id = Column(
        String(36), ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    guest_name = Column(String, nullable=False)
    guest_email = Column(String, nullable=True)
    guest_phone = Column(String, nullable=True)

    check_in = Column(Date, nullable=False, index=True)
    check_out = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False, server_default=RESERVED, index=True)
    source = Column(String, nullable=False, server_default=SOURCE_RECEPTION)
    num_guests = Column(Integer, nullable=False, server_default="1")
    notes = Column(Text, nullable=True)

    group_id = Column(String(36), nullable=True, index=True)
    group_reference = Column(String, nullable=True)
    is_primary_booking = Column(Boolean, nullable=False, server_default=text("FALSE"))
    billing_contact = Column(JSONType, nullable=True)
    additional_charges = Column(JSONType, nullable=True)
    discount = Column(JSONType, nullable=True)
    subtotal = Column(Numeric(12, 2), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=True)

    # Channel hold fields
    mapping_id = Column(
        String(36), ForeignKey("channel_room_mappings.id", ondelete="SET NULL"), nullable=True
    )
    external_id = Column(String, nullable=True)
    contention = Column(Boolean, nullable=False, server_default=text("FALSE"))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
