from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from lodge_reservations.models.reservations import SOURCE_RECEPTION


class ReservationDraft(BaseModel):
    """
    Schema for a reservation that has not been written yet.

    Used as the body of ``POST /reservations``, as a line of a group booking,
    and as an item of an in-flight booking session cart. Date ordering is
    checked by the booking services, not here, so every entry point reports it
    as the same ``validation_error``.
    """

    room_id: str = Field(..., description="Room to reserve")
    guest_name: str = Field(..., description="Guest full name")
    guest_email: Optional[str] = Field(None, description="Guest email")
    guest_phone: Optional[str] = Field(None, description="Guest phone")
    check_in: date = Field(..., description="Arrival date (first night)")
    check_out: date = Field(..., description="Departure date (not a night of the stay)")
    num_guests: int = Field(1, ge=1, description="Number of guests")
    source: str = Field(SOURCE_RECEPTION, description="reception | online | voice-agent")
    notes: Optional[str] = Field(None, description="Free-text notes")
    subtotal: Optional[Decimal] = Field(None, description="Room charge before discounts")
    total_amount: Optional[Decimal] = Field(None, description="Final amount for this line")


class ReservationOut(BaseModel):
    """Reservation as returned by the API."""

    id: str
    room_id: str
    room_number: str
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    check_in: date
    check_out: date
    status: str
    source: str
    num_guests: int
    notes: Optional[str] = None
    group_id: Optional[str] = None
    group_reference: Optional[str] = None
    is_primary_booking: bool = False
    billing_contact: Optional[dict[str, Any]] = None
    additional_charges: Optional[list[dict[str, Any]]] = None
    discount: Optional[dict[str, Any]] = None
    subtotal: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    mapping_id: Optional[str] = None
    external_id: Optional[str] = None
    contention: bool = False
