from typing import Any, Optional

from pydantic import BaseModel, Field

from lodge_reservations.schemas.reservations import ReservationDraft


class BillingContact(BaseModel):
    """Who pays for the whole group."""

    name: str = Field(..., description="Billing contact name")
    email: Optional[str] = Field(None, description="Billing contact email")
    phone: Optional[str] = Field(None, description="Billing contact phone")
    company: Optional[str] = Field(None, description="Company or organisation")


class AdditionalCharge(BaseModel):
    description: str = Field(..., description="What the charge is for")
    amount: float = Field(..., description="Charge amount")


class Discount(BaseModel):
    type: str = Field("percentage", description="percentage | fixed")
    value: float = Field(0, ge=0, description="Percent or fixed amount")
    reason: Optional[str] = Field(None, description="Why the discount was granted")


class GroupBookingPayload(BaseModel):
    """
    Schema for creating a multi-room group booking.

    The first line becomes the primary booking and carries the charges and
    discount; every line carries the billing contact.
    """

    lines: list[ReservationDraft] = Field(..., description="One draft per room")
    billing_contact: BillingContact = Field(..., description="Shared billing contact")
    additional_charges: list[AdditionalCharge] = Field(default_factory=list)
    discount: Optional[Discount] = Field(None, description="Group discount")

    def charges_as_dicts(self) -> list[dict[str, Any]]:
        return [c.model_dump() for c in self.additional_charges]
