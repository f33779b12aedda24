"""
Typed read models returned by the db readers.

Each record is built from a row mapping with an explicit column list, so the
services never depend on the shape of raw query results.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from lodge_reservations.models.reservations import CHANNEL_SOURCE_PREFIX, HOLDING_STATUSES


def _json_safe(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


@dataclass(frozen=True)
class RoomTypeRecord:
    id: str
    name: str
    capacity: int
    base_price: Decimal

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RoomTypeRecord":
        return cls(
            id=row["id"],
            name=row["name"],
            capacity=int(row["capacity"]),
            base_price=Decimal(str(row["base_price"])),
        )


@dataclass(frozen=True)
class RoomRecord:
    id: str
    room_number: str
    room_type_id: str
    status: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RoomRecord":
        return cls(
            id=row["id"],
            room_number=row["room_number"],
            room_type_id=row["room_type_id"],
            status=row["status"],
        )


@dataclass(frozen=True)
class ReservationRecord:
    id: str
    room_id: str
    room_number: str
    guest_name: str
    guest_email: Optional[str]
    guest_phone: Optional[str]
    check_in: date
    check_out: date
    status: str
    source: str
    num_guests: int
    notes: Optional[str]
    group_id: Optional[str]
    group_reference: Optional[str]
    is_primary_booking: bool
    billing_contact: Optional[dict[str, Any]]
    additional_charges: Optional[list[dict[str, Any]]]
    discount: Optional[dict[str, Any]]
    subtotal: Optional[Decimal]
    total_amount: Optional[Decimal]
    mapping_id: Optional[str]
    external_id: Optional[str]
    contention: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    checked_in_at: Optional[datetime]
    checked_out_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    @property
    def is_channel_hold(self) -> bool:
        return self.source.startswith(CHANNEL_SOURCE_PREFIX)

    @property
    def is_holding(self) -> bool:
        return self.status in HOLDING_STATUSES

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ReservationRecord":
        return cls(
            id=row["id"],
            room_id=row["room_id"],
            room_number=row["room_number"],
            guest_name=row["guest_name"],
            guest_email=row["guest_email"],
            guest_phone=row["guest_phone"],
            check_in=row["check_in"],
            check_out=row["check_out"],
            status=row["status"],
            source=row["source"],
            num_guests=int(row["num_guests"] or 1),
            notes=row["notes"],
            group_id=row["group_id"],
            group_reference=row["group_reference"],
            is_primary_booking=bool(row["is_primary_booking"]),
            billing_contact=row["billing_contact"],
            additional_charges=row["additional_charges"],
            discount=row["discount"],
            subtotal=row["subtotal"],
            total_amount=row["total_amount"],
            mapping_id=row["mapping_id"],
            external_id=row["external_id"],
            contention=bool(row["contention"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            checked_in_at=row["checked_in_at"],
            checked_out_at=row["checked_out_at"],
            cancelled_at=row["cancelled_at"],
        )

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe dict of every field, used as event payload and API body."""
        return {key: _json_safe(value) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class ChannelMappingRecord:
    id: str
    channel_connection_id: str
    channel: str
    channel_name: str
    is_active: bool
    room_type_id: str
    import_url: Optional[str]
    export_token: str
    last_synced_at: Optional[datetime]
    sync_status: str
    sync_message: Optional[str]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ChannelMappingRecord":
        return cls(
            id=row["id"],
            channel_connection_id=row["channel_connection_id"],
            channel=row["channel"],
            channel_name=row["channel_name"],
            is_active=bool(row["is_active"]),
            room_type_id=row["room_type_id"],
            import_url=row["import_url"],
            export_token=row["export_token"],
            last_synced_at=row["last_synced_at"],
            sync_status=row["sync_status"],
            sync_message=row["sync_message"],
        )

    def snapshot(self) -> dict[str, Any]:
        return {key: _json_safe(value) for key, value in asdict(self).items()}
