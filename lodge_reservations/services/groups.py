"""
Multi-room group bookings.

Group creation writes one row per line, each in its own transaction under its
room lock with a fresh availability check. There is no transaction spanning
all lines: if line k fails, the k-1 rows already committed are cancelled again
(compensating action) and ``PartialGroupFailure`` reports what happened.

Group check-out is a single transaction: every member moves to
``checked-out`` or none does.
"""

from __future__ import annotations

import secrets
import string
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from lodge_reservations import events
from lodge_reservations.db.readers.reservations import get_reservation, list_group as read_group
from lodge_reservations.db.readers.rooms import get_room
from lodge_reservations.db.records import ReservationRecord
from lodge_reservations.db.writers.reservations import update_group_fields, update_status
from lodge_reservations.errors import (
    InvalidTransition,
    NotFound,
    PartialGroupFailure,
    ReservationEngineError,
    ValidationError,
)
from lodge_reservations.metrics import group_compensations, reservation_writes
from lodge_reservations.models.reservations import CANCELLED, CHECKED_IN, CHECKED_OUT
from lodge_reservations.schemas.reservations import ReservationDraft
from lodge_reservations.services.booking import apply_transition, build_row, validate_draft, write_checked
from lodge_reservations.services.lifecycle import TERMINAL
from lodge_reservations.services.locks import room_locks
from lodge_reservations.utils.datetime import utc_now
from lodge_reservations.utils.intervals import overlaps

logger = structlog.get_logger(__name__)

MIN_GROUP_SIZE = 2
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class GroupBookingResult:
    group_id: str
    group_reference: str
    reservations: list[ReservationRecord]

    def snapshot(self) -> dict[str, Any]:
        primary = self.reservations[0] if self.reservations else None
        return {
            "group_id": self.group_id,
            "group_reference": self.group_reference,
            "billing_contact": primary.billing_contact if primary else None,
            "additional_charges": primary.additional_charges if primary else None,
            "discount": primary.discount if primary else None,
            "reservations": [r.snapshot() for r in self.reservations],
        }


def generate_group_reference(year: Optional[int] = None) -> str:
    """Human-readable group reference, e.g. ``GRP-2025-K7QD``."""
    year = year or utc_now().year
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f"GRP-{year}-{suffix}"


def _validate_lines(lines: Sequence[ReservationDraft]) -> None:
    if len(lines) < MIN_GROUP_SIZE:
        raise ValidationError(f"A group booking needs at least {MIN_GROUP_SIZE} rooms")

    for line in lines:
        validate_draft(line)

    for i, a in enumerate(lines):
        for j in range(i + 1, len(lines)):
            b = lines[j]
            if a.room_id == b.room_id and overlaps(a.check_in, a.check_out, b.check_in, b.check_out):
                raise ValidationError(
                    f"Lines {i + 1} and {j + 1} select room {a.room_id} for overlapping dates"
                )


def _room_numbers(engine: Engine, lines: Sequence[ReservationDraft]) -> list[str]:
    numbers = []
    with engine.connect() as conn:
        for line in lines:
            room = get_room(conn, line.room_id)
            if room is None:
                raise NotFound(f"Room {line.room_id} not found")
            numbers.append(room.room_number)
    return numbers


def _compensate(engine: Engine, group_id: str, written: list[tuple[str, str]]) -> tuple[list[str], list[str]]:
    """
    Cancel rows written before a failure.

    Returns:
        tuple: (compensated room numbers, room numbers whose cancel failed)
    """
    compensated: list[str] = []
    failed: list[str] = []

    for reservation_id, room_number in written:
        try:
            with engine.begin() as conn:
                ok = update_status(conn, reservation_id, CANCELLED, cancelled_at=utc_now())
        except SQLAlchemyError as e:
            logger.error(
                "group_compensation_failed",
                group_id=group_id,
                reservation_id=reservation_id,
                error=str(e),
            )
            ok = False

        if ok:
            compensated.append(room_number)
            group_compensations.labels(outcome="success").inc()
        else:
            failed.append(room_number)
            group_compensations.labels(outcome="failed").inc()

    return compensated, failed


def create_group(
    engine: Engine,
    lines: Sequence[ReservationDraft],
    billing_contact: dict[str, Any],
    additional_charges: Optional[list[dict[str, Any]]] = None,
    discount: Optional[dict[str, Any]] = None,
    publisher: Optional[events.EventPublisher] = None,
) -> GroupBookingResult:
    """
    Book several rooms as one group.

    The first line is the primary booking and carries ``additional_charges``
    and ``discount``. Every line carries ``billing_contact``.

    Args:
        engine (Engine): SQLAlchemy engine.
        lines (Sequence[ReservationDraft]): One draft per room, at least two.
        billing_contact (dict): Who pays for the group.
        additional_charges (Optional[list[dict]]): Group-level extra charges.
        discount (Optional[dict]): Group-level discount.
        publisher (Optional[EventPublisher]): Where to publish GroupBookingCreated.

    Returns:
        GroupBookingResult: Group id, reference and the stored rows, primary first.

    Raises:
        ValidationError: Malformed lines or missing billing contact (nothing written).
        NotFound: A line references an unknown room (nothing written).
        AvailabilityConflict / ChannelConflict: The first line is not free
            (nothing written).
        PartialGroupFailure: A later line failed; earlier lines were cancelled.
    """
    publisher = publisher or events.publisher

    if not billing_contact:
        raise ValidationError("billing_contact is required for a group booking")
    _validate_lines(lines)
    room_numbers = _room_numbers(engine, lines)

    group_id = str(uuid.uuid4())
    group_reference = generate_group_reference()

    logger.info(
        "group_booking_started",
        group_id=group_id,
        group_reference=group_reference,
        rooms=room_numbers,
    )

    written: list[tuple[str, str]] = []
    for index, line in enumerate(lines):
        is_primary = index == 0
        row = build_row(
            line,
            group_id=group_id,
            group_reference=group_reference,
            is_primary_booking=is_primary,
            billing_contact=billing_contact,
            additional_charges=(additional_charges or []) if is_primary else None,
            discount=discount if is_primary else None,
        )

        try:
            with room_locks.hold(row["room_id"]):
                with engine.begin() as conn:
                    write_checked(conn, row)
        except Exception as e:
            if not written:
                reservation_writes.labels(
                    operation="group_create", outcome=getattr(e, "code", "error")
                ).inc()
                raise

            logger.error(
                "group_line_failed",
                group_id=group_id,
                line=index + 1,
                room_number=room_numbers[index],
                error=str(e),
            )
            compensated, compensation_failed = _compensate(engine, group_id, written)
            reservation_writes.labels(operation="group_create", outcome="partial_failure").inc()
            raise PartialGroupFailure(
                group_id,
                committed=[number for _, number in written],
                failed=room_numbers[index:],
                compensated=compensated,
                compensation_failed=compensation_failed,
                cause=e,
            ) from e

        written.append((row["id"], room_numbers[index]))

    with engine.connect() as conn:
        members = read_group(conn, group_id)

    result = GroupBookingResult(group_id, group_reference, members)
    reservation_writes.labels(operation="group_create", outcome="success").inc()
    logger.info(
        "group_booking_created",
        group_id=group_id,
        group_reference=group_reference,
        count=len(members),
    )
    publisher.publish(events.GROUP_BOOKING_CREATED, result.snapshot())
    return result


def list_group(engine: Engine, group_id: str) -> list[ReservationRecord]:
    """
    Members of a group, primary first.

    Raises:
        NotFound: No reservation carries ``group_id``.
    """
    with engine.connect() as conn:
        members = read_group(conn, group_id)
    if not members:
        raise NotFound(f"Group {group_id} not found")
    return members


def group_check_out(
    engine: Engine, group_id: str, publisher: Optional[events.EventPublisher] = None
) -> list[ReservationRecord]:
    """
    Check out every checked-in member of a group together.

    Offered only when every non-cancelled member is checked in (members that
    already checked out on their own are left alone). All transitions share
    one transaction: either all commit or none does.

    Returns:
        list[ReservationRecord]: Members that were checked out.

    Raises:
        NotFound: Unknown group.
        InvalidTransition: Some member is not checked in yet.
        PartialGroupFailure: A transition failed; nothing was committed.
    """
    publisher = publisher or events.publisher
    checked_out: list[ReservationRecord] = []

    with engine.begin() as conn:
        members = read_group(conn, group_id)
        if not members:
            raise NotFound(f"Group {group_id} not found")

        pending = [m for m in members if m.status not in (CHECKED_IN, CHECKED_OUT, CANCELLED)]
        if pending:
            raise InvalidTransition(pending[0].id, pending[0].status, CHECKED_OUT)

        targets = [m for m in members if m.status == CHECKED_IN]
        if not targets:
            raise ValidationError(f"Group {group_id} has no checked-in members")

        done: list[str] = []
        for member in targets:
            try:
                _, after = apply_transition(conn, member.id, CHECKED_OUT)
            except (ReservationEngineError, SQLAlchemyError) as e:
                reservation_writes.labels(operation="group_check_out", outcome="partial_failure").inc()
                logger.error(
                    "group_check_out_failed",
                    group_id=group_id,
                    reservation_id=member.id,
                    error=str(e),
                )
                # Raising inside the transaction rolls back the members already moved
                raise PartialGroupFailure(
                    group_id,
                    committed=[],
                    failed=[m.room_number for m in targets],
                    compensated=done,
                    cause=e,
                ) from e
            done.append(member.room_number)
            checked_out.append(after)

    reservation_writes.labels(operation="group_check_out", outcome="success").inc()
    logger.info("group_checked_out", group_id=group_id, count=len(checked_out))
    for record in checked_out:
        publisher.publish(events.CHECKED_OUT, record.snapshot())
    return checked_out


def add_to_group(
    engine: Engine,
    group_id: str,
    draft: ReservationDraft,
    publisher: Optional[events.EventPublisher] = None,
) -> ReservationRecord:
    """
    Add a room to an existing group.

    The new member is never primary; it inherits the group reference and the
    billing contact and carries no group charges.

    Raises:
        NotFound: Unknown group or room.
        ValidationError, AvailabilityConflict, ChannelConflict
    """
    publisher = publisher or events.publisher
    validate_draft(draft)

    members = list_group(engine, group_id)
    primary = next((m for m in members if m.is_primary_booking), members[0])

    row = build_row(
        draft,
        group_id=group_id,
        group_reference=primary.group_reference,
        is_primary_booking=False,
        billing_contact=primary.billing_contact,
    )

    with room_locks.hold(row["room_id"]):
        with engine.begin() as conn:
            write_checked(conn, row)
            record = get_reservation(conn, row["id"])

    logger.info(
        "group_member_added",
        group_id=group_id,
        reservation_id=record.id,
        room_number=record.room_number,
    )
    publisher.publish(events.RESERVATION_CREATED, record.snapshot())
    return record


def remove_from_group(
    engine: Engine, reservation_id: str, publisher: Optional[events.EventPublisher] = None
) -> dict[str, Any]:
    """
    Take a member out of its group and cancel it.

    Removing the primary member hands the primary flag, the group charges and
    the discount to the next member.

    Returns:
        dict: ``remaining_count`` and ``new_primary_id`` (None unless the
        primary was removed).

    Raises:
        NotFound: Unknown reservation.
        ValidationError: Not a group member, checked in, or removal would leave
            fewer than two members.
    """
    publisher = publisher or events.publisher
    new_primary_id: Optional[str] = None
    cancelled: Optional[ReservationRecord] = None

    with engine.begin() as conn:
        record = get_reservation(conn, reservation_id)
        if record is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        if not record.group_id:
            raise ValidationError(f"Reservation {reservation_id} is not part of a group")
        if record.status == CHECKED_IN:
            raise ValidationError(
                "Cannot remove a booking that is currently checked in. Check out the guest first."
            )

        others = [
            m for m in read_group(conn, record.group_id)
            if m.id != reservation_id and m.status != CANCELLED
        ]
        if len(others) < MIN_GROUP_SIZE:
            raise ValidationError(
                f"Group {record.group_id} must keep at least {MIN_GROUP_SIZE} members"
            )

        if record.is_primary_booking:
            successor = others[0]
            update_group_fields(
                conn,
                successor.id,
                {
                    "is_primary_booking": True,
                    "additional_charges": record.additional_charges,
                    "discount": record.discount,
                },
            )
            new_primary_id = successor.id

        update_group_fields(
            conn,
            reservation_id,
            {
                "group_id": None,
                "group_reference": None,
                "is_primary_booking": False,
                "billing_contact": None,
                "additional_charges": None,
                "discount": None,
            },
        )
        if record.status not in TERMINAL:
            update_status(
                conn, reservation_id, CANCELLED, expected_status=record.status, cancelled_at=utc_now()
            )
            cancelled = get_reservation(conn, reservation_id)

    logger.info(
        "group_member_removed",
        group_id=record.group_id,
        reservation_id=reservation_id,
        remaining=len(others),
        new_primary_id=new_primary_id,
    )
    if cancelled is not None:
        publisher.publish(events.CANCELLED, cancelled.snapshot())
    return {"remaining_count": len(others), "new_primary_id": new_primary_id}
