"""
Integration tests for multi-room group bookings.
"""

from __future__ import annotations

import re
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from lodge_reservations.db.readers.reservations import list_reservations
from lodge_reservations.db.writers.reservations import insert_reservation
from lodge_reservations.errors import (
    AvailabilityConflict,
    InvalidTransition,
    NotFound,
    PartialGroupFailure,
    ValidationError,
)
from lodge_reservations.services import booking, groups

JAN_10 = date(2025, 1, 10)
JAN_15 = date(2025, 1, 15)
BILLING = {"name": "Acme Corp", "email": "travel@acme.example"}
CHARGES = [{"description": "Airport shuttle", "amount": 80.0}]
DISCOUNT = {"type": "percentage", "value": 10, "reason": "Corporate rate"}


def _create(engine, make_draft, publisher, rooms=("room-101", "room-102", "room-201")):
    lines = [make_draft(room_id, guest_name=f"Guest {i}") for i, room_id in enumerate(rooms)]
    return groups.create_group(
        engine,
        lines,
        billing_contact=BILLING,
        additional_charges=CHARGES,
        discount=DISCOUNT,
        publisher=publisher,
    )


def _statuses(engine) -> dict[str, str]:
    with engine.connect() as conn:
        return {r.room_number: r.status for r in list_reservations(conn)}


@pytest.mark.integration
def test_create_group(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher)

    assert re.fullmatch(r"GRP-\d{4}-[A-Z0-9]{4}", result.group_reference)
    assert [r.room_number for r in result.reservations] == ["101", "102", "201"]

    primary, *others = result.reservations
    assert primary.is_primary_booking is True
    assert primary.additional_charges == CHARGES
    assert primary.discount == DISCOUNT
    assert all(not r.is_primary_booking and r.discount is None for r in others)
    assert all(r.billing_contact == BILLING for r in result.reservations)
    assert {r.group_id for r in result.reservations} == {result.group_id}

    assert publisher.names() == ["GroupBookingCreated"]
    payload = publisher.events[0][1]
    assert payload["group_reference"] == result.group_reference
    assert len(payload["reservations"]) == 3


@pytest.mark.integration
def test_group_needs_two_lines_and_billing(engine, make_draft, publisher) -> None:
    with pytest.raises(ValidationError):
        groups.create_group(engine, [make_draft()], billing_contact=BILLING, publisher=publisher)
    with pytest.raises(ValidationError):
        groups.create_group(
            engine, [make_draft(), make_draft("room-102")], billing_contact={}, publisher=publisher
        )


@pytest.mark.integration
def test_group_rejects_same_room_twice(engine, make_draft, publisher) -> None:
    lines = [make_draft(), make_draft(check_in=date(2025, 1, 12), check_out=date(2025, 1, 20))]

    with pytest.raises(ValidationError):
        groups.create_group(engine, lines, billing_contact=BILLING, publisher=publisher)


@pytest.mark.integration
def test_group_with_unknown_room_writes_nothing(engine, make_draft, publisher) -> None:
    with pytest.raises(NotFound):
        _create(engine, make_draft, publisher, rooms=("room-101", "room-999"))
    assert _statuses(engine) == {}


@pytest.mark.integration
def test_first_line_conflict_writes_nothing(engine, make_draft, publisher) -> None:
    booking.create_reservation(engine, make_draft("room-101", guest_name="Walk In"), publisher=publisher)

    with pytest.raises(AvailabilityConflict):
        _create(engine, make_draft, publisher)

    assert _statuses(engine) == {"101": "reserved"}


@pytest.mark.integration
def test_later_line_conflict_compensates(engine, make_draft, publisher) -> None:
    """Rooms written before the failing line are cancelled again."""
    booking.create_reservation(engine, make_draft("room-201", guest_name="Walk In"), publisher=publisher)
    publisher.events.clear()

    with pytest.raises(PartialGroupFailure) as exc_info:
        _create(engine, make_draft, publisher)

    error = exc_info.value
    assert error.committed == ["101", "102"]
    assert error.failed == ["201"]
    assert error.compensated == ["101", "102"]
    assert error.compensation_failed == []
    assert isinstance(error.cause, AvailabilityConflict)

    with engine.connect() as conn:
        rows = list_reservations(conn)
    group_rows = [r for r in rows if r.group_id == error.group_id]
    assert {r.status for r in group_rows} == {"cancelled"}
    assert [r.status for r in rows if r.group_id is None] == ["reserved"]
    assert publisher.events == []


@pytest.mark.integration
def test_storage_failure_mid_group_compensates(engine, make_draft, publisher) -> None:
    calls = {"n": 0}

    def flaky_insert(conn, row):
        calls["n"] += 1
        if calls["n"] == 3:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        insert_reservation(conn, row)

    with patch("lodge_reservations.services.booking.insert_reservation", side_effect=flaky_insert):
        with pytest.raises(PartialGroupFailure) as exc_info:
            _create(engine, make_draft, publisher)

    assert exc_info.value.committed == ["101", "102"]
    assert exc_info.value.compensated == ["101", "102"]
    assert set(_statuses(engine).values()) == {"cancelled"}


@pytest.mark.integration
def test_group_check_out_all_or_nothing(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher, rooms=("room-101", "room-102"))
    first, second = result.reservations

    booking.check_in(engine, first.id, publisher=publisher)
    with pytest.raises(InvalidTransition):
        groups.group_check_out(engine, result.group_id, publisher=publisher)

    booking.check_in(engine, second.id, publisher=publisher)
    publisher.events.clear()

    records = groups.group_check_out(engine, result.group_id, publisher=publisher)

    assert {r.status for r in records} == {"checked-out"}
    assert publisher.names() == ["CheckedOut", "CheckedOut"]


@pytest.mark.integration
def test_group_check_out_rolls_back_on_failure(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher, rooms=("room-101", "room-102"))
    for member in result.reservations:
        booking.check_in(engine, member.id, publisher=publisher)

    real = groups.apply_transition
    calls = {"n": 0}

    def failing_second(conn, reservation_id, target):
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("UPDATE", {}, Exception("connection reset"))
        return real(conn, reservation_id, target)

    with patch("lodge_reservations.services.groups.apply_transition", side_effect=failing_second):
        with pytest.raises(PartialGroupFailure) as exc_info:
            groups.group_check_out(engine, result.group_id, publisher=publisher)

    assert exc_info.value.committed == []
    assert exc_info.value.compensated == ["101"]
    assert set(_statuses(engine).values()) == {"checked-in"}


@pytest.mark.integration
def test_group_check_out_unknown_group(engine, publisher) -> None:
    with pytest.raises(NotFound):
        groups.group_check_out(engine, "no-such-group", publisher=publisher)


@pytest.mark.integration
def test_add_member_inherits_group_fields(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher, rooms=("room-101", "room-102"))

    added = groups.add_to_group(engine, result.group_id, make_draft("room-201"), publisher=publisher)

    assert added.group_id == result.group_id
    assert added.group_reference == result.group_reference
    assert added.billing_contact == BILLING
    assert added.is_primary_booking is False
    assert added.additional_charges is None
    assert len(groups.list_group(engine, result.group_id)) == 3


@pytest.mark.integration
def test_remove_primary_hands_over_charges(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher)
    primary, successor, _ = result.reservations

    outcome = groups.remove_from_group(engine, primary.id, publisher=publisher)

    assert outcome == {"remaining_count": 2, "new_primary_id": successor.id}
    members = groups.list_group(engine, result.group_id)
    assert [m.id for m in members][0] == successor.id
    assert members[0].is_primary_booking is True
    assert members[0].additional_charges == CHARGES
    assert members[0].discount == DISCOUNT

    with engine.connect() as conn:
        removed = next(r for r in list_reservations(conn) if r.id == primary.id)
    assert removed.status == "cancelled"
    assert removed.group_id is None
    assert publisher.names()[-1] == "Cancelled"


@pytest.mark.integration
def test_remove_refused_cases(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher, rooms=("room-101", "room-102"))
    solo = booking.create_reservation(engine, make_draft("room-201"), publisher=publisher)

    # Would leave a single member
    with pytest.raises(ValidationError):
        groups.remove_from_group(engine, result.reservations[1].id, publisher=publisher)
    with pytest.raises(ValidationError):
        groups.remove_from_group(engine, solo.id, publisher=publisher)
    with pytest.raises(NotFound):
        groups.remove_from_group(engine, "missing", publisher=publisher)

    groups.add_to_group(
        engine, result.group_id, make_draft("room-201", check_in=JAN_15, check_out=date(2025, 1, 17)),
        publisher=publisher,
    )
    booking.check_in(engine, result.reservations[1].id, publisher=publisher)
    with pytest.raises(ValidationError, match="checked in"):
        groups.remove_from_group(engine, result.reservations[1].id, publisher=publisher)


@pytest.mark.integration
def test_cancelled_members_do_not_count_toward_group_size(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher)
    booking.cancel(engine, result.reservations[2].id, publisher=publisher)

    with pytest.raises(ValidationError, match="at least 2 members"):
        groups.remove_from_group(engine, result.reservations[1].id, publisher=publisher)


@pytest.mark.integration
def test_cancelled_member_is_never_made_primary(engine, make_draft, publisher) -> None:
    result = _create(engine, make_draft, publisher)
    primary, cancelled, active = result.reservations
    groups.add_to_group(
        engine, result.group_id, make_draft("room-101", check_in=JAN_15, check_out=date(2025, 1, 17)),
        publisher=publisher,
    )
    booking.cancel(engine, cancelled.id, publisher=publisher)

    outcome = groups.remove_from_group(engine, primary.id, publisher=publisher)

    assert outcome == {"remaining_count": 2, "new_primary_id": active.id}
    members = {m.id: m for m in groups.list_group(engine, result.group_id)}
    assert members[active.id].is_primary_booking is True
    assert members[active.id].additional_charges == CHARGES
    assert members[cancelled.id].is_primary_booking is False
