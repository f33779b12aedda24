"""
Merge channel-imported busy periods with internal reservations.

A channel hold is external truth. When an internal booking collides with one,
the caller gets a ``ChannelConflict`` rather than an ``AvailabilityConflict``
because the fix is on the channel side (stale calendar, manual block), not a
same-system race. Channel holds never conflict with each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from lodge_reservations.db.readers.reservations import list_reservations
from lodge_reservations.db.records import ReservationRecord, RoomRecord
from lodge_reservations.errors import AvailabilityConflict, ChannelConflict
from lodge_reservations.models.reservations import HOLDING_STATUSES
from lodge_reservations.models.rooms import ROOM_MAINTENANCE
from lodge_reservations.utils.intervals import overlaps

logger = structlog.get_logger(__name__)

INTERNAL_CONFLICT = "internal_conflict"
CHANNEL_CONFLICT = "channel_conflict"


@dataclass(frozen=True)
class ConflictPair:
    """Two holding reservations claiming the same room for at least one night."""

    kind: str
    room_number: str
    first_id: str
    second_id: str
    start: date
    end: date

    def snapshot(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "room_number": self.room_number,
            "first_id": self.first_id,
            "second_id": self.second_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


def relevant_conflicts(
    rows: Iterable[ReservationRecord], incoming_is_channel_hold: bool = False
) -> list[ReservationRecord]:
    """
    Filter overlapping rows down to the ones that actually block the incoming write.

    Args:
        rows: Holding reservations overlapping the requested range.
        incoming_is_channel_hold: The write being checked is itself a channel hold.

    Returns:
        list[ReservationRecord]: Blocking rows.
    """
    blocking = [r for r in rows if r.is_holding]
    if incoming_is_channel_hold:
        blocking = [r for r in blocking if not r.is_channel_hold]
    return blocking


def classify(
    rows: Iterable[ReservationRecord], incoming_is_channel_hold: bool = False
) -> Optional[str]:
    """
    Decide what kind of conflict a set of overlapping rows represents.

    Returns:
        None when nothing blocks, CHANNEL_CONFLICT when any blocking row is a
        channel hold, INTERNAL_CONFLICT otherwise.
    """
    blocking = relevant_conflicts(rows, incoming_is_channel_hold)
    if not blocking:
        return None
    if any(r.is_channel_hold for r in blocking):
        return CHANNEL_CONFLICT
    return INTERNAL_CONFLICT


def raise_for_conflicts(
    room_number: str,
    check_in: date,
    check_out: date,
    rows: Sequence[ReservationRecord],
    incoming_is_channel_hold: bool = False,
) -> None:
    """
    Raise the matching conflict error if any row blocks ``[check_in, check_out)``.

    Raises:
        ChannelConflict: A channel hold occupies part of the range.
        AvailabilityConflict: Another internal reservation occupies part of the range.
    """
    blocking = relevant_conflicts(rows, incoming_is_channel_hold)
    kind = classify(blocking)
    if kind is None:
        return

    ids = [r.id for r in blocking]
    if kind == CHANNEL_CONFLICT:
        logger.warning(
            "channel_conflict_detected",
            room_number=room_number,
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
            conflicting_ids=ids,
        )
        raise ChannelConflict(room_number, check_in, check_out, ids)

    logger.warning(
        "availability_conflict_detected",
        room_number=room_number,
        check_in=check_in.isoformat(),
        check_out=check_out.isoformat(),
        conflicting_ids=ids,
    )
    raise AvailabilityConflict(room_number, check_in, check_out, ids)


def choose_room_for_hold(
    rooms: Sequence[RoomRecord],
    holding: Sequence[ReservationRecord],
    check_in: date,
    check_out: date,
) -> tuple[Optional[RoomRecord], bool]:
    """
    Pick a room of the mapped type to carry a new channel hold.

    Preference order: a non-maintenance room with nothing overlapping, then a
    non-maintenance room overlapped only by other channel holds, then any room.
    The hold is in contention when an internal reservation already occupies
    the chosen room: the channel and the engine both claim the slot.

    Args:
        rooms: Rooms of the mapped room type, ordered by room number.
        holding: Holding reservations on those rooms overlapping the range.
        check_in: Hold start.
        check_out: Hold end (exclusive).

    Returns:
        tuple: (chosen room or None when the type has no rooms, contention flag)
    """
    if not rooms:
        return None, False

    def overlapping(room: RoomRecord) -> list[ReservationRecord]:
        return [
            r
            for r in holding
            if r.room_id == room.id and overlaps(r.check_in, r.check_out, check_in, check_out)
        ]

    in_service = [room for room in rooms if room.status != ROOM_MAINTENANCE]

    for room in in_service:
        if not overlapping(room):
            return room, False

    for room in in_service:
        if all(r.is_channel_hold for r in overlapping(room)):
            return room, False

    room = (in_service or list(rooms))[0]
    return room, has_internal_overlap(overlapping(room))


def has_internal_overlap(rows: Iterable[ReservationRecord]) -> bool:
    """True when any holding row is an internal reservation rather than a channel hold."""
    return any(r.is_holding and not r.is_channel_hold for r in rows)


def find_conflicts(records: Iterable[ReservationRecord]) -> list[ConflictPair]:
    """
    Every pair of holding reservations sharing a room and a night, except
    channel-hold/channel-hold pairs.

    Args:
        records: Reservations to inspect (any status; non-holding ones are skipped).

    Returns:
        list[ConflictPair]: Conflicts ordered by room number then start date.
    """
    by_room: dict[str, list[ReservationRecord]] = {}
    for r in records:
        if r.status not in HOLDING_STATUSES:
            continue
        by_room.setdefault(r.room_id, []).append(r)

    pairs: list[ConflictPair] = []
    for room_rows in by_room.values():
        room_rows.sort(key=lambda r: (r.check_in, r.id))
        for i, a in enumerate(room_rows):
            for b in room_rows[i + 1 :]:
                if b.check_in >= a.check_out:
                    break
                if a.is_channel_hold and b.is_channel_hold:
                    continue
                kind = (
                    CHANNEL_CONFLICT
                    if (a.is_channel_hold or b.is_channel_hold)
                    else INTERNAL_CONFLICT
                )
                pairs.append(
                    ConflictPair(
                        kind=kind,
                        room_number=a.room_number,
                        first_id=a.id,
                        second_id=b.id,
                        start=max(a.check_in, b.check_in),
                        end=min(a.check_out, b.check_out),
                    )
                )

    pairs.sort(key=lambda p: (p.room_number, p.start))
    return pairs


def find_conflicts_in_store(engine: Engine) -> list[ConflictPair]:
    """Load all holding reservations and report contention / double bookings."""
    with engine.connect() as conn:
        records = list_reservations(conn, statuses=HOLDING_STATUSES)
    pairs = find_conflicts(records)
    if pairs:
        logger.warning("reservation_conflicts_found", count=len(pairs))
    return pairs
