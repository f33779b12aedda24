"""
Read-time de-duplication of reservation records.

Retried requests and concurrent tabs can store the same real-world booking
twice under different ids. Records with the same logical key are collapsed
into the one with the most advanced lifecycle status; the others are hidden
from listings but stay in storage for audit.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterable

from lodge_reservations.db.records import ReservationRecord
from lodge_reservations.services.lifecycle import precedence
from lodge_reservations.utils.datetime import to_calendar_date

LogicalKey = tuple[str, str, date, date]

_WHITESPACE = re.compile(r"\s+")


def normalize_guest_name(name: str) -> str:
    return _WHITESPACE.sub(" ", (name or "").strip()).casefold()


def normalize_room_number(room_number: str) -> str:
    return (room_number or "").strip().upper()


def logical_key(record: ReservationRecord) -> LogicalKey:
    """(guest name, room number, check-in date, check-out date), normalized."""
    return (
        normalize_guest_name(record.guest_name),
        normalize_room_number(record.room_number),
        to_calendar_date(record.check_in),
        to_calendar_date(record.check_out),
    )


def _group(records: Iterable[ReservationRecord]) -> dict[LogicalKey, list[ReservationRecord]]:
    groups: dict[LogicalKey, list[ReservationRecord]] = {}
    for record in records:
        groups.setdefault(logical_key(record), []).append(record)
    return groups


def resolve(records: Iterable[ReservationRecord]) -> list[ReservationRecord]:
    """
    Collapse duplicates to the records that should be surfaced.

    Records are considered in the order given (callers pass them oldest
    first). An incoming record replaces the surfaced one only when its status
    precedence is strictly higher; ties keep the earlier record.

    Args:
        records: Reservations to de-duplicate.

    Returns:
        list[ReservationRecord]: One record per logical key, in first-seen order.
    """
    surfaced: dict[LogicalKey, ReservationRecord] = {}
    for record in records:
        key = logical_key(record)
        existing = surfaced.get(key)
        if existing is None or precedence(record.status) > precedence(existing.status):
            surfaced[key] = record
    return list(surfaced.values())


def find_duplicates(records: Iterable[ReservationRecord]) -> list[dict]:
    """
    Audit view of suppressed duplicates.

    Returns:
        list[dict]: Per duplicated logical key, the surfaced id and the
        suppressed ids.
    """
    report = []
    for key, group in _group(records).items():
        if len(group) < 2:
            continue
        surfaced = resolve(group)[0]
        report.append(
            {
                "guest_name": key[0],
                "room_number": key[1],
                "check_in": key[2].isoformat(),
                "check_out": key[3].isoformat(),
                "surfaced_id": surfaced.id,
                "suppressed_ids": [r.id for r in group if r.id != surfaced.id],
            }
        )
    return report
