"""
Channel calendar import.

Each active mapping's feed is fetched, parsed into busy periods and written
as channel-hold reservations keyed by (mapping_id, external_id). A hold that
disappears from the feed is cancelled, one that comes back is reactivated.
Running an import twice against an unchanged feed writes no reservation rows.

Mappings are isolated from each other: a failure is recorded on the mapping
(``sync_status = error``) and the run moves on. Imports of one mapping are
serialized by a mapping lock; different mappings may run in parallel.
"""

from __future__ import annotations

import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from lodge_reservations.db.readers.channels import get_mapping, list_importable_mappings
from lodge_reservations.db.readers.reservations import (
    find_overlapping,
    list_holding_for_room_type,
    list_reservations,
)
from lodge_reservations.db.readers.rooms import list_rooms
from lodge_reservations.db.records import ChannelMappingRecord, ReservationRecord
from lodge_reservations.db.writers.channels import mark_sync_error, mark_sync_success
from lodge_reservations.db.writers.reservations import (
    update_channel_hold,
    update_status,
    upsert_channel_holds,
)
from lodge_reservations.errors import NotFound, SyncMappingError, ValidationError
from lodge_reservations.metrics import channel_hold_upserts, channel_syncs, sync_duration
from lodge_reservations.models.reservations import CANCELLED, CONFIRMED, channel_source
from lodge_reservations.network.client import fetch_calendar
from lodge_reservations.normalizers.ical import BusyPeriod, parse_busy_periods
from lodge_reservations.services.conflicts import choose_room_for_hold, has_internal_overlap
from lodge_reservations.services.locks import mapping_locks, room_locks
from lodge_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

MAX_CONCURRENT_SYNCS = 4
DEFAULT_HOLD_NAME = "External Booking"


@dataclass
class SyncResult:
    mapping_id: str
    channel: str
    status: str = "pending"
    events: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    cancelled: int = 0
    reactivated: int = 0
    contention: int = 0
    last_synced_at: Optional[datetime] = None
    error: Optional[str] = None
    contention_ids: list[str] = field(default_factory=list)

    def snapshot(self) -> dict[str, Any]:
        return {
            "mapping_id": self.mapping_id,
            "channel": self.channel,
            "status": self.status,
            "events": self.events,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "cancelled": self.cancelled,
            "reactivated": self.reactivated,
            "contention": self.contention,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "error": self.error,
        }


def _hold_row(
    mapping: ChannelMappingRecord,
    period: BusyPeriod,
    room_id: str,
    contention: bool,
    existing: Optional[ReservationRecord],
) -> dict[str, Any]:
    return {
        "id": existing.id if existing else str(uuid.uuid4()),
        "room_id": room_id,
        "guest_name": period.summary or DEFAULT_HOLD_NAME,
        "check_in": period.start,
        "check_out": period.end,
        "status": CONFIRMED,
        "source": channel_source(mapping.channel),
        "num_guests": 1,
        "notes": f"Imported from {mapping.channel_name}",
        "mapping_id": mapping.id,
        "external_id": period.external_id,
        "contention": contention,
    }


def _row_changed(existing: ReservationRecord, row: dict[str, Any]) -> bool:
    return (
        existing.room_id != row["room_id"]
        or existing.check_in != row["check_in"]
        or existing.check_out != row["check_out"]
        or existing.guest_name != row["guest_name"]
        or existing.status != row["status"]
        or existing.notes != row["notes"]
        or existing.contention != row["contention"]
    )


def apply_busy_periods(
    conn: Connection,
    mapping: ChannelMappingRecord,
    periods: list[BusyPeriod],
    result: SyncResult,
) -> None:
    """
    Reconcile a mapping's channel holds with a freshly parsed feed.

    Existing holds keep their room when it still belongs to the mapped type,
    so unchanged events produce identical rows. New holds are placed by the
    conflict resolver.

    Args:
        conn (Connection): Transaction to write in.
        mapping (ChannelMappingRecord): Mapping being imported.
        periods (list[BusyPeriod]): Busy periods from the feed.
        result (SyncResult): Counters updated in place.

    Raises:
        SyncMappingError: The mapped room type has no rooms.
    """
    rooms = list_rooms(conn, room_type_id=mapping.room_type_id)
    if not rooms:
        raise SyncMappingError(mapping.id, f"Room type {mapping.room_type_id} has no rooms")
    room_ids = {room.id for room in rooms}

    existing = {r.external_id: r for r in list_reservations(conn, mapping_id=mapping.id)}
    seen: set[str] = set()

    for period in periods:
        seen.add(period.external_id)
        current = existing.get(period.external_id)

        if current is not None and current.room_id in room_ids:
            room_id = current.room_id
            overlapping = find_overlapping(
                conn, room_id, period.start, period.end, exclude_ids=[current.id]
            )
            contention = has_internal_overlap(overlapping)
        else:
            holding = [
                r
                for r in list_holding_for_room_type(conn, mapping.room_type_id, period.start, period.end)
                if current is None or r.id != current.id
            ]
            room, contention = choose_room_for_hold(rooms, holding, period.start, period.end)
            room_id = room.id

        row = _hold_row(mapping, period, room_id, contention, current)

        if current is None:
            action = "created"
        elif current.status == CANCELLED:
            action = "reactivated"
        elif _row_changed(current, row):
            action = "updated"
        else:
            action = "unchanged"

        if action == "created":
            upsert_channel_holds(conn, [row])
        elif action != "unchanged":
            update_channel_hold(conn, current.id, row)

        setattr(result, action, getattr(result, action) + 1)
        channel_hold_upserts.labels(channel=mapping.channel, action=action).inc()

        if contention:
            result.contention += 1
            result.contention_ids.append(row["id"])
            channel_hold_upserts.labels(channel=mapping.channel, action="contention").inc()
            logger.warning(
                "channel_hold_contention",
                mapping_id=mapping.id,
                external_id=period.external_id,
                room_id=room_id,
                check_in=period.start.isoformat(),
                check_out=period.end.isoformat(),
            )

    for external_id, current in existing.items():
        if external_id in seen or current.status == CANCELLED:
            continue
        if update_status(
            conn, current.id, CANCELLED, expected_status=current.status, cancelled_at=utc_now()
        ):
            result.cancelled += 1
            channel_hold_upserts.labels(channel=mapping.channel, action="cancelled").inc()


def _record_error(engine: Engine, mapping: ChannelMappingRecord, message: str) -> None:
    try:
        with engine.begin() as conn:
            mark_sync_error(conn, mapping.id, message)
    except SQLAlchemyError as e:
        logger.error("mapping_status_update_failed", mapping_id=mapping.id, error=str(e))


def import_mapping(
    engine: Engine, mapping: ChannelMappingRecord, dry_run: bool = False
) -> SyncResult:
    """
    Import one mapping's feed.

    Args:
        engine (Engine): SQLAlchemy engine.
        mapping (ChannelMappingRecord): Mapping to import.
        dry_run (bool): Fetch and parse only; write nothing.

    Returns:
        SyncResult: Counters and the new last_synced_at.

    Raises:
        SyncMappingError: Fetch, parse or write failed. The error is already
            recorded on the mapping.
    """
    result = SyncResult(mapping_id=mapping.id, channel=mapping.channel)
    start_time = time.time()

    with mapping_locks.hold(mapping.id):
        logger.info("channel_sync_started", mapping_id=mapping.id, channel=mapping.channel)
        try:
            text = fetch_calendar(mapping.import_url)
            periods = parse_busy_periods(text)
            result.events = len(periods)

            if dry_run:
                result.status = "dry_run"
                logger.info("channel_sync_dry_run", mapping_id=mapping.id, events=len(periods))
                return result

            with engine.connect() as conn:
                room_ids = [room.id for room in list_rooms(conn, room_type_id=mapping.room_type_id)]

            with room_locks.hold_many(room_ids):
                with engine.begin() as conn:
                    apply_busy_periods(conn, mapping, periods, result)
                    previous = get_mapping(conn, mapping.id)
                    if previous is None:
                        raise SyncMappingError(mapping.id, "Mapping was deleted during sync")
                    result.last_synced_at = mark_sync_success(
                        conn,
                        mapping.id,
                        previous.last_synced_at,
                        f"Synced {len(periods)} events",
                    )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            result.status = "error"
            result.error = message
            _record_error(engine, mapping, message)
            channel_syncs.labels(channel=mapping.channel, status="error").inc()
            logger.error(
                "channel_sync_failed",
                mapping_id=mapping.id,
                channel=mapping.channel,
                error=message,
            )
            if isinstance(e, SyncMappingError):
                raise
            raise SyncMappingError(mapping.id, message) from e
        finally:
            sync_duration.labels(channel=mapping.channel).observe(time.time() - start_time)

    result.status = "success"
    channel_syncs.labels(channel=mapping.channel, status="success").inc()
    logger.info("channel_sync_completed", **result.snapshot())
    return result


def sync_mapping(engine: Engine, mapping_id: str, dry_run: bool = False) -> SyncResult:
    """
    Import a single mapping by id.

    Raises:
        NotFound: Unknown mapping.
        ValidationError: Connection inactive or no import URL.
        SyncMappingError: Import failed (recorded on the mapping).
    """
    with engine.connect() as conn:
        mapping = get_mapping(conn, mapping_id)
    if mapping is None:
        raise NotFound(f"Mapping {mapping_id} not found")
    if not mapping.is_active or not mapping.import_url:
        raise ValidationError(f"Mapping {mapping_id} has no active import")
    return import_mapping(engine, mapping, dry_run=dry_run)


def _import_isolated(engine: Engine, mapping: ChannelMappingRecord, dry_run: bool) -> SyncResult:
    try:
        return import_mapping(engine, mapping, dry_run=dry_run)
    except SyncMappingError as e:
        return SyncResult(
            mapping_id=mapping.id, channel=mapping.channel, status="error", error=str(e)
        )


def sync_all_mappings(engine: Engine, dry_run: bool = False) -> dict[str, Any]:
    """
    Import every active mapping with an import URL.

    One mapping failing never stops the others.

    Args:
        engine (Engine): SQLAlchemy engine.
        dry_run (bool): Fetch and parse only; write nothing.

    Returns:
        dict: ``synced`` and ``failed`` counts plus per-mapping ``results``.
    """
    with engine.connect() as conn:
        mappings = list_importable_mappings(conn)

    logger.info("sync_all_mappings_started", count=len(mappings))

    results: list[SyncResult] = []
    if mappings:
        with ThreadPoolExecutor(max_workers=min(MAX_CONCURRENT_SYNCS, len(mappings))) as pool:
            results = list(pool.map(lambda m: _import_isolated(engine, m, dry_run), mappings))

    failed = sum(1 for r in results if r.status == "error")
    summary = {
        "synced": len(results) - failed,
        "failed": failed,
        "results": [r.snapshot() for r in results],
    }
    logger.info("sync_all_mappings_completed", synced=summary["synced"], failed=failed)
    return summary
