import json
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from lodge_reservations.config import DEBUG
from lodge_reservations.db.writers._upsert import upsert_with_distinct_check
from lodge_reservations.models.reservations import Reservation
from lodge_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# Columns a channel re-import may change on an existing hold
HOLD_DISTINCT_COLUMNS = [
    "room_id",
    "check_in",
    "check_out",
    "guest_name",
    "status",
    "notes",
    "contention",
]
HOLD_UPDATE_COLUMNS = [*HOLD_DISTINCT_COLUMNS, "cancelled_at", "updated_at"]


def insert_reservation(conn: Connection, row: dict[str, Any]) -> None:
    """
    Insert a single reservation row.

    Args:
        conn (Connection): SQLAlchemy DB connection (inside a transaction).
        row (dict): Column values; ``id``, ``room_id``, dates and guest are required.
    """
    now = utc_now()
    values = {"created_at": now, "updated_at": now, **row}

    if DEBUG:
        logger.debug("Reservation to insert:\n%s", json.dumps(values, default=str, indent=2))

    conn.execute(insert(Reservation).values(**values))


def update_status(
    conn: Connection,
    reservation_id: str,
    status: str,
    expected_status: Optional[str] = None,
    **timestamps: datetime,
) -> bool:
    """
    Move a reservation to a new status.

    When ``expected_status`` is given the update is a compare-and-set: it only
    applies if the row still has that status, so two racing transitions cannot
    both win.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation id.
        status (str): New status.
        expected_status (Optional[str]): Status the row must currently have.
        **timestamps: Extra timestamp columns (checked_in_at, checked_out_at, cancelled_at).

    Returns:
        bool: True if a row was updated.
    """
    stmt = update(Reservation).where(Reservation.id == reservation_id)
    if expected_status is not None:
        stmt = stmt.where(Reservation.status == expected_status)

    result = conn.execute(stmt.values(status=status, updated_at=utc_now(), **timestamps))
    return result.rowcount == 1


def update_group_fields(conn: Connection, reservation_id: str, data: dict[str, Any]) -> None:
    """
    Update group membership / billing columns of one reservation.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (str): Reservation id.
        data (dict): Any of group_id, group_reference, is_primary_booking,
            billing_contact, additional_charges, discount.
    """
    data = {**data, "updated_at": utc_now()}
    conn.execute(update(Reservation).where(Reservation.id == reservation_id).values(**data))


def upsert_channel_holds(conn: Connection, rows: list[dict[str, Any]]) -> None:
    """
    Insert or update channel-hold rows keyed by (mapping_id, external_id).

    Rows whose tracked columns are unchanged are left untouched, so
    ``updated_at`` only moves when the channel actually changed something.

    Args:
        conn (Connection): SQLAlchemy DB connection (inside a transaction).
        rows (list[dict]): Complete hold rows.
    """
    if not rows:
        return

    now = utc_now()
    prepared = [{"created_at": now, "updated_at": now, "cancelled_at": None, **r} for r in rows]

    upsert_with_distinct_check(
        conn=conn,
        table=Reservation,
        rows=prepared,
        conflict_columns=["mapping_id", "external_id"],
        distinct_columns=HOLD_DISTINCT_COLUMNS,
        update_columns=HOLD_UPDATE_COLUMNS,
    )

    logger.info("channel_holds_upserted", count=len(prepared))


def update_channel_hold(conn: Connection, reservation_id: str, row: dict[str, Any]) -> None:
    """
    Overwrite the channel-controlled columns of an existing hold.

    Used for holds whose dates or room changed, and for holds that reappear in
    the feed after being cancelled.

    Args:
        conn (Connection): SQLAlchemy DB connection (inside a transaction).
        reservation_id (str): Id of the existing hold.
        row (dict): Complete hold row as built by the importer.
    """
    values = {col: row[col] for col in HOLD_DISTINCT_COLUMNS}
    conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .values(cancelled_at=None, updated_at=utc_now(), **values)
    )
