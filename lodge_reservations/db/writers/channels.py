from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from lodge_reservations.models.channels import (
    SYNC_ERROR,
    SYNC_PENDING,
    SYNC_SUCCESS,
    ChannelConnection,
    ChannelRoomMapping,
)
from lodge_reservations.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)


def insert_connection(conn: Connection, data: dict[str, Any]) -> None:
    """
    Insert a channel connection.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        data (dict): id, channel, name, is_active and optional settings.
    """
    now = utc_now()
    conn.execute(insert(ChannelConnection).values(created_at=now, updated_at=now, **data))


def set_connection_active(conn: Connection, connection_id: str, is_active: bool) -> None:
    conn.execute(
        update(ChannelConnection)
        .where(ChannelConnection.id == connection_id)
        .values(is_active=is_active, updated_at=utc_now())
    )


def insert_mapping(conn: Connection, data: dict[str, Any]) -> None:
    """
    Insert a channel room mapping in ``pending`` sync status.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        data (dict): id, channel_connection_id, room_type_id, import_url, export_token.
    """
    now = utc_now()
    conn.execute(
        insert(ChannelRoomMapping).values(
            sync_status=SYNC_PENDING, created_at=now, updated_at=now, **data
        )
    )


def delete_mapping(conn: Connection, mapping_id: str) -> int:
    """
    Permanently delete a mapping; its export token stops resolving immediately.

    Returns:
        int: Number of deleted rows (0 or 1).
    """
    result = conn.execute(delete(ChannelRoomMapping).where(ChannelRoomMapping.id == mapping_id))
    return result.rowcount


def _next_sync_timestamp(previous: Optional[datetime]) -> datetime:
    now = utc_now()
    if previous is not None and ensure_utc(previous) > now:
        # Clock went backwards; keep last_synced_at monotonic
        return ensure_utc(previous)
    return now


def mark_sync_success(
    conn: Connection, mapping_id: str, previous: Optional[datetime], message: str
) -> datetime:
    """
    Record a successful import on the mapping.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        mapping_id (str): Mapping id.
        previous (Optional[datetime]): Current last_synced_at value.
        message (str): Human-readable summary shown in the channel screen.

    Returns:
        datetime: The new last_synced_at.
    """
    synced_at = _next_sync_timestamp(previous)
    conn.execute(
        update(ChannelRoomMapping)
        .where(ChannelRoomMapping.id == mapping_id)
        .values(
            sync_status=SYNC_SUCCESS,
            sync_message=message,
            last_synced_at=synced_at,
            updated_at=utc_now(),
        )
    )
    return synced_at


def mark_sync_error(conn: Connection, mapping_id: str, message: str) -> None:
    """
    Record a failed import. ``last_synced_at`` keeps pointing at the last success.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        mapping_id (str): Mapping id.
        message (str): Error text.
    """
    conn.execute(
        update(ChannelRoomMapping)
        .where(ChannelRoomMapping.id == mapping_id)
        .values(sync_status=SYNC_ERROR, sync_message=message[:2000], updated_at=utc_now())
    )
    logger.info("mapping_sync_error_recorded", mapping_id=mapping_id)
