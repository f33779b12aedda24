from typing import Optional

from sqlalchemy import Select, select
from sqlalchemy.engine import Connection

from lodge_reservations.db.records import ChannelMappingRecord
from lodge_reservations.models.channels import ChannelConnection, ChannelRoomMapping


def _mapping_query() -> Select:
    return select(
        ChannelRoomMapping.id,
        ChannelRoomMapping.channel_connection_id,
        ChannelConnection.channel,
        ChannelConnection.name.label("channel_name"),
        ChannelConnection.is_active,
        ChannelRoomMapping.room_type_id,
        ChannelRoomMapping.import_url,
        ChannelRoomMapping.export_token,
        ChannelRoomMapping.last_synced_at,
        ChannelRoomMapping.sync_status,
        ChannelRoomMapping.sync_message,
    ).join(ChannelConnection, ChannelConnection.id == ChannelRoomMapping.channel_connection_id)


def get_mapping(conn: Connection, mapping_id: str) -> Optional[ChannelMappingRecord]:
    """
    Fetch a mapping together with its connection's channel and active flag.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        mapping_id (str): Mapping id.

    Returns:
        Optional[ChannelMappingRecord]: The mapping or None.
    """
    row = conn.execute(_mapping_query().where(ChannelRoomMapping.id == mapping_id)).mappings().fetchone()
    return ChannelMappingRecord.from_row(row) if row else None


def get_mapping_by_token(conn: Connection, export_token: str) -> Optional[ChannelMappingRecord]:
    """
    Resolve an export token to its mapping.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        export_token (str): Capability token from the public export URL.

    Returns:
        Optional[ChannelMappingRecord]: The mapping or None if the token is unknown.
    """
    row = (
        conn.execute(_mapping_query().where(ChannelRoomMapping.export_token == export_token))
        .mappings()
        .fetchone()
    )
    return ChannelMappingRecord.from_row(row) if row else None


def list_mappings(
    conn: Connection, channel_connection_id: Optional[str] = None
) -> list[ChannelMappingRecord]:
    stmt = _mapping_query().order_by(ChannelConnection.channel, ChannelRoomMapping.created_at)
    if channel_connection_id is not None:
        stmt = stmt.where(ChannelRoomMapping.channel_connection_id == channel_connection_id)
    return [ChannelMappingRecord.from_row(row) for row in conn.execute(stmt).mappings()]


def list_importable_mappings(conn: Connection) -> list[ChannelMappingRecord]:
    """
    Mappings that an import run should process: connection active and an import URL set.

    Args:
        conn (Connection): An active SQLAlchemy database connection.

    Returns:
        list[ChannelMappingRecord]: Mappings ordered by channel.
    """
    stmt = _mapping_query().where(
        ChannelConnection.is_active == True,  # noqa: E712
        ChannelRoomMapping.import_url.is_not(None),
        ChannelRoomMapping.import_url != "",
    )
    return [
        ChannelMappingRecord.from_row(row)
        for row in conn.execute(stmt.order_by(ChannelConnection.channel, ChannelRoomMapping.id)).mappings()
    ]


def get_connection_by_channel(conn: Connection, channel: str) -> Optional[dict]:
    result = conn.execute(
        select(
            ChannelConnection.id,
            ChannelConnection.channel,
            ChannelConnection.name,
            ChannelConnection.is_active,
            ChannelConnection.settings,
        ).where(ChannelConnection.channel == channel)
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None
