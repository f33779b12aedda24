"""Initial reservation, room and channel schema

Revision ID: 3f2a9c7d1b04
Revises:
Create Date: 2026-10-17 09:12:31.402118

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f2a9c7d1b04"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "room_types",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("room_number", sa.String(), nullable=False, unique=True),
        sa.Column(
            "room_type_id",
            sa.String(36),
            sa.ForeignKey("room_types.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", sa.String(), nullable=False, server_default="available"),
        *_timestamps(),
    )
    op.create_index("ix_rooms_room_type_id", "rooms", ["room_type_id"])

    op.create_table(
        "channel_connections",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("channel", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("settings", JSONType, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "channel_room_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "channel_connection_id",
            sa.String(36),
            sa.ForeignKey("channel_connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "room_type_id",
            sa.String(36),
            sa.ForeignKey("room_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("import_url", sa.String(), nullable=True),
        sa.Column("export_token", sa.String(), nullable=False, unique=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("sync_message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_channel_room_mappings_channel_connection_id",
        "channel_room_mappings",
        ["channel_connection_id"],
    )
    op.create_index("ix_channel_room_mappings_room_type_id", "channel_room_mappings", ["room_type_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "room_id", sa.String(36), sa.ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("guest_name", sa.String(), nullable=False),
        sa.Column("guest_email", sa.String(), nullable=True),
        sa.Column("guest_phone", sa.String(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="reserved"),
        sa.Column("source", sa.String(), nullable=False, server_default="reception"),
        sa.Column("num_guests", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("group_id", sa.String(36), nullable=True),
        sa.Column("group_reference", sa.String(), nullable=True),
        sa.Column("is_primary_booking", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("billing_contact", JSONType, nullable=True),
        sa.Column("additional_charges", JSONType, nullable=True),
        sa.Column("discount", JSONType, nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column(
            "mapping_id",
            sa.String(36),
            sa.ForeignKey("channel_room_mappings.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column("contention", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        *_timestamps(),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("mapping_id", "external_id", name="uq_reservations_mapping_external"),
    )
    for column in ("room_id", "check_in", "check_out", "status", "group_id"):
        op.create_index(f"ix_reservations_{column}", "reservations", [column])


def downgrade() -> None:
    """Downgrade schema."""
    for column in ("room_id", "check_in", "check_out", "status", "group_id"):
        op.drop_index(f"ix_reservations_{column}", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index("ix_channel_room_mappings_room_type_id", table_name="channel_room_mappings")
    op.drop_index(
        "ix_channel_room_mappings_channel_connection_id", table_name="channel_room_mappings"
    )
    op.drop_table("channel_room_mappings")
    op.drop_table("channel_connections")
    op.drop_index("ix_rooms_room_type_id", table_name="rooms")
    op.drop_table("rooms")
    op.drop_table("room_types")
