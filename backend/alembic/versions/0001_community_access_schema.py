"""Create compounds, amenities, bookings, and visitor passes.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_BOOKING_STATUS = sa.Enum(
    "PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", name="bookingstatus"
)
_PASS_STATUS = sa.Enum(
    "PENDING", "ACTIVE", "USED", "EXPIRED", "CANCELLED", name="visitorpassstatus"
)
_SECURITY_LEVEL = sa.Enum("BASIC", "STANDARD", "PREMIUM", name="securitylevel")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "compounds",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255)),
        sa.Column("security_level", _SECURITY_LEVEL, nullable=False),
        sa.Column("manager_user_id", sa.Uuid(as_uuid=True)),
        *_timestamps(),
    )
    op.create_table(
        "community_units",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "compound_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("compounds.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("unit_number", sa.String(32), nullable=False),
        sa.Column("building_name", sa.String(120)),
        *_timestamps(),
        sa.UniqueConstraint(
            "compound_id", "unit_number", name="uq_unit_compound_number"
        ),
    )
    op.create_table(
        "amenities",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "compound_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("compounds.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64)),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("advance_booking_days", sa.Integer(), nullable=False),
        sa.Column("max_booking_hours", sa.Integer(), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2)),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("auto_confirm", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="ck_amenity_capacity_positive"),
        sa.CheckConstraint(
            "max_booking_hours > 0", name="ck_amenity_max_hours_positive"
        ),
    )
    op.create_table(
        "amenity_operating_hours",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "amenity_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("amenities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("open_time", sa.Time(), nullable=False),
        sa.Column("close_time", sa.Time(), nullable=False),
        sa.UniqueConstraint("amenity_id", "weekday", name="uq_amenity_hours_weekday"),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_amenity_hours_weekday"),
    )
    op.create_table(
        "amenity_bookings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "amenity_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("amenities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("resident_user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "unit_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("community_units.id", ondelete="SET NULL"),
        ),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("status", _BOOKING_STATUS, nullable=False),
        sa.Column("total_hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.String(1024)),
        sa.Column("approved_by_user_id", sa.Uuid(as_uuid=True)),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_reason", sa.String(512)),
        *_timestamps(),
        sa.CheckConstraint("start_time < end_time", name="ck_booking_interval"),
        sa.CheckConstraint("guest_count >= 1", name="ck_booking_guest_count"),
    )
    op.create_index(
        "ix_amenity_bookings_amenity_date",
        "amenity_bookings",
        ["amenity_id", "booking_date"],
    )

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE amenity_bookings
            ADD CONSTRAINT ex_amenity_bookings_no_overlap
            EXCLUDE USING gist (
                amenity_id WITH =,
                tsrange(booking_date + start_time, booking_date + end_time, '[)') WITH &&
            )
            WHERE (status IN ('PENDING', 'CONFIRMED'))
            """
        )

    op.create_table(
        "visitor_passes",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("resident_user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "unit_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("community_units.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("visitor_name", sa.String(255), nullable=False),
        sa.Column("visitor_phone", sa.String(32), nullable=False),
        sa.Column("visitor_id_number", sa.String(64)),
        sa.Column("visit_purpose", sa.String(255), nullable=False),
        sa.Column("expected_arrival", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_departure", sa.DateTime(timezone=True)),
        sa.Column("qr_payload", sa.Text(), nullable=False),
        sa.Column("status", _PASS_STATUS, nullable=False),
        sa.Column("entry_time", sa.DateTime(timezone=True)),
        sa.Column("checked_in_by_user_id", sa.Uuid(as_uuid=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("expired_at", sa.DateTime(timezone=True)),
        sa.Column("notes", sa.String(1024)),
        *_timestamps(),
    )
    op.create_index("ix_visitor_passes_status", "visitor_passes", ["status"])


def downgrade() -> None:
    op.drop_index("ix_visitor_passes_status", table_name="visitor_passes")
    op.drop_table("visitor_passes")
    op.drop_index("ix_amenity_bookings_amenity_date", table_name="amenity_bookings")
    op.drop_table("amenity_bookings")
    op.drop_table("amenity_operating_hours")
    op.drop_table("amenities")
    op.drop_table("community_units")
    op.drop_table("compounds")
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        _PASS_STATUS.drop(bind, checkfirst=True)
        _BOOKING_STATUS.drop(bind, checkfirst=True)
        _SECURITY_LEVEL.drop(bind, checkfirst=True)
