"""Community amenities, weekly hours, and reservations."""
from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.compound import Compound, CommunityUnit
from app.models.mixins import TimestampMixin


class BookingStatus(str, enum.Enum):
    """Lifecycle states for amenity bookings."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Amenity(TimestampMixin, Base):
    """A bookable shared facility (pool, court, hall)."""

    __tablename__ = "amenities"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_amenity_capacity_positive"),
        CheckConstraint("max_booking_hours > 0", name="ck_amenity_max_hours_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    compound_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("compounds.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    advance_booking_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30
    )
    max_booking_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    price_per_hour: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_confirm: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    compound: Mapped[Compound] = relationship(back_populates="amenities")
    hours: Mapped[list["AmenityOperatingHours"]] = relationship(
        back_populates="amenity",
        cascade="all, delete-orphan",
        order_by="AmenityOperatingHours.weekday",
    )
    bookings: Mapped[list["AmenityBooking"]] = relationship(
        back_populates="amenity", cascade="all, delete-orphan"
    )


class AmenityOperatingHours(Base):
    """Opening window for one weekday (0=Monday). Missing weekdays are closed."""

    __tablename__ = "amenity_operating_hours"
    __table_args__ = (
        UniqueConstraint("amenity_id", "weekday", name="uq_amenity_hours_weekday"),
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_amenity_hours_weekday"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    amenity_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("amenities.id", ondelete="CASCADE"), nullable=False
    )
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[time] = mapped_column(Time(), nullable=False)
    close_time: Mapped[time] = mapped_column(Time(), nullable=False)

    amenity: Mapped[Amenity] = relationship(back_populates="hours")


class AmenityBooking(TimestampMixin, Base):
    """A resident's reservation of an amenity for part of a day."""

    __tablename__ = "amenity_bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_booking_interval"),
        CheckConstraint("guest_count >= 1", name="ck_booking_guest_count"),
        Index("ix_amenity_bookings_amenity_date", "amenity_id", "booking_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    amenity_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("amenities.id", ondelete="CASCADE"), nullable=False
    )
    resident_user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    unit_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("community_units.id", ondelete="SET NULL")
    )
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time(), nullable=False)
    end_time: Mapped[time] = mapped_column(Time(), nullable=False)
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    total_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    notes: Mapped[str | None] = mapped_column(String(1024))
    approved_by_user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(String(512))

    amenity: Mapped[Amenity] = relationship(back_populates="bookings")
    unit: Mapped[CommunityUnit | None] = relationship()
