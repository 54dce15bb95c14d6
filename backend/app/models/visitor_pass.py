"""Visitor access passes."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.compound import CommunityUnit
from app.models.mixins import TimestampMixin


class VisitorPassStatus(str, enum.Enum):
    """Lifecycle states for visitor passes."""

    PENDING = "pending"
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class VisitorPass(TimestampMixin, Base):
    """Gate credential issued by a resident for an expected visitor."""

    __tablename__ = "visitor_passes"
    __table_args__ = (Index("ix_visitor_passes_status", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    resident_user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    unit_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("community_units.id", ondelete="CASCADE"), nullable=False
    )
    visitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    visitor_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    visitor_id_number: Mapped[str | None] = mapped_column(String(64))
    visit_purpose: Mapped[str] = mapped_column(
        String(255), nullable=False, default="Personal visit"
    )
    expected_arrival: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    expected_departure: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    qr_payload: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[VisitorPassStatus] = mapped_column(
        Enum(VisitorPassStatus), default=VisitorPassStatus.PENDING, nullable=False
    )
    entry_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_in_by_user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(String(1024))

    unit: Mapped[CommunityUnit] = relationship()
