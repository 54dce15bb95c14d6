"""Residential compounds and their units."""
from __future__ import annotations

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from app.models.amenity import Amenity


class SecurityLevel(str, enum.Enum):
    """Gate policy tier for a compound."""

    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


class Compound(TimestampMixin, Base):
    """A gated residential compound."""

    __tablename__ = "compounds"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255))
    security_level: Mapped[SecurityLevel] = mapped_column(
        Enum(SecurityLevel), default=SecurityLevel.STANDARD, nullable=False
    )
    manager_user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    units: Mapped[list["CommunityUnit"]] = relationship(
        back_populates="compound", cascade="all, delete-orphan"
    )
    amenities: Mapped[list["Amenity"]] = relationship(
        "Amenity", back_populates="compound", cascade="all, delete-orphan"
    )


class CommunityUnit(TimestampMixin, Base):
    """A residential unit inside a compound."""

    __tablename__ = "community_units"
    __table_args__ = (
        UniqueConstraint("compound_id", "unit_number", name="uq_unit_compound_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    compound_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("compounds.id", ondelete="CASCADE"), nullable=False
    )
    unit_number: Mapped[str] = mapped_column(String(32), nullable=False)
    building_name: Mapped[str | None] = mapped_column(String(120))

    compound: Mapped[Compound] = relationship(back_populates="units")
