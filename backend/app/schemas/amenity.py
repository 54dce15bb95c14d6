"""Pydantic schemas for amenities and their free slots."""
from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class OperatingHoursRead(BaseModel):
    """Opening window for one weekday."""

    weekday: int = Field(ge=0, le=6)
    open_time: time
    close_time: time

    model_config = ConfigDict(from_attributes=True)


class AmenityRead(BaseModel):
    """Serialized amenity with its booking rules."""

    id: uuid.UUID
    compound_id: uuid.UUID
    name: str
    category: str | None = None
    capacity: int
    advance_booking_days: int
    max_booking_hours: int
    price_per_hour: Decimal | None = None
    is_active: bool
    auto_confirm: bool
    hours: list[OperatingHoursRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class TimeSlotRead(BaseModel):
    """A free slot."""

    start: time
    end: time

    model_config = ConfigDict(from_attributes=True)


class SlotAvailability(BaseModel):
    """Free slots for one amenity and day."""

    amenity_id: uuid.UUID
    booking_date: date
    slot_minutes: int
    slots: list[TimeSlotRead]
