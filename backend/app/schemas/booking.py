"""Pydantic schemas for amenity bookings."""
from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.amenity import BookingStatus
from app.services.availability_engine import BookingRejection, BookingRequest, RejectionCode
from app.schemas.amenity import TimeSlotRead


class BookingCreate(BaseModel):
    """Payload for requesting a booking."""

    booking_date: date
    start_time: time
    end_time: time
    guest_count: int = Field(default=1)
    unit_id: uuid.UUID | None = None
    notes: str | None = Field(default=None, max_length=1024)

    @field_validator("start_time", "end_time")
    @classmethod
    def _local_wall_clock(cls, value: time) -> time:
        if value.tzinfo is not None:
            raise ValueError("Times are local to the compound and must not carry a UTC offset")
        return value

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            booking_date=self.booking_date,
            start_time=self.start_time,
            end_time=self.end_time,
            guest_count=self.guest_count,
        )


class BookingCancelRequest(BaseModel):
    """Optional reason supplied when cancelling."""

    reason: str | None = Field(default=None, max_length=512)


class BookingRead(BaseModel):
    """Serialized booking representation."""

    id: uuid.UUID
    amenity_id: uuid.UUID
    resident_user_id: uuid.UUID
    unit_id: uuid.UUID | None = None
    booking_date: date
    start_time: time
    end_time: time
    guest_count: int
    status: BookingStatus
    total_hours: Decimal
    total_cost: Decimal
    notes: str | None = None
    approved_by_user_id: uuid.UUID | None = None
    approved_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingRejectionRead(BaseModel):
    """Error body returned for a refused booking."""

    code: RejectionCode
    message: str
    conflict: TimeSlotRead | None = None
    conflicting_booking_id: uuid.UUID | None = None

    @classmethod
    def from_rejection(cls, rejection: BookingRejection) -> "BookingRejectionRead":
        conflict = (
            TimeSlotRead(start=rejection.conflict.start, end=rejection.conflict.end)
            if rejection.conflict is not None
            else None
        )
        return cls(
            code=rejection.code,
            message=rejection.message,
            conflict=conflict,
            conflicting_booking_id=rejection.conflicting_booking_id,
        )
