"""Pydantic schemas for visitor passes and gate scans."""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.visitor_pass import VisitorPassStatus
from app.services.visitor_pass_lifecycle import MAX_QR_PAYLOAD_LENGTH, CheckInSuccess


class VisitorPassCreate(BaseModel):
    """Payload for issuing a pass."""

    unit_id: uuid.UUID | None = None
    visitor_name: str = Field(min_length=1, max_length=255)
    visitor_phone: str = Field(min_length=3, max_length=32)
    visitor_id_number: str | None = Field(default=None, max_length=64)
    visit_purpose: str = Field(default="Personal visit", max_length=255)
    expected_arrival: datetime
    expected_departure: datetime | None = None
    notes: str | None = Field(default=None, max_length=1024)


class VisitorPassRead(BaseModel):
    """Serialized pass representation."""

    id: uuid.UUID
    resident_user_id: uuid.UUID
    unit_id: uuid.UUID
    visitor_name: str
    visitor_phone: str
    visitor_id_number: str | None = None
    visit_purpose: str
    expected_arrival: datetime
    expected_departure: datetime | None = None
    qr_payload: str
    status: VisitorPassStatus
    entry_time: datetime | None = None
    cancelled_at: datetime | None = None
    expired_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CheckInRequest(BaseModel):
    """Raw string read from the pass QR code."""

    payload: str = Field(max_length=MAX_QR_PAYLOAD_LENGTH)


class CheckInRead(BaseModel):
    """Accepted scan as shown on the guard screen."""

    pass_id: uuid.UUID
    visitor_name: str
    unit_number: str
    compound_name: str
    entry_time: datetime
    status: VisitorPassStatus = VisitorPassStatus.USED

    @classmethod
    def from_outcome(cls, outcome: CheckInSuccess) -> "CheckInRead":
        return cls(
            pass_id=outcome.pass_id,
            visitor_name=outcome.visitor_name,
            unit_number=outcome.unit_number,
            compound_name=outcome.compound_name,
            entry_time=outcome.entry_time,
        )


class PassErrorRead(BaseModel):
    """Error body for refused scans and transitions."""

    code: str
    message: str
    pass_id: uuid.UUID | None = None


class ExpireSweepRead(BaseModel):
    """Result of an expiry sweep."""

    expired: int
    pass_ids: list[uuid.UUID]
