"""Tests for the startup housekeeping sweeps."""

from __future__ import annotations

import os
import uuid
from datetime import UTC, date, datetime, time, timedelta

import pytest

from app.db.session import get_sessionmaker
from app.models import VisitorPassStatus
from app.services import amenity_booking_service, visitor_pass_service
from app.services.availability_engine import BookingRejection, BookingRequest
from app.services.maintenance_service import SweepSummary, run_startup_sweeps
from app.services.visitor_pass_lifecycle import VisitorPassData

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 6, 1, 9, 0, tzinfo=UTC)


async def test_startup_sweeps_close_out_stale_records(
    seeded: dict[str, uuid.UUID],
) -> None:
    sessionmaker = get_sessionmaker(os.environ["DATABASE_URL"])
    async with sessionmaker() as session:
        stale_pass = await visitor_pass_service.create_visitor_pass(
            session,
            unit_id=seeded["unit_id"],
            data=VisitorPassData(
                resident_user_id=seeded["resident_id"],
                visitor_name="Karim Said",
                visitor_phone="+201234567890",
                expected_arrival=NOW + timedelta(hours=1),
            ),
            now=NOW,
        )
        booking = await amenity_booking_service.create_booking(
            session,
            amenity_id=seeded["pool_id"],
            resident_user_id=seeded["resident_id"],
            request=BookingRequest(
                booking_date=date(2026, 6, 1),
                start_time=time(10, 0),
                end_time=time(11, 0),
                guest_count=2,
            ),
            today=date(2026, 6, 1),
        )
        assert not isinstance(booking, BookingRejection)

    summary = await run_startup_sweeps(now=NOW + timedelta(days=1))

    assert summary == SweepSummary(
        activated_passes=0, expired_passes=1, completed_bookings=1
    )
    async with sessionmaker() as session:
        stored = await visitor_pass_service.get_visitor_pass(
            session, pass_id=stale_pass.id
        )
    assert stored is not None
    assert stored.status is VisitorPassStatus.EXPIRED
