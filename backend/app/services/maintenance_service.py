"""Startup housekeeping for passes and bookings left behind while the API was down."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from app.core.config import get_settings
from app.db.session import get_sessionmaker
from app.services import amenity_booking_service, visitor_pass_service

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SweepSummary:
    activated_passes: int
    expired_passes: int
    completed_bookings: int


async def run_startup_sweeps(now: datetime | None = None) -> SweepSummary:
    """Activate, expire and complete whatever fell due since the last run."""
    moment = now or datetime.now(UTC)
    sessionmaker = get_sessionmaker(get_settings().database_url)
    async with sessionmaker() as session:
        activated = await visitor_pass_service.activate_due_passes(session, now=moment)
        expired = await visitor_pass_service.expire_overdue_passes(session, now=moment)
        completed = await amenity_booking_service.complete_past_bookings(
            session, now=moment
        )
    summary = SweepSummary(
        activated_passes=activated,
        expired_passes=len(expired),
        completed_bookings=completed,
    )
    logger.info(
        "Startup sweeps: %d pass(es) activated, %d expired, %d booking(s) completed",
        summary.activated_passes,
        summary.expired_passes,
        summary.completed_bookings,
    )
    return summary
