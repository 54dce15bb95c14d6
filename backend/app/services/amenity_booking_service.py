"""Amenity booking persistence around the availability engine."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, date, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.models.amenity import Amenity, AmenityBooking, BookingStatus
from app.models.compound import CommunityUnit
from app.services.availability_engine import (
    BLOCKING_STATUSES,
    BookingRejection,
    BookingRequest,
    InvalidBookingTransition,
    RejectionCode,
    TimeSlot,
    compute_available_slots,
    find_conflict,
    is_past,
    transition_booking,
    validate_booking_request,
)

logger = logging.getLogger(__name__)


class AmenityNotFound(LookupError):
    """Raised when an amenity id does not resolve."""


class BookingNotFound(LookupError):
    """Raised when a booking id does not resolve."""


class UnitNotInCompound(LookupError):
    """Raised when a booking names a unit outside the amenity's compound."""


def _today() -> date:
    return datetime.now(UTC).date()


async def get_amenity(
    session: AsyncSession,
    *,
    amenity_id: uuid.UUID,
    for_update: bool = False,
) -> Amenity | None:
    stmt = (
        select(Amenity)
        .options(selectinload(Amenity.hours), selectinload(Amenity.compound))
        .where(Amenity.id == amenity_id)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _require_amenity(
    session: AsyncSession, *, amenity_id: uuid.UUID, for_update: bool = False
) -> Amenity:
    amenity = await get_amenity(session, amenity_id=amenity_id, for_update=for_update)
    if amenity is None:
        raise AmenityNotFound("Amenity not found")
    return amenity


async def list_amenities(
    session: AsyncSession,
    *,
    compound_id: uuid.UUID,
    category: str | None = None,
    include_inactive: bool = False,
) -> Sequence[Amenity]:
    """Return a compound's amenities ordered by name."""
    stmt = (
        select(Amenity)
        .options(selectinload(Amenity.hours))
        .where(Amenity.compound_id == compound_id)
    )
    if category is not None:
        stmt = stmt.where(Amenity.category == category)
    if not include_inactive:
        stmt = stmt.where(Amenity.is_active.is_(True))
    result = await session.execute(stmt.order_by(Amenity.name))
    return result.scalars().all()


async def list_bookings_for_day(
    session: AsyncSession,
    *,
    amenity_id: uuid.UUID,
    day: date,
    blocking_only: bool = True,
) -> list[AmenityBooking]:
    """Return bookings for an amenity on ``day`` ordered by start time."""
    stmt = select(AmenityBooking).where(
        AmenityBooking.amenity_id == amenity_id,
        AmenityBooking.booking_date == day,
    )
    if blocking_only:
        stmt = stmt.where(AmenityBooking.status.in_(BLOCKING_STATUSES))
    result = await session.execute(
        stmt.order_by(AmenityBooking.start_time, AmenityBooking.end_time)
    )
    return list(result.scalars().all())


async def list_available_slots(
    session: AsyncSession,
    *,
    amenity_id: uuid.UUID,
    day: date,
    slot_minutes: int | None = None,
) -> list[TimeSlot]:
    amenity = await _require_amenity(session, amenity_id=amenity_id)
    bookings = await list_bookings_for_day(session, amenity_id=amenity_id, day=day)
    minutes = slot_minutes or get_settings().booking_slot_minutes
    return list(compute_available_slots(amenity, bookings, day, slot_minutes=minutes))


async def get_booking(
    session: AsyncSession, *, booking_id: uuid.UUID
) -> AmenityBooking | None:
    result = await session.execute(
        select(AmenityBooking)
        .options(selectinload(AmenityBooking.amenity))
        .where(AmenityBooking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _require_booking(
    session: AsyncSession, *, booking_id: uuid.UUID
) -> AmenityBooking:
    booking = await get_booking(session, booking_id=booking_id)
    if booking is None:
        raise BookingNotFound("Booking not found")
    return booking


async def list_bookings(
    session: AsyncSession,
    *,
    resident_user_id: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
    amenity_id: uuid.UUID | None = None,
    status: BookingStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Sequence[AmenityBooking]:
    """Return bookings across days ordered by date and start time."""
    stmt = select(AmenityBooking).options(selectinload(AmenityBooking.amenity))
    if resident_user_id is not None:
        stmt = stmt.where(AmenityBooking.resident_user_id == resident_user_id)
    if compound_id is not None:
        stmt = stmt.join(AmenityBooking.amenity).where(Amenity.compound_id == compound_id)
    if amenity_id is not None:
        stmt = stmt.where(AmenityBooking.amenity_id == amenity_id)
    if status is not None:
        stmt = stmt.where(AmenityBooking.status == status)
    if date_from is not None:
        stmt = stmt.where(AmenityBooking.booking_date >= date_from)
    if date_to is not None:
        stmt = stmt.where(AmenityBooking.booking_date <= date_to)
    stmt = stmt.order_by(
        AmenityBooking.booking_date, AmenityBooking.start_time, AmenityBooking.id
    )
    result = await session.execute(stmt.offset(skip).limit(limit))
    return result.scalars().all()
    return result.scalar_one_or_none()


async def create_booking(
    session: AsyncSession,
    *,
    amenity_id: uuid.UUID,
    resident_user_id: uuid.UUID,
    request: BookingRequest,
    unit_id: uuid.UUID | None = None,
    notes: str | None = None,
    today: date | None = None,
) -> AmenityBooking | BookingRejection:
    """Validate against the stored schedule and persist in one transaction.

    The amenity row is locked so concurrent writers for the same amenity
    serialize; the database exclusion constraint catches anything else.
    """
    amenity = await _require_amenity(session, amenity_id=amenity_id, for_update=True)
    if unit_id is not None:
        unit = await session.get(CommunityUnit, unit_id)
        if unit is None or unit.compound_id != amenity.compound_id:
            await session.rollback()
            raise UnitNotInCompound("Unit does not belong to this amenity's compound")
    existing = await list_bookings_for_day(
        session, amenity_id=amenity_id, day=request.booking_date
    )
    decision = validate_booking_request(
        amenity, existing, request, today=today or _today()
    )
    if isinstance(decision, BookingRejection):
        await session.rollback()
        logger.info(
            "Booking rejected for amenity %s on %s: %s",
            amenity_id,
            request.booking_date,
            decision.code.value,
        )
        return decision

    draft = decision.booking
    booking = AmenityBooking(
        amenity_id=draft.amenity_id,
        resident_user_id=resident_user_id,
        unit_id=unit_id,
        booking_date=draft.booking_date,
        start_time=draft.start_time,
        end_time=draft.end_time,
        guest_count=draft.guest_count,
        status=draft.status,
        total_hours=draft.total_hours,
        total_cost=draft.total_cost,
        notes=notes,
    )
    session.add(booking)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning(
            "Booking for amenity %s on %s lost a commit race",
            amenity_id,
            request.booking_date,
        )
        return await _conflict_after_race(session, amenity_id=amenity_id, request=request)

    logger.info(
        "Booking %s created for amenity %s (%s)", booking.id, amenity_id, booking.status.value
    )
    return await _require_booking(session, booking_id=booking.id)


async def _conflict_after_race(
    session: AsyncSession, *, amenity_id: uuid.UUID, request: BookingRequest
) -> BookingRejection:
    current = await list_bookings_for_day(
        session, amenity_id=amenity_id, day=request.booking_date
    )
    conflict = find_conflict(
        current, request.booking_date, request.start_time, request.end_time
    )
    if conflict is None:
        return BookingRejection(
            RejectionCode.SLOT_CONFLICT,
            "Requested time was booked by someone else; please choose another slot",
        )
    window = TimeSlot(start=conflict.start_time, end=conflict.end_time)
    return BookingRejection(
        RejectionCode.SLOT_CONFLICT,
        f"Requested time overlaps an existing booking from "
        f"{window.start:%H:%M} to {window.end:%H:%M}",
        conflict=window,
        conflicting_booking_id=conflict.id,
    )


async def _set_booking_status(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    target: BookingStatus,
    **values: object,
) -> AmenityBooking:
    booking = await _require_booking(session, booking_id=booking_id)
    current = booking.status
    transition_booking(current, target)
    result = await session.execute(
        update(AmenityBooking)
        .where(AmenityBooking.id == booking_id, AmenityBooking.status == current)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise InvalidBookingTransition("Booking was modified by another request")
    await session.commit()
    stored = await _require_booking(session, booking_id=booking_id)
    logger.info("Booking %s moved %s -> %s", booking_id, current.value, target.value)
    return stored


async def confirm_booking(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    approver_id: uuid.UUID,
    now: datetime | None = None,
) -> AmenityBooking:
    """Approve a pending booking."""
    return await _set_booking_status(
        session,
        booking_id=booking_id,
        target=BookingStatus.CONFIRMED,
        approved_by_user_id=approver_id,
        approved_at=now or datetime.now(UTC),
    )


async def cancel_booking(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> AmenityBooking:
    """Cancel a booking; frees its time immediately."""
    return await _set_booking_status(
        session,
        booking_id=booking_id,
        target=BookingStatus.CANCELLED,
        cancelled_at=now or datetime.now(UTC),
        cancellation_reason=reason,
    )


async def complete_past_bookings(
    session: AsyncSession, *, now: datetime, amenity_id: uuid.UUID | None = None
) -> int:
    """Mark blocking bookings whose end time has passed as completed."""
    stmt = select(AmenityBooking).where(
        AmenityBooking.status.in_(BLOCKING_STATUSES),
        AmenityBooking.booking_date <= now.date(),
    )
    if amenity_id is not None:
        stmt = stmt.where(AmenityBooking.amenity_id == amenity_id)
    bookings: Sequence[AmenityBooking] = (await session.execute(stmt)).scalars().all()
    completed = 0
    for booking in bookings:
        if not is_past(booking, now):
            continue
        result = await session.execute(
            update(AmenityBooking)
            .where(
                AmenityBooking.id == booking.id,
                AmenityBooking.status.in_(BLOCKING_STATUSES),
            )
            .values(status=BookingStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )
        completed += result.rowcount
    await session.commit()
    if completed:
        logger.info("Marked %d booking(s) completed", completed)
    return completed


__all__ = [
    "AmenityNotFound",
    "BookingNotFound",
    "UnitNotInCompound",
    "cancel_booking",
    "complete_past_bookings",
    "confirm_booking",
    "create_booking",
    "get_amenity",
    "get_booking",
    "list_amenities",
    "list_available_slots",
    "list_bookings",
    "list_bookings_for_day",
]
