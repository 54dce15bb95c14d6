"""Amenity availability and booking API."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.config import get_settings
from app.models.amenity import AmenityBooking, BookingStatus
from app.schemas.amenity import AmenityRead, SlotAvailability, TimeSlotRead
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingRead,
    BookingRejectionRead,
)
from app.security.permissions import (
    STAFF_ROLES,
    Actor,
    ActorRole,
    compound_scope,
    require_compound_access,
    require_roles,
)
from app.services import amenity_booking_service, notification_service
from app.services.availability_engine import (
    BookingRejection,
    InvalidBookingTransition,
    RejectionCode,
)

router = APIRouter()

_NOT_A_RESIDENT = "You must be a resident of this compound to book amenities"


def _rejection_status(rejection: BookingRejection) -> int:
    if rejection.code is RejectionCode.SLOT_CONFLICT:
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


async def _load_booking_for(
    session: AsyncSession, *, booking_id: uuid.UUID, actor: Actor
) -> AmenityBooking:
    booking = await amenity_booking_service.get_booking(session, booking_id=booking_id)
    if booking is None:
        raise _not_found("Booking not found")
    if actor.role in STAFF_ROLES:
        require_compound_access(actor, booking.amenity.compound_id)
    elif booking.resident_user_id != actor.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    return booking


def _listing_compound(actor: Actor, requested: uuid.UUID | None) -> uuid.UUID:
    scope = actor.compound_id if actor.role is ActorRole.RESIDENT else compound_scope(actor)
    if scope is not None:
        if requested is not None and requested != scope:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied to this compound",
            )
        return scope
    if requested is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="compound_id is required"
        )
    return requested


@router.get("", response_model=list[AmenityRead], summary="List a compound's amenities")
async def list_amenities(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    compound_id: uuid.UUID | None = None,
    category: str | None = None,
    include_inactive: bool = False,
) -> list[AmenityRead]:
    amenities = await amenity_booking_service.list_amenities(
        session,
        compound_id=_listing_compound(current_actor, compound_id),
        category=category,
        include_inactive=include_inactive and current_actor.role in STAFF_ROLES,
    )
    return [AmenityRead.model_validate(amenity) for amenity in amenities]


@router.get(
    "/bookings",
    response_model=list[BookingRead],
    summary="List bookings across days",
)
async def list_bookings_across_days(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    status_filter: Annotated[BookingStatus | None, Query(alias="status")] = None,
    start_date: date | None = None,
    end_date: date | None = None,
    amenity_id: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1)] = 50,
) -> list[BookingRead]:
    """Residents see their own bookings; managers see their compound's."""
    resident_user_id: uuid.UUID | None = None
    scoped_compound: uuid.UUID | None = None
    if current_actor.role in STAFF_ROLES:
        if current_actor.role is ActorRole.ADMIN:
            scoped_compound = compound_id
        else:
            scoped_compound = _listing_compound(current_actor, compound_id)
    else:
        resident_user_id = current_actor.user_id
    bookings = await amenity_booking_service.list_bookings(
        session,
        resident_user_id=resident_user_id,
        compound_id=scoped_compound,
        amenity_id=amenity_id,
        status=status_filter,
        date_from=start_date,
        date_to=end_date,
        skip=skip,
        limit=min(limit, 100),
    )
    return [BookingRead.model_validate(booking) for booking in bookings]


@router.get("/{amenity_id}", response_model=AmenityRead, summary="Get amenity")
async def get_amenity(
    amenity_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[Actor, Depends(deps.get_current_actor)],
) -> AmenityRead:
    amenity = await amenity_booking_service.get_amenity(session, amenity_id=amenity_id)
    if amenity is None:
        raise _not_found("Amenity not found")
    return AmenityRead.model_validate(amenity)


@router.get(
    "/{amenity_id}/slots",
    response_model=SlotAvailability,
    summary="List free slots for a day",
)
async def list_slots(
    amenity_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    _: Annotated[Actor, Depends(deps.get_current_actor)],
    day: Annotated[date, Query(alias="date")],
    slot_minutes: Annotated[int | None, Query(gt=0, le=24 * 60)] = None,
) -> SlotAvailability:
    minutes = slot_minutes or get_settings().booking_slot_minutes
    try:
        slots = await amenity_booking_service.list_available_slots(
            session, amenity_id=amenity_id, day=day, slot_minutes=minutes
        )
    except amenity_booking_service.AmenityNotFound as exc:
        raise _not_found(str(exc)) from exc
    return SlotAvailability(
        amenity_id=amenity_id,
        booking_date=day,
        slot_minutes=minutes,
        slots=[TimeSlotRead(start=slot.start, end=slot.end) for slot in slots],
    )


@router.get(
    "/{amenity_id}/bookings",
    response_model=list[BookingRead],
    summary="List bookings for a day",
)
async def list_bookings(
    amenity_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    day: Annotated[date, Query(alias="date")],
    include_inactive: bool = False,
) -> list[BookingRead]:
    bookings = await amenity_booking_service.list_bookings_for_day(
        session, amenity_id=amenity_id, day=day, blocking_only=not include_inactive
    )
    if current_actor.role not in STAFF_ROLES:
        bookings = [b for b in bookings if b.resident_user_id == current_actor.user_id]
    return [BookingRead.model_validate(obj) for obj in bookings]


@router.post(
    "/{amenity_id}/bookings",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
    summary="Request a booking",
    responses={
        400: {"model": BookingRejectionRead},
        409: {"model": BookingRejectionRead},
    },
)
async def create_booking(
    amenity_id: uuid.UUID,
    payload: BookingCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
) -> BookingRead:
    require_roles(current_actor, {ActorRole.RESIDENT, *STAFF_ROLES})
    unit_id = payload.unit_id or current_actor.unit_id
    if current_actor.role is ActorRole.RESIDENT:
        if unit_id is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_NOT_A_RESIDENT)
        if unit_id != current_actor.unit_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Residents can only book for their own unit",
            )
    else:
        amenity = await amenity_booking_service.get_amenity(session, amenity_id=amenity_id)
        if amenity is None:
            raise _not_found("Amenity not found")
        require_compound_access(current_actor, amenity.compound_id)
    try:
        outcome = await amenity_booking_service.create_booking(
            session,
            amenity_id=amenity_id,
            resident_user_id=current_actor.user_id,
            unit_id=unit_id,
            request=payload.to_request(),
            notes=payload.notes,
        )
    except amenity_booking_service.AmenityNotFound as exc:
        raise _not_found(str(exc)) from exc
    except amenity_booking_service.UnitNotInCompound as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=_NOT_A_RESIDENT
        ) from exc
    if isinstance(outcome, BookingRejection):
        raise HTTPException(
            status_code=_rejection_status(outcome),
            detail=BookingRejectionRead.from_rejection(outcome).model_dump(mode="json"),
        )
    if outcome.status is BookingStatus.CONFIRMED:
        notification_service.notify_booking_confirmed(
            outcome, background_tasks, email=current_actor.email
        )
    return BookingRead.model_validate(outcome)


@router.post(
    "/bookings/{booking_id}/confirm",
    response_model=BookingRead,
    summary="Approve a pending booking",
)
async def confirm_booking(
    booking_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
) -> BookingRead:
    require_roles(current_actor, STAFF_ROLES)
    await _load_booking_for(session, booking_id=booking_id, actor=current_actor)
    try:
        booking = await amenity_booking_service.confirm_booking(
            session, booking_id=booking_id, approver_id=current_actor.user_id
        )
    except amenity_booking_service.BookingNotFound as exc:
        raise _not_found(str(exc)) from exc
    except InvalidBookingTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    notification_service.notify_booking_confirmed(booking, background_tasks)
    return BookingRead.model_validate(booking)


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingRead,
    summary="Cancel a booking",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_actor: Annotated[Actor, Depends(deps.get_current_actor)],
    background_tasks: BackgroundTasks,
    payload: BookingCancelRequest | None = None,
) -> BookingRead:
    await _load_booking_for(session, booking_id=booking_id, actor=current_actor)
    try:
        booking = await amenity_booking_service.cancel_booking(
            session,
            booking_id=booking_id,
            reason=payload.reason if payload else None,
        )
    except InvalidBookingTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    notification_service.notify_booking_cancelled(booking, background_tasks)
    return BookingRead.model_validate(booking)
