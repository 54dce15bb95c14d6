"""Amenity slot availability and booking validation.

Everything in this module is pure: callers fetch the amenity and its
bookings for a day, pass them in, and persist whatever comes back. The same
``validate_booking_request`` call is repeated inside the commit transaction
by ``amenity_booking_service`` so that the in-memory check and the stored
state cannot drift apart.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from app.models.amenity import Amenity, AmenityBooking, BookingStatus

BLOCKING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)

_ALLOWED_BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
    },
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

_CENTS = Decimal("0.01")


class RejectionCode(str, enum.Enum):
    """Reasons a booking request can be turned down."""

    DATE_OUT_OF_WINDOW = "date_out_of_window"
    INVALID_DURATION = "invalid_duration"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    AMENITY_INACTIVE = "amenity_inactive"
    SLOT_CONFLICT = "slot_conflict"
    OUTSIDE_OPERATING_HOURS = "outside_operating_hours"


class InvalidBookingTransition(ValueError):
    """Raised when a booking status change is not on the lifecycle graph."""


@dataclass(slots=True, frozen=True)
class TimeSlot:
    """Half-open ``[start, end)`` window within a single day."""

    start: time
    end: time

    def label(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


@dataclass(slots=True, frozen=True)
class BookingRequest:
    """Proposed reservation before validation."""

    booking_date: date
    start_time: time
    end_time: time
    guest_count: int


@dataclass(slots=True, frozen=True)
class BookingDraft:
    """Normalized booking ready to be written to storage."""

    amenity_id: uuid.UUID
    booking_date: date
    start_time: time
    end_time: time
    guest_count: int
    status: BookingStatus
    total_hours: Decimal
    total_cost: Decimal


@dataclass(slots=True, frozen=True)
class Accepted:
    """Successful validation outcome."""

    booking: BookingDraft


@dataclass(slots=True, frozen=True)
class BookingRejection:
    """Failed validation outcome with a user-facing message."""

    code: RejectionCode
    message: str
    conflict: TimeSlot | None = None
    conflicting_booking_id: uuid.UUID | None = None


BookingDecision = Accepted | BookingRejection


def operating_window(amenity: Amenity, day: date) -> TimeSlot | None:
    """Return the opening window for ``day`` or ``None`` when closed."""
    weekday = day.weekday()
    for entry in amenity.hours:
        if entry.weekday == weekday and entry.open_time < entry.close_time:
            return TimeSlot(start=entry.open_time, end=entry.close_time)
    return None


def is_blocking(booking: AmenityBooking) -> bool:
    return booking.status in BLOCKING_STATUSES


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open interval intersection test."""
    return start_a < end_b and start_b < end_a


def find_conflict(
    existing_bookings: Iterable[AmenityBooking],
    day: date,
    start: time,
    end: time,
) -> AmenityBooking | None:
    """Return the earliest blocking booking on ``day`` that intersects the window."""
    conflicts = [
        booking
        for booking in existing_bookings
        if is_blocking(booking)
        and booking.booking_date == day
        and intervals_overlap(start, end, booking.start_time, booking.end_time)
    ]
    if not conflicts:
        return None
    return min(conflicts, key=lambda booking: (booking.start_time, booking.end_time))


class SlotSequence:
    """Lazy, restartable iterable of free slots for one amenity and day."""

    def __init__(
        self,
        amenity: Amenity,
        existing_bookings: Iterable[AmenityBooking],
        day: date,
        *,
        slot_minutes: int = 60,
    ) -> None:
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        self._amenity = amenity
        self._busy = [
            (booking.start_time, booking.end_time)
            for booking in existing_bookings
            if is_blocking(booking) and booking.booking_date == day
        ]
        self._day = day
        self._step = timedelta(minutes=slot_minutes)

    def __iter__(self) -> Iterator[TimeSlot]:
        if not self._amenity.is_active:
            return
        window = operating_window(self._amenity, self._day)
        if window is None:
            return
        cursor = datetime.combine(self._day, window.start)
        closing = datetime.combine(self._day, window.end)
        while cursor + self._step <= closing:
            slot_end = cursor + self._step
            start, end = cursor.time(), slot_end.time()
            if not any(
                intervals_overlap(start, end, busy_start, busy_end)
                for busy_start, busy_end in self._busy
            ):
                yield TimeSlot(start=start, end=end)
            cursor = slot_end


def compute_available_slots(
    amenity: Amenity,
    existing_bookings: Iterable[AmenityBooking],
    day: date,
    *,
    slot_minutes: int = 60,
) -> SlotSequence:
    """Free fixed-width slots between opening and closing, earliest first."""
    return SlotSequence(amenity, existing_bookings, day, slot_minutes=slot_minutes)


def booking_duration(start: time, end: time) -> timedelta:
    return datetime.combine(date.min, end) - datetime.combine(date.min, start)


def _price_booking(amenity: Amenity, duration: timedelta) -> tuple[Decimal, Decimal]:
    hours = (Decimal(int(duration.total_seconds())) / Decimal(3600)).quantize(
        _CENTS, rounding=ROUND_HALF_UP
    )
    rate = amenity.price_per_hour or Decimal("0")
    cost = (hours * rate).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return hours, cost


def validate_booking_request(
    amenity: Amenity,
    existing_bookings: Iterable[AmenityBooking],
    request: BookingRequest,
    *,
    today: date,
) -> BookingDecision:
    """Check a proposed booking; the first failing rule decides the outcome."""
    last_bookable_day = today + timedelta(days=amenity.advance_booking_days)
    if not today <= request.booking_date <= last_bookable_day:
        return BookingRejection(
            RejectionCode.DATE_OUT_OF_WINDOW,
            f"Bookings must be between {today.isoformat()} and "
            f"{last_bookable_day.isoformat()}",
        )

    if request.start_time.tzinfo is not None or request.end_time.tzinfo is not None:
        return BookingRejection(
            RejectionCode.INVALID_DURATION,
            "Start and end times must be local times without a UTC offset",
        )

    duration = booking_duration(request.start_time, request.end_time)
    if duration <= timedelta(0):
        return BookingRejection(
            RejectionCode.INVALID_DURATION, "End time must be after start time"
        )
    if duration > timedelta(hours=amenity.max_booking_hours):
        return BookingRejection(
            RejectionCode.INVALID_DURATION,
            f"Maximum booking duration is {amenity.max_booking_hours} hours",
        )

    if not 1 <= request.guest_count <= amenity.capacity:
        return BookingRejection(
            RejectionCode.CAPACITY_EXCEEDED,
            f"Guest count must be between 1 and {amenity.capacity}",
        )

    if not amenity.is_active:
        return BookingRejection(
            RejectionCode.AMENITY_INACTIVE, "Amenity is not available for booking"
        )

    conflict = find_conflict(
        existing_bookings, request.booking_date, request.start_time, request.end_time
    )
    if conflict is not None:
        window = TimeSlot(start=conflict.start_time, end=conflict.end_time)
        return BookingRejection(
            RejectionCode.SLOT_CONFLICT,
            f"Requested time overlaps an existing booking from "
            f"{window.start:%H:%M} to {window.end:%H:%M}",
            conflict=window,
            conflicting_booking_id=conflict.id,
        )

    opening = operating_window(amenity, request.booking_date)
    if (
        opening is None
        or request.start_time < opening.start
        or request.end_time > opening.end
    ):
        detail = (
            f"open {opening.start:%H:%M}-{opening.end:%H:%M}"
            if opening is not None
            else "closed that day"
        )
        return BookingRejection(
            RejectionCode.OUTSIDE_OPERATING_HOURS,
            f"Requested time is outside operating hours ({detail})",
        )

    total_hours, total_cost = _price_booking(amenity, duration)
    status = (
        BookingStatus.CONFIRMED
        if amenity.auto_confirm and total_cost == 0
        else BookingStatus.PENDING
    )
    return Accepted(
        BookingDraft(
            amenity_id=amenity.id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            guest_count=request.guest_count,
            status=status,
            total_hours=total_hours,
            total_cost=total_cost,
        )
    )


def transition_booking(current: BookingStatus, target: BookingStatus) -> BookingStatus:
    """Return ``target`` if the lifecycle allows moving there from ``current``."""
    if target not in _ALLOWED_BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidBookingTransition(
            f"Invalid status transition from {current.value} to {target.value}"
        )
    return target


def is_past(booking: AmenityBooking, now: datetime) -> bool:
    """True once the booking's end time has passed (``now`` in local wall time)."""
    ends_at = datetime.combine(booking.booking_date, booking.end_time)
    return now.replace(tzinfo=None) >= ends_at


def find_overlaps(
    bookings: Iterable[AmenityBooking],
) -> list[tuple[AmenityBooking, AmenityBooking]]:
    """List every pair of blocking bookings sharing an amenity, day and time."""
    ordered = sorted(
        (booking for booking in bookings if is_blocking(booking)),
        key=lambda b: (str(b.amenity_id), b.booking_date, b.start_time),
    )
    pairs: list[tuple[AmenityBooking, AmenityBooking]] = []
    for index, first in enumerate(ordered):
        for second in ordered[index + 1 :]:
            if (
                second.amenity_id != first.amenity_id
                or second.booking_date != first.booking_date
                or second.start_time >= first.end_time
            ):
                break
            pairs.append((first, second))
    return pairs
