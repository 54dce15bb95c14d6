"""Schema exports."""

from app.schemas.amenity import (
    AmenityRead,
    OperatingHoursRead,
    SlotAvailability,
    TimeSlotRead,
)
from app.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingRead,
    BookingRejectionRead,
)
from app.schemas.visitor_pass import (
    CheckInRead,
    CheckInRequest,
    ExpireSweepRead,
    PassErrorRead,
    VisitorPassCreate,
    VisitorPassRead,
)

__all__ = [
    "AmenityRead",
    "BookingCancelRequest",
    "BookingCreate",
    "BookingRead",
    "BookingRejectionRead",
    "CheckInRead",
    "CheckInRequest",
    "ExpireSweepRead",
    "OperatingHoursRead",
    "PassErrorRead",
    "SlotAvailability",
    "TimeSlotRead",
    "VisitorPassCreate",
    "VisitorPassRead",
]
