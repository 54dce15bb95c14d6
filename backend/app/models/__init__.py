"""ORM models package export."""

from app.models.amenity import (
    Amenity,
    AmenityBooking,
    AmenityOperatingHours,
    BookingStatus,
)
from app.models.compound import CommunityUnit, Compound, SecurityLevel
from app.models.visitor_pass import VisitorPass, VisitorPassStatus

__all__ = [
    "Amenity",
    "AmenityBooking",
    "AmenityOperatingHours",
    "BookingStatus",
    "CommunityUnit",
    "Compound",
    "SecurityLevel",
    "VisitorPass",
    "VisitorPassStatus",
]
