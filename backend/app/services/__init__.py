"""Service layer exports."""
from app.services import (
    amenity_booking_service,
    notification_service,
    visitor_pass_service,
)

__all__ = [
    "amenity_booking_service",
    "notification_service",
    "visitor_pass_service",
]
