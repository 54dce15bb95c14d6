"""API router modules."""

from fastapi import APIRouter

from app.core.config import get_settings

from .v1 import router as api_v1_router

settings = get_settings()

OPENAPI_TAGS = [
    {"name": "health", "description": "Liveness and runtime configuration."},
    {"name": "amenities", "description": "Slot availability and amenity bookings."},
    {"name": "visitor-passes", "description": "Pass issuance and gate check-in."},
]

api_router = APIRouter()
api_router.include_router(api_v1_router, prefix=settings.api_v1_prefix)

__all__ = ["OPENAPI_TAGS", "api_router"]
