"""Versioned API router."""

from fastapi import APIRouter

from . import amenities, health, visitor_passes

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(amenities.router, prefix="/amenities", tags=["amenities"])
router.include_router(
    visitor_passes.router, prefix="/visitor-passes", tags=["visitor-passes"]
)
