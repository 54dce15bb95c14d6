"""Health check endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter
from fastapi_limiter import FastAPILimiter

from app.core.config import get_settings

router = APIRouter()


@router.get("", summary="Service health status")
async def healthcheck() -> dict[str, object]:
    """Return application health metadata and the active booking/pass policy."""
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.app_env,
        "rate_limiter": "enabled" if FastAPILimiter.redis is not None else "disabled",
        "policy": {
            "booking_slot_minutes": settings.booking_slot_minutes,
            "visitor_pass_grace_minutes": settings.visitor_pass_grace_minutes,
            "visitor_pass_validity_minutes": settings.visitor_pass_validity_minutes,
        },
    }
