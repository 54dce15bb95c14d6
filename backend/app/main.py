"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from secure import Secure
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi_limiter import FastAPILimiter
import redis.asyncio as redis  # type: ignore[import-untyped]

from app.api import OPENAPI_TAGS, api_router
from app.core.config import get_settings
from app.security.logging_filters import SensitiveFilter
from app.services.maintenance_service import run_startup_sweeps

logger = logging.getLogger(__name__)

settings = get_settings()

_ALLOWED_ORIGINS = [origin for origin in settings.cors_allow_origins if origin]


async def _start_rate_limiter():
    """Connect the gate-scan limiter; scans are unthrottled without Redis."""
    if not settings.redis_url:
        logger.info("REDIS_URL not set; check-in rate limiting disabled")
        return None
    try:
        redis_pool = redis.from_url(
            settings.redis_url, encoding="utf-8", decode_responses=True
        )
        await FastAPILimiter.init(redis_pool)
    except Exception:  # pragma: no cover - limiter startup is best effort
        logger.exception("Failed to initialize rate limiter")
        return None
    return redis_pool


@asynccontextmanager
async def lifespan(_: FastAPI):
    redis_pool = await _start_rate_limiter()
    if settings.run_startup_sweeps:
        try:
            await run_startup_sweeps()
        except Exception:  # pragma: no cover - best effort housekeeping
            logger.exception("Startup sweeps failed")
    try:
        yield
    finally:
        if redis_pool is not None:
            try:
                await FastAPILimiter.close()
            except Exception:  # pragma: no cover - limiter shutdown
                logger.exception("Failed to close rate limiter")
            finally:
                await redis_pool.aclose()


app = FastAPI(title=settings.app_name, openapi_tags=OPENAPI_TAGS, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")

_secure_headers = Secure.with_default_headers()


@app.middleware("http")
async def _apply_security_headers(request, call_next):
    response = await call_next(request)
    _secure_headers.set_headers(response)
    return response


# Logger filters do not apply to records propagated from child loggers, so the
# handlers get the filter too.
for _logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error", ""):
    _logger = logging.getLogger(_logger_name)
    for _sink in (_logger, *_logger.handlers):
        if not any(isinstance(flt, SensitiveFilter) for flt in _sink.filters):
            _sink.addFilter(SensitiveFilter())

app.include_router(api_router)


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    """Return the service name and API prefix."""
    return {"message": settings.app_name, "api": settings.api_v1_prefix}
