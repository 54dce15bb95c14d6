"""Health endpoint smoke test."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app


@pytest.mark.asyncio
async def test_healthcheck_returns_ok() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Compound Access API"
    assert payload["rate_limiter"] == "disabled"
    assert payload["policy"]["booking_slot_minutes"] == 60
    assert response.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_protected_routes_require_bearer_token() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(
            "/api/v1/amenities/00000000-0000-0000-0000-000000000000"
        )
    assert response.status_code == 401
