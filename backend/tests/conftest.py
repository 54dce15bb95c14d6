"""Test fixtures for the compound access backend."""
from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from datetime import time
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from app.core.config import get_settings
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import dispose_engine, get_sessionmaker
from app.main import app
from app.models import (
    Amenity,
    AmenityOperatingHours,
    CommunityUnit,
    Compound,
    SecurityLevel,
)


def auth_headers(
    user_id: uuid.UUID,
    role: str,
    *,
    unit_id: uuid.UUID | None = None,
    compound_id: uuid.UUID | None = None,
    email: str | None = None,
) -> dict[str, str]:
    """Mint a bearer token the way the identity service would."""
    claims: dict[str, str] = {"role": role}
    if unit_id is not None:
        claims["unit_id"] = str(unit_id)
    if compound_id is not None:
        claims["compound_id"] = str(compound_id)
    if email is not None:
        claims["email"] = email
    token = create_access_token(str(user_id), **claims)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest_asyncio.fixture()
async def seeded(reset_database: None, db_url: str) -> dict[str, uuid.UUID]:
    """Seed a compound with two units, an open pool and a paid event hall.

    A second compound with its own unit and gym backs the cross-compound cases.
    """
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        compound = Compound(
            name="Palm Hills", security_level=SecurityLevel.STANDARD
        )
        session.add(compound)
        await session.flush()

        unit = CommunityUnit(compound_id=compound.id, unit_number="A-101")
        neighbour_unit = CommunityUnit(compound_id=compound.id, unit_number="A-102")
        session.add_all([unit, neighbour_unit])

        pool = Amenity(
            compound_id=compound.id,
            name="Swimming Pool",
            category="pool",
            capacity=10,
            advance_booking_days=30,
            max_booking_hours=4,
            price_per_hour=None,
            is_active=True,
            auto_confirm=True,
        )
        pool.hours = [
            AmenityOperatingHours(
                weekday=weekday, open_time=time(6, 0), close_time=time(22, 0)
            )
            for weekday in range(7)
        ]
        session.add(pool)

        hall = Amenity(
            compound_id=compound.id,
            name="Event Hall",
            category="hall",
            capacity=80,
            advance_booking_days=60,
            max_booking_hours=6,
            price_per_hour=Decimal("250.00"),
            is_active=True,
            auto_confirm=True,
        )
        hall.hours = [
            AmenityOperatingHours(
                weekday=weekday, open_time=time(10, 0), close_time=time(23, 0)
            )
            for weekday in range(7)
        ]
        session.add(hall)

        other_compound = Compound(
            name="Lake View", security_level=SecurityLevel.STANDARD
        )
        session.add(other_compound)
        await session.flush()
        other_unit = CommunityUnit(compound_id=other_compound.id, unit_number="B-1")
        gym = Amenity(
            compound_id=other_compound.id,
            name="Gym",
            category="fitness",
            capacity=15,
            advance_booking_days=14,
            max_booking_hours=2,
            price_per_hour=None,
            is_active=True,
            auto_confirm=True,
        )
        gym.hours = [
            AmenityOperatingHours(
                weekday=weekday, open_time=time(5, 0), close_time=time(23, 0)
            )
            for weekday in range(7)
        ]
        session.add_all([other_unit, gym])
        await session.commit()

        return {
            "compound_id": compound.id,
            "unit_id": unit.id,
            "neighbour_unit_id": neighbour_unit.id,
            "pool_id": pool.id,
            "hall_id": hall.id,
            "other_compound_id": other_compound.id,
            "other_unit_id": other_unit.id,
            "gym_id": gym.id,
            "resident_id": uuid.uuid4(),
            "neighbour_id": uuid.uuid4(),
            "guard_id": uuid.uuid4(),
            "manager_id": uuid.uuid4(),
        }


@pytest_asyncio.fixture()
async def app_context(
    seeded: dict[str, uuid.UUID],
) -> AsyncIterator[dict[str, object]]:
    """Yield an async client, seeded ids and ready-made auth headers."""
    context: dict[str, object] = dict(seeded)
    compound_id = seeded["compound_id"]
    context["resident_headers"] = auth_headers(
        seeded["resident_id"],
        "resident",
        unit_id=seeded["unit_id"],
        compound_id=compound_id,
        email="resident@example.com",
    )
    context["neighbour_headers"] = auth_headers(
        seeded["neighbour_id"],
        "resident",
        unit_id=seeded["neighbour_unit_id"],
        compound_id=compound_id,
    )
    context["guard_headers"] = auth_headers(
        seeded["guard_id"], "security_guard", compound_id=compound_id
    )
    context["manager_headers"] = auth_headers(
        seeded["manager_id"], "compound_manager", compound_id=compound_id
    )
    other_compound_id = seeded["other_compound_id"]
    context["other_guard_headers"] = auth_headers(
        uuid.uuid4(), "security_guard", compound_id=other_compound_id
    )
    context["other_manager_headers"] = auth_headers(
        uuid.uuid4(), "compound_manager", compound_id=other_compound_id
    )
    context["other_resident_headers"] = auth_headers(
        uuid.uuid4(),
        "resident",
        unit_id=seeded["other_unit_id"],
        compound_id=other_compound_id,
    )
    context["admin_headers"] = auth_headers(uuid.uuid4(), "admin")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        context["client"] = client
        yield context
