"""Seed a demo compound with units and bookable amenities."""
from __future__ import annotations

import asyncio
from datetime import time
from decimal import Decimal

from sqlalchemy import select

from app.core.config import get_settings
from app.db.session import get_sessionmaker
from app.models import Amenity, AmenityOperatingHours, CommunityUnit, Compound

DEMO_COMPOUND = "Palm Hills Demo"
DEMO_UNITS = ("A-101", "A-102", "B-201")
DEMO_AMENITIES = (
    ("Swimming Pool", "pool", 10, 4, None, True),
    ("Tennis Court", "sports", 4, 2, None, True),
    ("Event Hall", "hall", 80, 6, Decimal("250.00"), False),
)


async def seed_demo_compound() -> None:
    settings = get_settings()
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        existing = await session.execute(
            select(Compound).where(Compound.name == DEMO_COMPOUND)
        )
        if existing.scalar_one_or_none() is not None:
            print("Demo compound already present.")
            return

        compound = Compound(name=DEMO_COMPOUND)
        session.add(compound)
        await session.flush()
        for unit_number in DEMO_UNITS:
            session.add(CommunityUnit(compound_id=compound.id, unit_number=unit_number))

        for name, category, capacity, max_hours, price, auto_confirm in DEMO_AMENITIES:
            amenity = Amenity(
                compound_id=compound.id,
                name=name,
                category=category,
                capacity=capacity,
                advance_booking_days=settings.default_advance_booking_days,
                max_booking_hours=max_hours,
                price_per_hour=price,
                is_active=True,
                auto_confirm=auto_confirm,
            )
            amenity.hours = [
                AmenityOperatingHours(
                    weekday=weekday, open_time=time(6, 0), close_time=time(22, 0)
                )
                for weekday in range(7)
            ]
            session.add(amenity)
        await session.commit()
        print(
            f"Seeded {DEMO_COMPOUND} with {len(DEMO_UNITS)} unit(s) "
            f"and {len(DEMO_AMENITIES)} amenity(ies)."
        )


def main() -> None:
    asyncio.run(seed_demo_compound())


if __name__ == "__main__":
    main()
