"""Dev seeding helper for the location catalog."""

import asyncio
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.db.engine import get_async_engine
from backend.app.db.models import (
    CatalogLocation,
    CatalogLocationInterest,
    CatalogLocationPhoto,
    CatalogLocationTag,
    City,
    Interest,
)

DEV_INTERESTS = ["food", "art", "history", "views", "nightlife"]


@dataclass(frozen=True)
class SeedLocation:
    name: str
    address: str
    category: str
    price_level: int
    rating: float
    description: str
    recommendations: str
    tags: tuple[str, ...]
    interests: tuple[str, ...]
    photos: tuple[str, ...] = ()


DEV_CATALOG: dict[str, list[SeedLocation]] = {
    "Lisbon": [
        SeedLocation(
            name="Fábrica Coffee Roasters",
            address="Rua das Portas de Santo Antão 136, Lisbon",
            category="cafe",
            price_level=1,
            rating=4.6,
            description=(
                "A roastery with long tables and a slow morning crowd. "
                "The filter coffee changes every week."
            ),
            recommendations="Take the window seat and order whatever is on filter.",
            tags=("breakfast", "coffee"),
            interests=("food",),
        ),
        SeedLocation(
            name="Time Out Market",
            address="Av. 24 de Julho 49, Lisbon",
            category="restaurant",
            price_level=2,
            rating=4.4,
            description=(
                "A covered market hall where the city's kitchens share one roof. "
                "It fills up after one, so arrive a little early."
            ),
            recommendations="Walk the whole hall once before choosing where to eat.",
            tags=("lunch", "local food"),
            interests=("food",),
        ),
        SeedLocation(
            name="Miradouro da Senhora do Monte",
            address="Largo Monte, Lisbon",
            category="viewpoint",
            price_level=0,
            rating=4.8,
            description=(
                "The highest viewpoint in the old city, under a row of pines. "
                "Late afternoon light reaches the castle first."
            ),
            recommendations="Come forty minutes before sunset and stay after it.",
            tags=("viewpoint", "sunset"),
            interests=("views",),
        ),
    ],
}


async def seed_catalog(engine: AsyncEngine, catalog: dict[str, list[SeedLocation]]) -> int:
    """Seed cities, interests and catalog locations.

    Idempotent - existing cities, interests and locations (by city + name)
    are left alone. Returns the number of locations created.
    """
    created = 0
    async with AsyncSession(engine) as session:
        interest_ids: dict[str, int] = {}
        for name in DEV_INTERESTS:
            result = await session.execute(select(Interest).where(Interest.name == name))
            interest = result.scalar_one_or_none()
            if interest is None:
                interest = Interest(name=name)
                session.add(interest)
                await session.flush()
            interest_ids[name] = interest.interest_id

        for city_name, locations in catalog.items():
            result = await session.execute(select(City).where(City.name == city_name))
            city = result.scalar_one_or_none()
            if city is None:
                city = City(name=city_name)
                session.add(city)
                await session.flush()

            for seed in locations:
                existing = await session.execute(
                    select(CatalogLocation).where(
                        CatalogLocation.city_id == city.city_id,
                        CatalogLocation.name == seed.name,
                    )
                )
                if existing.scalar_one_or_none() is not None:
                    continue

                session.add(
                    CatalogLocation(
                        city_id=city.city_id,
                        name=seed.name,
                        address=seed.address,
                        category=seed.category,
                        price_level=seed.price_level,
                        rating=seed.rating,
                        description=seed.description,
                        recommendations=seed.recommendations,
                        verified=True,
                        source="admin",
                        tags=[CatalogLocationTag(tag=t) for t in seed.tags],
                        interests=[
                            CatalogLocationInterest(interest_id=interest_ids[i])
                            for i in seed.interests
                        ],
                        photos=[
                            CatalogLocationPhoto(url=url, position=pos)
                            for pos, url in enumerate(seed.photos)
                        ],
                    )
                )
                created += 1

        await session.commit()
    return created


async def seed_dev_catalog() -> None:
    created = await seed_catalog(get_async_engine(), DEV_CATALOG)
    print(f"✅ Dev catalog seeding complete ({created} locations created)")


if __name__ == "__main__":
    asyncio.run(seed_dev_catalog())
