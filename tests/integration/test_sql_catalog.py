"""Integration tests for catalog seeding and the SQL catalog store (SQLite)."""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.db.models import CatalogLocation, City
from backend.app.db.repositories import CatalogQuery
from backend.app.db.seed_dev import DEV_CATALOG, SeedLocation, seed_catalog
from backend.app.db.sql_catalog import SqlCatalogStore


@pytest.mark.asyncio
async def test_seeding_is_idempotent(sqlite_engine: AsyncEngine) -> None:
    assert await seed_catalog(sqlite_engine, DEV_CATALOG) == 3
    assert await seed_catalog(sqlite_engine, DEV_CATALOG) == 0


@pytest.mark.asyncio
async def test_search_by_category_and_tag(sqlite_engine: AsyncEngine) -> None:
    await seed_catalog(sqlite_engine, DEV_CATALOG)
    store = SqlCatalogStore(sqlite_engine)

    cafes = await store.search(CatalogQuery("lisbon", categories=("Cafe",), tags=("coffee",)))
    sunset = await store.search(CatalogQuery("Lisbon", tags=("SUNSET",)))
    none = await store.search(CatalogQuery("Lisbon", categories=("museum",)))

    assert [r.name for r in cafes] == ["Fábrica Coffee Roasters"]
    assert set(cafes[0].tags) == {"breakfast", "coffee"}
    assert cafes[0].price_level == 1
    assert [r.name for r in sunset] == ["Miradouro da Senhora do Monte"]
    assert none == []


@pytest.mark.asyncio
async def test_search_by_interest(sqlite_engine: AsyncEngine) -> None:
    await seed_catalog(sqlite_engine, DEV_CATALOG)
    store = SqlCatalogStore(sqlite_engine)
    food = (await store.search(CatalogQuery("Lisbon", tags=("lunch",))))[0].interest_ids

    results = await store.search(CatalogQuery("Lisbon", interest_ids=food))

    assert [r.name for r in results] == ["Fábrica Coffee Roasters", "Time Out Market"]


@pytest.mark.asyncio
async def test_search_respects_limit_and_city(sqlite_engine: AsyncEngine) -> None:
    await seed_catalog(sqlite_engine, DEV_CATALOG)
    store = SqlCatalogStore(sqlite_engine)

    assert len(await store.search(CatalogQuery("Lisbon", limit=2))) == 2
    assert await store.search(CatalogQuery("Porto")) == []


@pytest.mark.asyncio
async def test_unverified_imports_are_hidden(sqlite_engine: AsyncEngine) -> None:
    await seed_catalog(sqlite_engine, DEV_CATALOG)
    async with AsyncSession(sqlite_engine) as session:
        city = City(name="Porto")
        session.add(city)
        await session.flush()
        session.add(
            CatalogLocation(
                city_id=city.city_id,
                name="Unreviewed bar",
                address="Rua X",
                category="bar",
                verified=False,
                source="import",
            )
        )
        await session.commit()

    assert await SqlCatalogStore(sqlite_engine).search(CatalogQuery("Porto")) == []


@pytest.mark.asyncio
async def test_photos_keep_position_order(sqlite_engine: AsyncEngine) -> None:
    catalog = {
        "Porto": [
            SeedLocation(
                name="Livraria Lello",
                address="R. das Carmelitas 144",
                category="attraction",
                price_level=1,
                rating=4.3,
                description="A neo-gothic bookshop.",
                recommendations="Book the first slot.",
                tags=("books",),
                interests=("art",),
                photos=("https://img.test/lello/0.jpg", "https://img.test/lello/1.jpg"),
            )
        ]
    }
    await seed_catalog(sqlite_engine, catalog)

    [record] = await SqlCatalogStore(sqlite_engine).search(CatalogQuery("Porto"))

    assert record.photos == ("https://img.test/lello/0.jpg", "https://img.test/lello/1.jpg")
    assert record.city == "Porto"
    assert record.location_id > 0
