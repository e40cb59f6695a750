"""SQL implementation of the CatalogStore interface."""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.db.models import (
    CatalogLocation,
    CatalogLocationInterest,
    CatalogLocationTag,
    City,
)
from backend.app.db.repositories import CatalogQuery, CatalogRecord


def _to_record(row: CatalogLocation, city: str) -> CatalogRecord:
    return CatalogRecord(
        location_id=row.location_id,
        city=city,
        name=row.name,
        address=row.address,
        category=row.category,
        price_level=row.price_level,
        rating=row.rating,
        description=row.description,
        recommendations=row.recommendations,
        photos=tuple(p.url for p in row.photos),
        tags=tuple(t.tag for t in row.tags),
        interest_ids=tuple(i.interest_id for i in row.interests),
        verified=row.verified,
        source=row.source,
    )


class SqlCatalogStore:
    """Catalog search over the SQLAlchemy models."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def search(self, query: CatalogQuery) -> list[CatalogRecord]:
        stmt = (
            select(CatalogLocation)
            .join(City, CatalogLocation.city_id == City.city_id)
            .where(func.lower(City.name) == query.city.lower())
            .where(or_(CatalogLocation.verified.is_(True), CatalogLocation.source == "admin"))
        )

        if query.categories:
            stmt = stmt.where(
                func.lower(CatalogLocation.category).in_([c.lower() for c in query.categories])
            )
        if query.tags:
            stmt = stmt.where(
                CatalogLocation.tags.any(
                    func.lower(CatalogLocationTag.tag).in_([t.lower() for t in query.tags])
                )
            )
        if query.interest_ids:
            stmt = stmt.where(
                CatalogLocation.interests.any(
                    CatalogLocationInterest.interest_id.in_(list(query.interest_ids))
                )
            )

        stmt = (
            stmt.options(
                selectinload(CatalogLocation.tags),
                selectinload(CatalogLocation.interests),
                selectinload(CatalogLocation.photos),
            )
            .order_by(CatalogLocation.location_id)
            .limit(query.limit)
        )

        async with AsyncSession(self._engine) as session:
            result = await session.execute(stmt)
            return [_to_record(row, query.city) for row in result.scalars().all()]
