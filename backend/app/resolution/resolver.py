"""Tiered place resolution: catalog, then external text search, then synthetic.

The first tier that yields a candidate wins. Within a tier the first result
is taken in catalog/provider order unless rank_by_rating is enabled, in which
case candidates are ordered by rating (desc) then name before picking.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol, TypeVar

from backend.app.adapters.places import PlaceResult
from backend.app.db.repositories import CatalogQuery, CatalogRecord, CatalogStore
from backend.app.errors import ConfigurationError, ProviderError, ValidationError
from backend.app.models.common import SourceTier
from backend.app.models.concept import TimeSlot
from backend.app.models.location import AlternativePlace, ResolvedLocation
from backend.app.providers.executor import ProviderConfig, ProviderExecutor, RunContext
from backend.app.utils.metrics import record_resolution

logger = logging.getLogger(__name__)

DEFAULT_PRICE_LEVEL = 2
CATALOG_DEFAULT_RATING = 4.5
SYNTHETIC_RATING = 4.0
MAX_ALTERNATIVES = 5

C = TypeVar("C", CatalogRecord, PlaceResult)


class PlaceSearch(Protocol):
    """External geo-search collaborator."""

    async def text_search(self, query: str) -> list[PlaceResult]: ...


def build_search_query(time_slot: TimeSlot, city: str) -> str:
    """Free-text query: keywords, category, city."""
    keywords = " ".join(time_slot.keywords)
    return f"{keywords} {time_slot.category} in {city}".strip()


def synthetic_location(time_slot: TimeSlot, city: str) -> ResolvedLocation:
    """Placeholder named after the activity label."""
    return ResolvedLocation(
        name=time_slot.activity,
        address=f"{city} City Center",
        rating=SYNTHETIC_RATING,
        price_level=DEFAULT_PRICE_LEVEL,
        photos=(),
        source_tier=SourceTier.synthetic,
        stable_id=None,
        category=time_slot.category,
        slot_time=time_slot.time,
        activity=time_slot.activity,
    )


def _price_level(value: int | None) -> int:
    if value is None or not 0 <= value <= 4:
        return DEFAULT_PRICE_LEVEL
    return value


def _from_catalog(record: CatalogRecord, time_slot: TimeSlot) -> ResolvedLocation:
    return ResolvedLocation(
        name=record.name,
        address=record.address,
        rating=record.rating if record.rating is not None else CATALOG_DEFAULT_RATING,
        price_level=_price_level(record.price_level),
        photos=record.photos,
        source_tier=SourceTier.catalog,
        stable_id=f"catalog:{record.location_id}",
        category=record.category,
        slot_time=time_slot.time,
        activity=time_slot.activity,
        description=record.description,
        recommendation=record.recommendations,
    )


def _from_place(result: PlaceResult, time_slot: TimeSlot) -> ResolvedLocation:
    return ResolvedLocation(
        name=result.name,
        address=result.address,
        rating=result.rating,
        price_level=_price_level(result.price_level),
        photos=result.photo_urls,
        source_tier=SourceTier.external,
        stable_id=f"place:{result.place_id}" if result.place_id else None,
        category=time_slot.category,
        slot_time=time_slot.time,
        activity=time_slot.activity,
    )


def _overlaps(candidate: str, current: str | None) -> bool:
    """Case-insensitive substring match in either direction."""
    if not current:
        return False
    a, b = candidate.lower(), current.lower()
    return a in b or b in a


def _to_alternative(result: PlaceResult) -> AlternativePlace:
    return AlternativePlace(
        name=result.name or "Unknown Place",
        address=result.address or "Address not available",
        rating=result.rating or SYNTHETIC_RATING,
        price_level=_price_level(result.price_level),
        photos=list(result.photo_urls),
        place_id=result.place_id or None,
    )


class PlaceResolver:
    """Resolve time slots into concrete places."""

    def __init__(
        self,
        catalog: CatalogStore,
        places: PlaceSearch | None,
        executor: ProviderExecutor,
        catalog_config: ProviderConfig,
        places_config: ProviderConfig,
        *,
        search_limit: int = 10,
        rank_by_rating: bool = False,
    ) -> None:
        """Initialize resolver.

        Args:
            catalog: Vetted location catalog
            places: External text search; None disables the external tier
            executor: Provider call executor
            catalog_config: Timeout/retry settings for catalog queries
            places_config: Timeout/retry/cache settings for place lookups
            search_limit: Max catalog rows per query
            rank_by_rating: Order candidates by rating then name within a tier
        """
        self._catalog = catalog
        self._places = places
        self._executor = executor
        self._catalog_config = catalog_config
        self._places_config = places_config
        self._limit = search_limit
        self._rank_by_rating = rank_by_rating

    def catalog_queries(
        self, time_slot: TimeSlot, city: str, interest_filter: Sequence[int]
    ) -> list[CatalogQuery]:
        """Catalog queries in tier order, narrowest first."""
        category = (time_slot.category,) if time_slot.category else ()
        keywords = tuple(time_slot.keywords)
        interests = tuple(interest_filter)

        queries = [
            CatalogQuery(city, category, keywords, interests, self._limit),
            CatalogQuery(city, (), keywords, interests, self._limit),
        ]
        if interests:
            queries.append(CatalogQuery(city, category, keywords, (), self._limit))
        return queries

    async def resolve(
        self,
        time_slot: TimeSlot,
        city: str,
        interest_filter: Sequence[int] = (),
        run: RunContext | None = None,
    ) -> ResolvedLocation:
        """Resolve one time slot; never raises except on cancellation."""
        run = run or RunContext(trace_id="resolve")

        for query in self.catalog_queries(time_slot, city, interest_filter):
            records = await self._search_catalog(query, run)
            if records:
                record = self._pick(records, key=lambda r: (-(r.rating or 0.0), r.name))
                record_resolution(SourceTier.catalog.value)
                return _from_catalog(record, time_slot)

        if self._places is not None:
            query = build_search_query(time_slot, city)
            results = await self._search_places(self._places, query, run)
            if results:
                result = self._pick(results, key=lambda r: (-(r.rating or 0.0), r.name))
                record_resolution(SourceTier.external.value)
                return _from_place(result, time_slot)

        logger.info(f"No place found for {time_slot.time} {time_slot.activity!r}, using placeholder")
        record_resolution(SourceTier.synthetic.value)
        return synthetic_location(time_slot, city)

    async def resolve_all(
        self,
        time_slots: Sequence[TimeSlot],
        city: str,
        interest_filter: Sequence[int] = (),
        run: RunContext | None = None,
    ) -> list[ResolvedLocation]:
        """Resolve every slot concurrently, keeping slot order."""
        return list(
            await asyncio.gather(
                *(self.resolve(slot, city, interest_filter, run) for slot in time_slots)
            )
        )

    async def alternatives(
        self,
        category: str,
        city: str,
        current_name: str | None = None,
        current_address: str | None = None,
        run: RunContext | None = None,
    ) -> list[AlternativePlace]:
        """Up to five places of a category in a city, excluding the current one.

        A result is excluded when its name or address overlaps the current
        place's (substring match either way, ignoring case).

        Raises:
            ValidationError: Missing category or city
            ConfigurationError: No external place search configured
            ProviderError: The text search failed
        """
        if not category or not category.strip() or not city or not city.strip():
            raise ValidationError("category and city are required")
        if self._places is None:
            raise ConfigurationError("GOOGLE_MAPS_KEY is required for alternatives")

        run = run or RunContext(trace_id="alternatives")
        query = f"{category.strip()} {city.strip()}"
        results = await self._text_search(self._places, query, run)

        kept = [
            r
            for r in results
            if not _overlaps(r.name, current_name) and not _overlaps(r.address, current_address)
        ]
        logger.info(f"Alternatives for {query!r}: {len(kept)} of {len(results)} after filtering")
        return [_to_alternative(r) for r in kept[:MAX_ALTERNATIVES]]

    def _pick(self, candidates: list[C], key: Callable[[C], tuple[float, str]]) -> C:
        if self._rank_by_rating:
            return sorted(candidates, key=key)[0]
        return candidates[0]

    async def _search_catalog(self, query: CatalogQuery, run: RunContext) -> list[CatalogRecord]:
        try:
            return await self._executor.execute(
                run.call("catalog", "search"),
                self._catalog_config,
                lambda: self._catalog.search(query),
                run.cancel_token,
            )
        except ProviderError as e:
            logger.warning(f"Catalog search failed, treating as miss: {e}")
            return []

    async def _search_places(
        self, places: PlaceSearch, query: str, run: RunContext
    ) -> list[PlaceResult]:
        try:
            return await self._text_search(places, query, run)
        except ProviderError as e:
            logger.warning(f"Place lookup failed for {query!r}, treating as miss: {e}")
            return []

    async def _text_search(
        self, places: PlaceSearch, query: str, run: RunContext
    ) -> list[PlaceResult]:
        return await self._executor.execute(
            run.call("places", "text_search"),
            self._places_config,
            lambda: places.text_search(query),
            run.cancel_token,
            cache_request={"query": query},
        )
