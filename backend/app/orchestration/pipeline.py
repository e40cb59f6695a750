"""Itinerary pipeline - orchestrates generation and the preview/full lifecycle.

Stages run strictly in sequence; each one fans out internally where it can.
The whole run sits under one deadline, and the run's cancel token stops any
provider call that has not started yet once the deadline passes.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Sequence
from datetime import UTC, datetime
from typing import TypeVar

from pydantic import SecretStr

from backend.app.adapters.photos import UnsplashPhotoSource
from backend.app.adapters.places import GooglePlacesClient
from backend.app.assembly.assembler import ContentAssembler
from backend.app.assembly.slots import LOCATION_SLOTS, assign_slot_keys
from backend.app.budget.normalizer import BudgetNormalizer, default_price, format_price_range
from backend.app.config import Settings
from backend.app.db.engine import create_async_engine_from_settings
from backend.app.db.inmemory import InMemoryCatalogStore, InMemorySessionStore
from backend.app.db.redis_store import RedisSessionStore
from backend.app.db.repositories import CatalogStore, SessionStore, stamped
from backend.app.db.sql_catalog import SqlCatalogStore
from backend.app.errors import (
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    PipelineTimeoutError,
    ValidationError,
)
from backend.app.llm.client import get_llm_client
from backend.app.llm.narrative import NarrativeGenerator
from backend.app.models.blocks import ContentBlock, LocationBlock
from backend.app.models.common import ItineraryState, Visibility
from backend.app.models.concept import TimeSlot
from backend.app.models.itinerary import Activity, GenerateRequest, Itinerary
from backend.app.models.location import AlternativePlace
from backend.app.orchestration.state import ItineraryStateService
from backend.app.providers.executor import ProviderConfig, ProviderExecutor, RunContext
from backend.app.resolution.resolver import PlaceResolver
from backend.app.utils.logging import StructuredProviderLogger, log_stage
from backend.app.utils.metrics import PrometheusProviderMetrics, record_stage

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PREVIEW_LOCATIONS = 2


def derive_activities(blocks: Sequence[ContentBlock]) -> list[Activity]:
    """Budget projection of every location block's main location."""
    activities: list[Activity] = []
    for block in blocks:
        if not isinstance(block, LocationBlock):
            continue
        main = block.content.main_location
        level = main.price_level if main.price_level is not None else 2
        category = main.category or "attraction"
        activities.append(
            Activity(
                time=main.time or block.content.time_slot.split("-")[0],
                name=main.name,
                description=main.description,
                category=category,
                price=default_price(level),
                price_level=level,
                price_range=format_price_range(category, level),
                location=main.address,
                photos=list(main.photos),
                recommendations=main.recommendation,
                rating=main.rating,
            )
        )
    return activities


def uncovered_time_slots(itinerary: Itinerary) -> list[TimeSlot]:
    """Concept time slots whose location window has no block yet."""
    keyed = assign_slot_keys(itinerary.content_blocks)
    open_windows = [
        spec.window for spec in LOCATION_SLOTS if spec.key not in keyed and spec.window is not None
    ]
    covered_times = {b.content.main_location.time for b in itinerary.location_blocks()}
    return [
        slot
        for slot in itinerary.concept.time_slots
        if slot.time not in covered_times and any(w.matches(slot.time) for w in open_windows)
    ]


def _now() -> datetime:
    return datetime.now(UTC)


class ItineraryPipeline:
    """Entry points for generate, complete, payment, unlock and load."""

    def __init__(
        self,
        narrative: NarrativeGenerator,
        resolver: PlaceResolver,
        assembler: ContentAssembler,
        normalizer: BudgetNormalizer,
        store: SessionStore,
        state: ItineraryStateService | None = None,
        *,
        deadline_seconds: float = 90.0,
        preview_location_limit: int | None = DEFAULT_PREVIEW_LOCATIONS,
    ) -> None:
        """Initialize pipeline with its collaborators.

        Args:
            narrative: Narrative generator adapter
            resolver: Place resolver
            assembler: Content block assembler
            normalizer: Budget normalizer
            store: Session store
            state: Lifecycle state service
            deadline_seconds: Overall deadline for generate/complete runs
            preview_location_limit: Time slots resolved for a preview (None = all)
        """
        self._narrative = narrative
        self._resolver = resolver
        self._assembler = assembler
        self._normalizer = normalizer
        self._store = store
        self._state = state or ItineraryStateService()
        self._deadline = deadline_seconds
        self._preview_limit = preview_location_limit

    @property
    def store(self) -> SessionStore:
        return self._store

    # Public entry points

    async def generate(self, request: GenerateRequest) -> Itinerary:
        """Generate a preview (persisted) or full (returned only) itinerary.

        Raises:
            ValidationError: Missing city or budget
            PipelineTimeoutError: Deadline exceeded
            PersistenceError: Saving the preview failed; ``.itinerary`` holds it
        """
        self._validate_request(request)
        run = RunContext(trace_id=f"gen-{uuid.uuid4().hex[:12]}")
        return await self._with_deadline(run, "generate", self._generate(request, run))

    async def complete(self, itinerary_id: str) -> Itinerary:
        """Generate the location slots a preview has not shown yet.

        Every stored block is kept verbatim. Only time slots whose window has
        no location block yet are resolved and assembled, then the budget is
        normalized again over all activities. A preview with nothing left to
        generate is returned unchanged.

        Raises:
            InvalidTransitionError: The itinerary is already full
        """
        itinerary = await self.load(itinerary_id)
        if self._state.state_of(itinerary) == ItineraryState.full:
            raise InvalidTransitionError(f"itinerary {itinerary_id} is already full")

        remaining = uncovered_time_slots(itinerary)
        if not remaining:
            logger.info(f"Itinerary {itinerary_id} has no slots left to complete")
            return itinerary

        run = RunContext(trace_id=f"cmp-{uuid.uuid4().hex[:12]}")
        return await self._with_deadline(
            run, "complete", self._complete(itinerary, remaining, run)
        )

    async def record_payment(self, itinerary_id: str) -> Itinerary:
        """Apply the external payment event: preview -> payment."""
        itinerary = await self.load(itinerary_id)
        current = self._state.state_of(itinerary)
        if current == ItineraryState.payment:
            return itinerary
        self._state.require_transition(current, ItineraryState.payment)

        updated = itinerary.model_copy(update={"payment_confirmed": True, "updated_at": _now()})
        return await self._save(updated)

    async def unlock(self, itinerary_id: str, payment_confirmed: bool = False) -> Itinerary:
        """Flip a paid preview to full visibility without regenerating content.

        Already-full documents are returned unchanged. ``payment_confirmed``
        lets the caller deliver the payment event and the unlock together.

        Raises:
            InvalidTransitionError: Preview has no confirmed payment
        """
        itinerary = await self.load(itinerary_id)
        current = self._state.state_of(itinerary)
        if current == ItineraryState.full:
            return itinerary

        if payment_confirmed and current == ItineraryState.preview:
            itinerary = await self.record_payment(itinerary_id)
            current = self._state.state_of(itinerary)

        self._state.require_transition(current, ItineraryState.full)
        if itinerary.id is None:
            raise PersistenceError("stored itinerary has no id")
        unlocked = await self._store.set_visibility(
            itinerary.id, Visibility.full, expected_version=itinerary.version
        )
        logger.info(f"Unlocked itinerary {itinerary.id}")
        return unlocked

    async def alternatives(
        self,
        category: str,
        city: str,
        current_name: str | None = None,
        current_address: str | None = None,
    ) -> list[AlternativePlace]:
        """Swap-in candidates for a rendered location."""
        run = RunContext(trace_id=f"alt-{uuid.uuid4().hex[:12]}")
        return await self._resolver.alternatives(
            category, city, current_name, current_address, run
        )

    async def load(self, itinerary_id: str) -> Itinerary:
        """Load a stored itinerary.

        Raises:
            ValidationError: Empty id
            NotFoundError: Unknown or expired id
        """
        if not itinerary_id or not itinerary_id.strip():
            raise ValidationError("itinerary id is required")
        itinerary = await self._store.load(itinerary_id)
        if itinerary is None:
            raise NotFoundError(f"itinerary {itinerary_id} not found")
        return itinerary

    # Runs

    def _validate_request(self, request: GenerateRequest) -> None:
        if not request.city or not request.city.strip():
            raise ValidationError("city is required")
        if request.budget is None:
            raise ValidationError("budget is required")
        if request.budget <= 0:
            raise ValidationError("budget must be positive")

    async def _with_deadline(self, run: RunContext, operation: str, work: Awaitable[T]) -> T:
        try:
            async with asyncio.timeout(self._deadline):
                return await work
        except TimeoutError as e:
            run.cancel_token.cancel()
            logger.error(
                f"Pipeline {operation} exceeded {self._deadline}s deadline",
                extra={"structured": {"trace_id": run.trace_id, "operation": operation}},
            )
            raise PipelineTimeoutError(
                f"{operation} did not finish within {self._deadline} seconds"
            ) from e

    async def _stage(self, run: RunContext, operation: str, stage: str, work: Awaitable[T]) -> T:
        start = time.monotonic()
        result = await work
        elapsed_ms = (time.monotonic() - start) * 1000
        record_stage(operation, stage, elapsed_ms)
        log_stage(run.trace_id, operation, stage, elapsed_ms)
        return result

    async def _generate(self, request: GenerateRequest, run: RunContext) -> Itinerary:
        city = request.city.strip()
        if request.budget is None:
            raise ValidationError("budget is required")
        op = "generate"

        day_concept = await self._stage(
            run,
            op,
            "concept",
            self._narrative.day_concept(
                city, request.audience, request.interests, request.budget, request.date, run
            ),
        )

        time_slots: list[TimeSlot] = list(day_concept.time_slots)
        if request.preview_only and self._preview_limit is not None:
            time_slots = time_slots[: self._preview_limit]

        resolved = await self._stage(
            run,
            op,
            "resolve",
            self._resolver.resolve_all(time_slots, city, request.interest_ids, run),
        )
        blocks = await self._stage(
            run,
            op,
            "assemble",
            self._assembler.assemble(
                city,
                request.audience,
                request.interests,
                day_concept.text,
                resolved,
                day_concept,
                run=run,
            ),
        )
        budget = self._normalizer.normalize(derive_activities(blocks), request.budget)
        meta = await self._stage(
            run,
            op,
            "metadata",
            self._narrative.metadata(city, request.date, request.audience, day_concept.text, run),
        )

        itinerary = Itinerary(
            city=city,
            date=request.date,
            budget=request.budget,
            audience=request.audience,
            interests=request.interests,
            interest_ids=request.interest_ids,
            title=meta.title,
            subtitle=meta.subtitle,
            weather=meta.weather,
            concept=day_concept,
            content_blocks=blocks,
            activities=budget.activities,
            total_cost=budget.total_cost,
            within_budget=budget.within_budget,
            visibility=Visibility.preview if request.preview_only else Visibility.full,
        )

        if not request.preview_only:
            return itinerary

        self._state.require_transition(ItineraryState.generating, ItineraryState.preview)
        try:
            return await self._stage(run, op, "persist", self._save(itinerary))
        except PersistenceError as e:
            raise PersistenceError(str(e), itinerary=itinerary) from e

    async def _complete(
        self, itinerary: Itinerary, remaining: list[TimeSlot], run: RunContext
    ) -> Itinerary:
        op = "complete"
        resolved = await self._stage(
            run,
            op,
            "resolve",
            self._resolver.resolve_all(remaining, itinerary.city, itinerary.interest_ids, run),
        )
        blocks = await self._stage(
            run,
            op,
            "assemble",
            self._assembler.assemble(
                itinerary.city,
                itinerary.audience,
                itinerary.interests,
                itinerary.concept.text,
                resolved,
                itinerary.concept,
                preserved=itinerary.content_blocks,
                run=run,
            ),
        )
        budget = self._normalizer.normalize(derive_activities(blocks), itinerary.budget)

        completed = itinerary.model_copy(
            update={
                "content_blocks": blocks,
                "activities": budget.activities,
                "total_cost": budget.total_cost,
                "within_budget": budget.within_budget,
                "updated_at": _now(),
            }
        )
        return await self._stage(run, op, "persist", self._save(completed))

    async def _save(self, itinerary: Itinerary) -> Itinerary:
        itinerary_id = await self._store.save(itinerary)
        return stamped(itinerary, itinerary_id)


def _secret(value: SecretStr | None) -> str | None:
    if value is None:
        return None
    return value.get_secret_value() or None


def build_pipeline(
    settings: Settings,
    *,
    catalog: CatalogStore | None = None,
    store: SessionStore | None = None,
) -> ItineraryPipeline:
    """Wire the production pipeline from settings.

    Args:
        settings: Application settings
        catalog: Catalog store override (default: SQL catalog if DATABASE_URL is set)
        store: Session store override (default: redis if REDIS_URL is set)

    Raises:
        ConfigurationError: Required provider credentials are missing
    """
    llm = get_llm_client(settings)

    maps_key = _secret(settings.google_maps_key)
    places: GooglePlacesClient | None = None
    if maps_key:
        places = GooglePlacesClient(
            maps_key,
            language=settings.places_language,
            photo_max_width=settings.places_photo_max_width,
            photo_limit=settings.external_photo_limit,
        )
    elif settings.allow_stub_providers:
        logger.warning("No Google Maps key configured, external place lookup disabled")
    else:
        raise ConfigurationError("GOOGLE_MAPS_KEY is required for place lookup")

    if catalog is None:
        if settings.database_url:
            catalog = SqlCatalogStore(create_async_engine_from_settings(settings))
        else:
            logger.warning("No DATABASE_URL configured, using an empty catalog")
            catalog = InMemoryCatalogStore()

    if store is None:
        if settings.redis_url:
            store = RedisSessionStore.from_url(
                settings.redis_url, ttl_seconds=settings.session_ttl_seconds
            )
        else:
            logger.warning("No REDIS_URL configured, sessions are kept in process memory")
            store = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)

    executor = ProviderExecutor(
        metrics=PrometheusProviderMetrics(), logger=StructuredProviderLogger()
    )
    narrative = NarrativeGenerator(
        llm, executor, ProviderConfig.from_settings(settings, settings.narrative_timeout_ms)
    )
    resolver = PlaceResolver(
        catalog,
        places,
        executor,
        ProviderConfig.from_settings(settings, settings.catalog_timeout_ms),
        ProviderConfig.from_settings(
            settings, settings.places_timeout_ms, settings.places_cache_ttl_seconds
        ),
        search_limit=settings.catalog_search_limit,
        rank_by_rating=settings.rank_by_rating,
    )
    assembler = ContentAssembler(
        narrative,
        UnsplashPhotoSource(_secret(settings.unsplash_access_key)),
        executor,
        ProviderConfig.from_settings(
            settings, settings.photos_timeout_ms, settings.photos_cache_ttl_seconds
        ),
        illustrative_photo_count=settings.illustrative_photo_count,
        main_photo_limit=settings.main_photo_limit,
    )
    return ItineraryPipeline(
        narrative,
        resolver,
        assembler,
        BudgetNormalizer(tolerance=settings.budget_tolerance),
        store,
        deadline_seconds=settings.pipeline_deadline_seconds,
        preview_location_limit=settings.preview_location_limit,
    )
