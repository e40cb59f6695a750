"""Content block assembly.

Fills the fixed slot sequence in two phases:

1. Sequentially, in slot order, match each location slot to the first unused
   resolved location in its time window and claim it (a duplicate main is
   swapped for a uniquely named placeholder). Main photos are claimed here too.
2. Concurrently, build every block. Location slots claim their alternatives and
   every illustrative block claims its photos through the shared registry.

Blocks are then laid out in sequence order with contiguous orderIndex.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from backend.app.adapters.photos import STOCK_PHOTO_URL
from backend.app.assembly.dedup import UsedRegistry
from backend.app.assembly.slots import LOCATION_SLOTS, SEQUENCE, SlotSpec, assign_slot_keys
from backend.app.budget.normalizer import approx_cost
from backend.app.errors import ProviderError
from backend.app.llm.narrative import AlternativeCandidate, NarrativeGenerator
from backend.app.models.blocks import (
    Column,
    ContentBlock,
    DividerBlock,
    LocationBlock,
    LocationContent,
    PhotoBlock,
    PhotoContent,
    SlideBlock,
    SlideContent,
    TextBlock,
    TextContent,
    ThreeColumnsBlock,
    ThreeColumnsContent,
    TitleBlock,
    TitleContent,
)
from backend.app.models.common import BlockType, SourceTier
from backend.app.models.concept import DayConcept
from backend.app.models.location import LocationEntry, ResolvedLocation
from backend.app.providers.executor import ProviderConfig, ProviderExecutor, RunContext

logger = logging.getLogger(__name__)

ALTERNATIVES_PER_LOCATION = 2
COLUMN_PHOTO_QUERIES = ("afternoon", "evening", "cityscape")


class PhotoSearch(Protocol):
    async def search(self, query: str, count: int = 3) -> list[str]: ...


@dataclass
class AssemblyContext:
    """Inputs and shared state for one assembly run."""

    city: str
    audience: str
    interests: list[str]
    concept: str
    registry: UsedRegistry
    run: RunContext
    mains: dict[str, ResolvedLocation] = field(default_factory=dict)
    main_photos: dict[str, list[str]] = field(default_factory=dict)


def synthetic_main(name: str, original: ResolvedLocation, city: str) -> ResolvedLocation:
    """Placeholder replacing a main location that was already used."""
    return ResolvedLocation(
        name=name,
        address=f"{city} City Center",
        rating=4.0,
        price_level=2,
        photos=(),
        source_tier=SourceTier.synthetic,
        stable_id=None,
        category=original.category,
        slot_time=original.slot_time,
        activity=original.activity,
    )


def _preserved_identities(
    blocks: Iterable[ContentBlock],
) -> tuple[list[tuple[str, str | None]], list[str]]:
    locations: list[tuple[str, str | None]] = []
    photos: list[str] = []
    for block in blocks:
        if isinstance(block, LocationBlock):
            for entry in [block.content.main_location, *block.content.alternative_locations]:
                locations.append((entry.name, entry.stable_id))
                photos.extend(entry.photos)
        elif isinstance(block, PhotoBlock):
            photos.extend(block.content.photos)
        elif isinstance(block, SlideBlock):
            photos.extend(block.content.photos)
        elif isinstance(block, ThreeColumnsBlock):
            photos.extend(c.photo for c in block.content.columns)
    return locations, photos


class ContentAssembler:
    """Builds the ordered content blocks of a day guide."""

    def __init__(
        self,
        narrative: NarrativeGenerator,
        photos: PhotoSearch,
        executor: ProviderExecutor,
        photos_config: ProviderConfig,
        *,
        illustrative_photo_count: int = 3,
        main_photo_limit: int = 10,
    ) -> None:
        self._narrative = narrative
        self._photos = photos
        self._executor = executor
        self._photos_config = photos_config
        self._illustrative_count = illustrative_photo_count
        self._main_photo_limit = main_photo_limit
        self._handlers: dict[
            BlockType, Callable[[SlotSpec, AssemblyContext], Awaitable[ContentBlock]]
        ] = {
            BlockType.title: self._title_block,
            BlockType.text: self._text_block,
            BlockType.divider: self._divider_block,
            BlockType.photo: self._photo_block,
            BlockType.slide: self._slide_block,
            BlockType.three_columns: self._three_columns_block,
            BlockType.location: self._location_block,
        }

    async def assemble(
        self,
        city: str,
        audience: str,
        interests: Sequence[str],
        concept: str,
        resolved_locations: Sequence[ResolvedLocation],
        day_concept: DayConcept,
        preserved: Sequence[ContentBlock] = (),
        run: RunContext | None = None,
    ) -> list[ContentBlock]:
        """Assemble blocks for the fixed slot sequence.

        Args:
            city: Destination city
            audience: Target audience
            interests: Interest names
            concept: Concept string for the day (falls back to day_concept.text)
            resolved_locations: One resolved location per time slot, time-ordered
            day_concept: The day concept the locations were resolved from
            preserved: Already generated blocks to keep verbatim; their
                locations and photos count as used
            run: Run context for tracing and cancellation

        Returns:
            Blocks in sequence order with orderIndex 0..N-1
        """
        registry = UsedRegistry()
        keyed_preserved = assign_slot_keys(preserved) if preserved else {}
        preserved_locations, preserved_photos = _preserved_identities(keyed_preserved.values())
        await registry.preseed(preserved_locations, preserved_photos)

        ctx = AssemblyContext(
            city=city,
            audience=audience,
            interests=list(interests),
            concept=concept or day_concept.text,
            registry=registry,
            run=run or RunContext(trace_id="assemble"),
        )
        await self._claim_mains(ctx, resolved_locations, skip=keyed_preserved.keys())

        tasks: dict[str, asyncio.Task[ContentBlock]] = {}
        try:
            async with asyncio.TaskGroup() as tg:
                for spec in SEQUENCE:
                    if spec.key in keyed_preserved:
                        continue
                    if spec.window is not None and spec.key not in ctx.mains:
                        continue
                    tasks[spec.key] = tg.create_task(self._handlers[spec.block_type](spec, ctx))
        except ExceptionGroup as eg:
            logger.error(f"Block assembly failed in {len(eg.exceptions)} slot(s)")
            raise eg.exceptions[0] from None

        blocks: list[ContentBlock] = []
        for spec in SEQUENCE:
            block = keyed_preserved.get(spec.key)
            if block is None and spec.key in tasks:
                block = tasks[spec.key].result()
            if block is None:
                continue
            blocks.append(block.model_copy(update={"order_index": len(blocks)}))
        return blocks

    async def _claim_mains(
        self,
        ctx: AssemblyContext,
        resolved_locations: Sequence[ResolvedLocation],
        skip: Iterable[str],
    ) -> None:
        """Phase 1: match location slots to resolved locations, in slot order."""
        skipped = set(skip)
        consumed: set[int] = set()

        for spec in LOCATION_SLOTS:
            if spec.key in skipped or spec.window is None:
                continue
            index = next(
                (
                    i
                    for i, loc in enumerate(resolved_locations)
                    if i not in consumed and spec.window.matches(loc.slot_time)
                ),
                None,
            )
            if index is None:
                continue
            consumed.add(index)
            place = resolved_locations[index]

            if not await ctx.registry.claim_location(place.name, place.stable_id):
                name = await ctx.registry.claim_synthetic_name(
                    place.activity or f"Another option in {ctx.city}"
                )
                logger.info(f"Duplicate location {place.name!r} at {spec.key}, using {name!r}")
                place = synthetic_main(name, place, ctx.city)

            ctx.mains[spec.key] = place
            ctx.main_photos[spec.key] = await ctx.registry.claim_photos(
                place.photos, self._main_photo_limit
            )

    # Photos

    async def _search_photos(self, query: str, count: int, run: RunContext) -> list[str]:
        try:
            return await self._executor.execute(
                run.call("photos", "search"),
                self._photos_config,
                lambda: self._photos.search(query, count),
                run.cancel_token,
                cache_request={"query": query, "count": count},
            )
        except ProviderError as e:
            logger.warning(f"Photo search failed for {query!r}: {e}")
            return []

    async def _claim_photos(self, query: str, count: int, ctx: AssemblyContext) -> list[str]:
        """Unused photos for a query; the stock image when none are left."""
        # Over-fetch so already-claimed results can be skipped
        urls = await self._search_photos(query, count * 3, ctx.run)
        claimed = await ctx.registry.claim_photos(urls, count)
        return claimed or [STOCK_PHOTO_URL]

    # Block handlers

    async def _title_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        text = await self._narrative.title(ctx.city, ctx.audience, ctx.concept, ctx.run)
        return TitleBlock(content=TitleContent(text=text))

    async def _text_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        if spec.key == "closing":
            text = await self._narrative.closing_text(ctx.city, ctx.audience, ctx.concept, ctx.run)
        else:
            text = await self._narrative.intro_text(ctx.city, ctx.audience, ctx.concept, ctx.run)
        return TextBlock(content=TextContent(text=text))

    async def _divider_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        return DividerBlock()

    async def _photo_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        caption, photos = await asyncio.gather(
            self._narrative.photo_caption(ctx.city, ctx.concept, ctx.run),
            self._claim_photos(f"{ctx.city} street walking", self._illustrative_count, ctx),
        )
        return PhotoBlock(content=PhotoContent(photos=photos, caption=caption))

    async def _slide_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        slide, photos = await asyncio.gather(
            self._narrative.slide(ctx.city, ctx.concept, ctx.run),
            self._claim_photos(f"{ctx.city} {ctx.concept}", self._illustrative_count, ctx),
        )
        return SlideBlock(content=SlideContent(title=slide.title, text=slide.text, photos=photos))

    async def _three_columns_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        texts, *photo_lists = await asyncio.gather(
            self._narrative.three_columns(ctx.city, ctx.concept, ctx.run),
            *(self._claim_photos(f"{ctx.city} {q}", 1, ctx) for q in COLUMN_PHOTO_QUERIES),
        )
        columns = [
            Column(text=text, photo=photos[0])
            for text, photos in zip(texts, photo_lists, strict=True)
        ]
        return ThreeColumnsBlock(content=ThreeColumnsContent(columns=columns))

    async def _location_block(self, spec: SlotSpec, ctx: AssemblyContext) -> ContentBlock:
        window = spec.window
        if window is None:
            raise ValueError(f"slot {spec.key} has no time window")
        place = ctx.mains[spec.key]

        narrative = await self._narrative.location_block(
            place,
            window.purpose,
            ctx.city,
            ctx.audience,
            ctx.interests,
            ctx.concept,
            exclude=ctx.registry.used_names(),
            run=ctx.run,
        )

        main_photos = ctx.main_photos.get(spec.key) or await self._claim_photos(
            f"{place.name} {ctx.city}", 1, ctx
        )
        main = LocationEntry(
            name=place.name,
            address=place.address,
            description=narrative.description,
            recommendation=narrative.recommendation,
            photos=main_photos,
            rating=place.rating,
            price_level=place.price_level,
            approx_cost=approx_cost(place.price_level),
            category=place.category,
            source_tier=place.source_tier,
            stable_id=place.stable_id,
            time=place.slot_time,
        )

        alternatives: list[LocationEntry] = []
        for candidate in narrative.alternatives[:ALTERNATIVES_PER_LOCATION]:
            if await ctx.registry.claim_location(candidate.name):
                alternatives.append(await self._alternative_entry(candidate, ctx))
            else:
                logger.info(f"Rejected duplicate alternative {candidate.name!r} at {spec.key}")
                alternatives.append(await self._synthetic_alternative(place, window.purpose, ctx))
        while len(alternatives) < ALTERNATIVES_PER_LOCATION:
            alternatives.append(await self._synthetic_alternative(place, window.purpose, ctx))

        return LocationBlock(
            content=LocationContent(
                time_slot=window.label,
                purpose=window.purpose,
                main_location=main,
                alternative_locations=alternatives,
            )
        )

    async def _alternative_entry(
        self, candidate: AlternativeCandidate, ctx: AssemblyContext
    ) -> LocationEntry:
        photos = await self._claim_photos(f"{candidate.name} {ctx.city}", 1, ctx)
        return LocationEntry(
            name=candidate.name,
            address=candidate.address,
            description=candidate.description,
            recommendation=candidate.recommendation,
            photos=photos,
        )

    async def _synthetic_alternative(
        self, place: ResolvedLocation, purpose: str, ctx: AssemblyContext
    ) -> LocationEntry:
        name = await ctx.registry.claim_synthetic_name(f"Another option in {ctx.city}")
        photos = await self._claim_photos(f"{ctx.city} {place.category}", 1, ctx)
        return LocationEntry(
            name=name,
            address=f"{ctx.city} City Center",
            description=f"A nearby {place.category} that also suits {purpose.lower()}.",
            recommendation="Ask around for what is open today.",
            photos=photos,
            source_tier=SourceTier.synthetic,
        )
