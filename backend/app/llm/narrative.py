"""Narrative generator adapter.

Wraps the raw LLM client with the fixed tone contract, per-call prompts,
JSON response parsing, and deterministic fallbacks. Nothing in here raises on
provider failure: every operation degrades to templated text built from the
place name, category, and city so the pipeline never blocks on prose.
"""

import asyncio
import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from backend.app.errors import ProviderError
from backend.app.llm import prompts
from backend.app.llm.client import LLMClient
from backend.app.models.concept import DayConcept, TimeSlot
from backend.app.models.itinerary import Weather
from backend.app.models.location import ResolvedLocation
from backend.app.providers.executor import ProviderConfig, ProviderExecutor, RunContext

logger = logging.getLogger(__name__)

PROVIDER = "narrative"

_FENCE_PATTERN = re.compile(r"^\s*```[a-zA-Z]*\s*\n?|\n?\s*```\s*$")


@dataclass(frozen=True)
class AlternativeCandidate:
    """Alternative place proposed by the generator for a location slot."""

    name: str
    address: str
    description: str
    recommendation: str


@dataclass(frozen=True)
class LocationNarrative:
    description: str
    recommendation: str
    alternatives: list[AlternativeCandidate]


@dataclass(frozen=True)
class SlideText:
    title: str
    text: str


@dataclass(frozen=True)
class ItineraryMeta:
    title: str
    subtitle: str
    weather: Weather


# Fallback text

FALLBACK_INTRO = "Take your time. There is no rush."
FALLBACK_CLOSING = "Nothing else needs to happen."
FALLBACK_CAPTION = "A moment between places."
FALLBACK_SLIDE = SlideText(title="A quiet moment", text="Time slows down here.")
FALLBACK_COLUMNS = ("One way to be.", "Another way to be.", "A third way to be.")
FALLBACK_WEATHER = Weather(
    temperature=20,
    description="Mild and good for walking",
    clothing="Comfortable walking shoes and light layers",
    tips="Carry water and a light jacket for the evening.",
)


def fallback_description(name: str, category: str, city: str) -> str:
    return f"{name} is a {category} in {city} that suits an unhurried visit."


def fallback_recommendation(name: str) -> str:
    return f"Plan to spend unhurried time at {name}."


def fallback_title(city: str) -> str:
    return f"A day in {city}"


def fallback_subtitle(city: str, date: str, audience: str) -> str:
    return f"{date} in {city}, for {audience}".strip()


def default_day_concept(city: str) -> DayConcept:
    """Fixed eight-slot day used when concept generation fails."""
    slots = [
        TimeSlot(
            time="09:00",
            activity="Breakfast at a neighbourhood café",
            category="cafe",
            keywords=("breakfast", "coffee"),
            budget_tier="budget",
        ),
        TimeSlot(
            time="10:30",
            activity="Walk through the old town",
            category="attraction",
            keywords=("old town", "walking"),
            budget_tier="free",
        ),
        TimeSlot(
            time="12:30",
            activity="Long lunch",
            category="restaurant",
            keywords=("lunch", "local food"),
            budget_tier="moderate",
        ),
        TimeSlot(
            time="14:00",
            activity="Market browsing",
            category="market",
            keywords=("market", "local produce"),
            budget_tier="budget",
        ),
        TimeSlot(
            time="15:30",
            activity="Museum or gallery",
            category="museum",
            keywords=("museum", "gallery"),
            budget_tier="moderate",
        ),
        TimeSlot(
            time="17:30",
            activity="Viewpoint before dinner",
            category="viewpoint",
            keywords=("viewpoint", "sunset"),
            budget_tier="free",
        ),
        TimeSlot(
            time="19:30",
            activity="Dinner",
            category="restaurant",
            keywords=("dinner", "local cuisine"),
            budget_tier="moderate",
        ),
        TimeSlot(
            time="21:30",
            activity="Evening drink",
            category="bar",
            keywords=("wine bar", "evening"),
            budget_tier="moderate",
        ),
    ]
    return DayConcept(text=f"An unhurried day in {city}, following its own rhythm.", time_slots=slots)


# Response parsing


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def parse_json_object(text: str | None) -> dict[str, Any] | None:
    """Parse a JSON object out of a completion.

    Tolerates code fences and chatter around the outermost {...}.
    """
    if not text:
        return None
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def _clean_line(text: str | None) -> str | None:
    """Strip fences and wrapping quotes from a free-text completion."""
    if not text:
        return None
    cleaned = strip_code_fences(text).strip().strip('"').strip()
    return cleaned or None


def _str_field(data: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class NarrativeGenerator:
    """Tone-constrained prose for every block type, with deterministic fallbacks."""

    def __init__(self, llm: LLMClient, executor: ProviderExecutor, config: ProviderConfig) -> None:
        self._llm = llm
        self._executor = executor
        self._config = config

    async def _complete(
        self, operation: str, prompt: str, max_tokens: int, run: RunContext | None
    ) -> str | None:
        """Run one completion; None on any provider failure."""
        run = run or RunContext(trace_id="narrative")
        try:
            return await self._executor.execute(
                run.call(PROVIDER, operation),
                self._config,
                lambda: self._llm.complete(
                    system=prompts.SYSTEM_TONE, prompt=prompt, max_tokens=max_tokens
                ),
                run.cancel_token,
            )
        except ProviderError as e:
            logger.warning(f"Narrative {operation} failed, using fallback: {e}")
            return None

    async def day_concept(
        self,
        city: str,
        audience: str,
        interests: Sequence[str],
        budget: int,
        date: str,
        run: RunContext | None = None,
    ) -> DayConcept:
        """Concept string plus ordered time slots for the day."""
        raw = await self._complete(
            "day_concept",
            prompts.day_concept_prompt(city, audience, interests, budget, date),
            1200,
            run,
        )
        data = parse_json_object(raw)
        if data is None:
            return default_day_concept(city)

        slots: list[TimeSlot] = []
        for item in data.get("timeSlots") or data.get("time_slots") or []:
            if not isinstance(item, dict):
                continue
            try:
                slots.append(TimeSlot.model_validate(item))
            except PydanticValidationError:
                logger.info(f"Dropping malformed time slot from concept: {item!r}")

        if not slots:
            return default_day_concept(city)
        text = _str_field(data, "concept", "text") or default_day_concept(city).text
        return DayConcept(text=text, time_slots=slots)

    async def describe(
        self,
        place: ResolvedLocation,
        city: str,
        interests: Sequence[str],
        audience: str,
        concept: str,
        run: RunContext | None = None,
    ) -> str:
        """Two-sentence description; catalog text is returned verbatim."""
        if place.description:
            return place.description
        raw = await self._complete(
            "describe",
            prompts.describe_prompt(place.name, place.category, city, interests, audience, concept),
            200,
            run,
        )
        return _clean_line(raw) or fallback_description(place.name, place.category, city)

    async def recommend(
        self,
        place: ResolvedLocation,
        city: str,
        interests: Sequence[str],
        audience: str,
        concept: str,
        run: RunContext | None = None,
    ) -> str:
        """One-sentence recommendation; catalog text is returned verbatim."""
        if place.recommendation:
            return place.recommendation
        raw = await self._complete(
            "recommend",
            prompts.recommend_prompt(place.name, place.category, city, interests, audience, concept),
            120,
            run,
        )
        return _clean_line(raw) or fallback_recommendation(place.name)

    async def title(
        self, city: str, audience: str, concept: str, run: RunContext | None = None
    ) -> str:
        raw = await self._complete("title", prompts.title_prompt(city, audience, concept), 40, run)
        return _clean_line(raw) or fallback_title(city)

    async def subtitle(
        self, city: str, date: str, audience: str, concept: str, run: RunContext | None = None
    ) -> str:
        raw = await self._complete(
            "subtitle", prompts.subtitle_prompt(city, date, audience, concept), 60, run
        )
        return _clean_line(raw) or fallback_subtitle(city, date, audience)

    async def intro_text(
        self, city: str, audience: str, concept: str, run: RunContext | None = None
    ) -> str:
        raw = await self._complete("intro_text", prompts.intro_prompt(city, audience, concept), 200, run)
        return _clean_line(raw) or FALLBACK_INTRO

    async def closing_text(
        self, city: str, audience: str, concept: str, run: RunContext | None = None
    ) -> str:
        raw = await self._complete(
            "closing_text", prompts.closing_prompt(city, audience, concept), 120, run
        )
        return _clean_line(raw) or FALLBACK_CLOSING

    async def photo_caption(self, city: str, concept: str, run: RunContext | None = None) -> str:
        raw = await self._complete("photo_caption", prompts.caption_prompt(city, concept), 40, run)
        return _clean_line(raw) or FALLBACK_CAPTION

    async def slide(self, city: str, concept: str, run: RunContext | None = None) -> SlideText:
        data = parse_json_object(
            await self._complete("slide", prompts.slide_prompt(city, concept), 200, run)
        )
        if data is None:
            return FALLBACK_SLIDE
        return SlideText(
            title=_str_field(data, "title") or FALLBACK_SLIDE.title,
            text=_str_field(data, "text") or FALLBACK_SLIDE.text,
        )

    async def three_columns(
        self, city: str, concept: str, run: RunContext | None = None
    ) -> list[str]:
        """Exactly three one-sentence column texts."""
        data = parse_json_object(
            await self._complete("three_columns", prompts.three_columns_prompt(city, concept), 250, run)
        )
        columns: list[str] = []
        if data is not None:
            for item in data.get("columns") or []:
                text = item.get("text") if isinstance(item, dict) else item
                if isinstance(text, str) and text.strip():
                    columns.append(text.strip())
        columns = columns[:3]
        columns.extend(FALLBACK_COLUMNS[len(columns) :])
        return columns

    async def location_block(
        self,
        place: ResolvedLocation,
        purpose: str,
        city: str,
        audience: str,
        interests: Sequence[str],
        concept: str,
        exclude: Sequence[str] = (),
        run: RunContext | None = None,
    ) -> LocationNarrative:
        """Main text plus candidate alternatives from one structured request.

        Alternatives are returned as proposed (possibly fewer than two, possibly
        duplicates); the assembler owns padding and de-duplication.
        """
        data = parse_json_object(
            await self._complete(
                "location_block",
                prompts.location_block_prompt(
                    place.name, place.category, purpose, city, audience, interests, concept, exclude
                ),
                700,
                run,
            )
        )
        data = data or {}

        main = data.get("mainLocation") or data.get("main") or {}
        if not isinstance(main, dict):
            main = {}
        description = place.description or _str_field(main, "description")
        recommendation = place.recommendation or _str_field(
            main, "recommendation", "recommendations"
        )

        alternatives: list[AlternativeCandidate] = []
        for item in data.get("alternativeLocations") or data.get("alternatives") or []:
            if not isinstance(item, dict):
                continue
            name = _str_field(item, "name")
            if not name:
                continue
            alternatives.append(
                AlternativeCandidate(
                    name=name,
                    address=_str_field(item, "address") or f"{city} City Center",
                    description=_str_field(item, "description")
                    or fallback_description(name, "place", city),
                    recommendation=_str_field(item, "recommendation", "recommendations")
                    or fallback_recommendation(name),
                )
            )

        # Structured reply lacked main text: ask for it on its own
        if description is None or recommendation is None:
            description, recommendation = await asyncio.gather(
                self._or_describe(description, place, city, interests, audience, concept, run),
                self._or_recommend(recommendation, place, city, interests, audience, concept, run),
            )

        return LocationNarrative(
            description=description,
            recommendation=recommendation,
            alternatives=alternatives,
        )

    async def _or_describe(
        self,
        existing: str | None,
        place: ResolvedLocation,
        city: str,
        interests: Sequence[str],
        audience: str,
        concept: str,
        run: RunContext | None,
    ) -> str:
        if existing:
            return existing
        return await self.describe(place, city, interests, audience, concept, run)

    async def _or_recommend(
        self,
        existing: str | None,
        place: ResolvedLocation,
        city: str,
        interests: Sequence[str],
        audience: str,
        concept: str,
        run: RunContext | None,
    ) -> str:
        if existing:
            return existing
        return await self.recommend(place, city, interests, audience, concept, run)

    async def weather(self, city: str, date: str, run: RunContext | None = None) -> Weather:
        data = parse_json_object(
            await self._complete("weather", prompts.weather_prompt(city, date), 200, run)
        )
        if data is None:
            return FALLBACK_WEATHER
        try:
            return Weather.model_validate(
                {
                    "temperature": data.get("temperature", FALLBACK_WEATHER.temperature),
                    "description": _str_field(data, "description") or FALLBACK_WEATHER.description,
                    "clothing": _str_field(data, "clothing") or FALLBACK_WEATHER.clothing,
                    "tips": _str_field(data, "tips") or FALLBACK_WEATHER.tips,
                }
            )
        except PydanticValidationError:
            return FALLBACK_WEATHER

    async def metadata(
        self,
        city: str,
        date: str,
        audience: str,
        concept: str,
        run: RunContext | None = None,
    ) -> ItineraryMeta:
        """Title, subtitle and weather, generated concurrently."""
        title, subtitle, weather = await asyncio.gather(
            self.title(city, audience, concept, run),
            self.subtitle(city, date, audience, concept, run),
            self.weather(city, date, run),
        )
        return ItineraryMeta(title=title, subtitle=subtitle, weather=weather)
