"""Shared pytest fixtures for all test suites."""

import re
from collections.abc import AsyncGenerator, Callable, Iterator
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app.adapters.places import PlaceResult
from backend.app.assembly.assembler import ContentAssembler
from backend.app.budget.normalizer import BudgetNormalizer
from backend.app.db.inmemory import InMemoryCatalogStore, InMemorySessionStore
from backend.app.db.models import Base
from backend.app.db.repositories import CatalogRecord
from backend.app.llm.narrative import NarrativeGenerator
from backend.app.orchestration.pipeline import ItineraryPipeline
from backend.app.providers.executor import ProviderConfig, ProviderExecutor, get_breaker_registry
from backend.app.resolution.resolver import PlaceResolver


class RoutingLLM:
    """LLM fake answering by prompt substring; unmatched prompts get ''."""

    def __init__(self, routes: dict[str, str] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[str] = []

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str:
        self.calls.append(prompt)
        for marker, reply in self.routes.items():
            if marker in prompt:
                return reply
        return ""


class FailingLLM:
    """LLM fake that always raises."""

    def __init__(self) -> None:
        self.calls = 0

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str:
        self.calls += 1
        raise RuntimeError("provider down")


class FakePhotoSource:
    """Distinct URLs per query: https://img.test/<slug>/<n>.jpg."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.queries: list[str] = []

    async def search(self, query: str, count: int = 3) -> list[str]:
        self.queries.append(query)
        if self.fail:
            raise RuntimeError("photo search down")
        slug = re.sub(r"[^a-z0-9]+", "-", query.lower()).strip("-")
        return [f"https://img.test/{slug}/{n}.jpg" for n in range(count)]


class FakePlaces:
    """External place search fake keyed by query substring."""

    def __init__(
        self, results: dict[str, list[PlaceResult]] | None = None, fail: bool = False
    ) -> None:
        self.results = dict(results or {})
        self.fail = fail
        self.queries: list[str] = []

    async def text_search(self, query: str) -> list[PlaceResult]:
        self.queries.append(query)
        if self.fail:
            raise RuntimeError("places quota exceeded")
        for marker, results in self.results.items():
            if marker in query:
                return list(results)
        return []


class FailingCatalog:
    async def search(self, query: object) -> list[CatalogRecord]:
        raise RuntimeError("catalog unavailable")


async def no_sleep(seconds: float) -> None:
    return None


def fast_config(timeout_ms: int = 1000, cache_ttl_seconds: int = 0) -> ProviderConfig:
    """Provider config with no retries so failing fakes fail fast."""
    return ProviderConfig(
        hard_timeout_ms=timeout_ms,
        retry_count=0,
        retry_jitter_min_ms=0,
        retry_jitter_max_ms=0,
        cache_ttl_seconds=cache_ttl_seconds,
    )


LISBON_CATALOG = [
    CatalogRecord(
        location_id=1,
        city="Lisbon",
        name="Fábrica Coffee Roasters",
        address="Rua das Portas de Santo Antão 136, Lisbon",
        category="cafe",
        price_level=1,
        rating=4.6,
        description="A roastery with long tables and a slow morning crowd.",
        recommendations="Take the window seat and order whatever is on filter.",
        photos=("https://img.test/fabrica/0.jpg", "https://img.test/fabrica/1.jpg"),
        tags=("breakfast", "coffee"),
        interest_ids=(1,),
    ),
    CatalogRecord(
        location_id=2,
        city="Lisbon",
        name="Time Out Market",
        address="Av. 24 de Julho 49, Lisbon",
        category="restaurant",
        price_level=2,
        rating=4.4,
        description="A covered market hall where the city's kitchens share one roof.",
        recommendations="Walk the whole hall once before choosing where to eat.",
        tags=("lunch", "local food"),
        interest_ids=(1,),
    ),
    CatalogRecord(
        location_id=3,
        city="Lisbon",
        name="Miradouro da Senhora do Monte",
        address="Largo Monte, Lisbon",
        category="viewpoint",
        price_level=0,
        rating=4.8,
        description="The highest viewpoint in the old city, under a row of pines.",
        recommendations="Come forty minutes before sunset and stay after it.",
        tags=("viewpoint", "sunset"),
        interest_ids=(4,),
    ),
]


@pytest.fixture(autouse=True)
def clear_breakers() -> Iterator[None]:
    """Circuit breakers are process-wide; isolate every test."""
    get_breaker_registry().clear()
    yield
    get_breaker_registry().clear()


@pytest.fixture
def executor() -> ProviderExecutor:
    return ProviderExecutor(sleep_fn=no_sleep)


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Fake collaborators and helpers for building pipelines in tests."""
    return SimpleNamespace(
        RoutingLLM=RoutingLLM,
        FailingLLM=FailingLLM,
        FakePhotoSource=FakePhotoSource,
        FakePlaces=FakePlaces,
        FailingCatalog=FailingCatalog,
        fast_config=fast_config,
        no_sleep=no_sleep,
        LISBON_CATALOG=LISBON_CATALOG,
    )


@pytest.fixture
def lisbon_catalog() -> InMemoryCatalogStore:
    return InMemoryCatalogStore(LISBON_CATALOG)


@pytest.fixture
def make_pipeline(
    executor: ProviderExecutor,
) -> Callable[..., ItineraryPipeline]:
    """Factory for a pipeline wired entirely to in-process fakes."""

    def _make(
        *,
        llm: object | None = None,
        catalog: object | None = None,
        places: object | None = None,
        photos: object | None = None,
        store: object | None = None,
        deadline_seconds: float = 30.0,
        preview_location_limit: int | None = 2,
    ) -> ItineraryPipeline:
        narrative = NarrativeGenerator(llm or RoutingLLM(), executor, fast_config())  # type: ignore[arg-type]
        resolver = PlaceResolver(
            catalog if catalog is not None else InMemoryCatalogStore(),  # type: ignore[arg-type]
            places,  # type: ignore[arg-type]
            executor,
            fast_config(),
            fast_config(),
        )
        assembler = ContentAssembler(
            narrative,
            photos or FakePhotoSource(),  # type: ignore[arg-type]
            executor,
            fast_config(),
        )
        return ItineraryPipeline(
            narrative,
            resolver,
            assembler,
            BudgetNormalizer(),
            store if store is not None else InMemorySessionStore(),  # type: ignore[arg-type]
            deadline_seconds=deadline_seconds,
            preview_location_limit=preview_location_limit,
        )

    return _make


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite catalog database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()
