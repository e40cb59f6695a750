"""Repository protocol interfaces for the catalog and the session store."""

from dataclasses import dataclass, field
from typing import Protocol

from backend.app.models.common import Visibility
from backend.app.models.itinerary import Itinerary

SESSION_KEY_PREFIX = "itinerary:"


def session_key(itinerary_id: str) -> str:
    """Session store key for an itinerary id."""
    return f"{SESSION_KEY_PREFIX}{itinerary_id}"


@dataclass(frozen=True)
class CatalogRecord:
    """A vetted catalog location."""

    location_id: int
    city: str
    name: str
    address: str
    category: str
    price_level: int | None = None
    rating: float | None = None
    description: str | None = None
    recommendations: str | None = None
    photos: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    interest_ids: tuple[int, ...] = ()
    verified: bool = True
    source: str = "admin"


@dataclass(frozen=True)
class CatalogQuery:
    """Catalog search filter.

    Empty tuples mean "no constraint" for that dimension. Only verified or
    admin-sourced entries ever match.
    """

    city: str
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = field(default_factory=tuple)
    interest_ids: tuple[int, ...] = ()
    limit: int = 10


class CatalogStore(Protocol):
    """Read-only access to vetted catalog locations."""

    async def search(self, query: CatalogQuery) -> list[CatalogRecord]:
        """Return matching entries in catalog order (location id ascending)."""
        ...


class SessionStore(Protocol):
    """Ephemeral itinerary persistence keyed by ``itinerary:<id>``.

    Writes are compare-and-set on the document's ``version``: a document read
    at version N may only overwrite a stored document still at version N. The
    stored copy is written at version N+1 with the id filled in.
    """

    async def save(self, itinerary: Itinerary) -> str:
        """Persist the document and return its id (new uuid when id is None).

        Raises:
            ConflictError: Stored version differs from itinerary.version
            PersistenceError: Backend write failed
        """
        ...

    async def load(self, itinerary_id: str) -> Itinerary | None:
        """Load a document, None if unknown or expired.

        Raises:
            PersistenceError: Backend read failed
        """
        ...

    async def set_visibility(
        self, itinerary_id: str, visibility: Visibility, *, expected_version: int | None = None
    ) -> Itinerary:
        """Flip visibility and return the stored document.

        Raises:
            NotFoundError: Unknown or expired id
            ConflictError: Stored version differs from expected_version
            PersistenceError: Backend failure
        """
        ...


def stamped(itinerary: Itinerary, itinerary_id: str) -> Itinerary:
    """The copy a session store writes for a save of ``itinerary``."""
    return itinerary.model_copy(update={"id": itinerary_id, "version": itinerary.version + 1})
