"""In-memory implementations of repository interfaces."""

import asyncio
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from backend.app.db.repositories import CatalogQuery, CatalogRecord, session_key, stamped
from backend.app.errors import ConflictError, NotFoundError
from backend.app.models.common import Visibility
from backend.app.models.itinerary import Itinerary


def matches_query(record: CatalogRecord, query: CatalogQuery) -> bool:
    """Catalog filter shared by the in-memory store and tests."""
    if record.city.lower() != query.city.lower():
        return False
    if not (record.verified or record.source == "admin"):
        return False
    if query.categories and record.category.lower() not in {c.lower() for c in query.categories}:
        return False
    if query.tags:
        wanted = {t.lower() for t in query.tags}
        if not wanted & {t.lower() for t in record.tags}:
            return False
    if query.interest_ids and not set(query.interest_ids) & set(record.interest_ids):
        return False
    return True


class InMemoryCatalogStore:
    """In-memory implementation of CatalogStore."""

    def __init__(self, records: Iterable[CatalogRecord] = ()) -> None:
        self._records: list[CatalogRecord] = sorted(records, key=lambda r: r.location_id)
        self.queries: list[CatalogQuery] = []

    def add(self, record: CatalogRecord) -> None:
        self._records.append(record)
        self._records.sort(key=lambda r: r.location_id)

    async def search(self, query: CatalogQuery) -> list[CatalogRecord]:
        self.queries.append(query)
        return [r for r in self._records if matches_query(r, query)][: query.limit]


class InMemorySessionStore:
    """In-memory implementation of SessionStore with TTL expiry.

    Documents are held serialized so loads return independent copies, the way
    a real key-value store would.
    """

    def __init__(
        self,
        ttl_seconds: int = 60 * 60 * 24 * 30,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._now = now_fn or (lambda: datetime.now(UTC))
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._lock = asyncio.Lock()

    def _get_raw(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if self._now() >= expires_at:
            del self._entries[key]
            return None
        return raw

    def expires_at(self, itinerary_id: str) -> datetime | None:
        entry = self._entries.get(session_key(itinerary_id))
        return entry[1] if entry else None

    async def save(self, itinerary: Itinerary) -> str:
        async with self._lock:
            return self._save_locked(itinerary)

    def _save_locked(self, itinerary: Itinerary) -> str:
        itinerary_id = itinerary.id or str(uuid.uuid4())
        key = session_key(itinerary_id)

        raw = self._get_raw(key)
        if raw is not None:
            stored_version = Itinerary.model_validate_json(raw).version
            if stored_version != itinerary.version:
                raise ConflictError(
                    f"itinerary {itinerary_id} is at version {stored_version}, "
                    f"write was based on {itinerary.version}"
                )

        document = stamped(itinerary, itinerary_id)
        self._entries[key] = (document.model_dump_json(by_alias=True), self._now() + self._ttl)
        return itinerary_id

    async def load(self, itinerary_id: str) -> Itinerary | None:
        raw = self._get_raw(session_key(itinerary_id))
        if raw is None:
            return None
        return Itinerary.model_validate_json(raw)

    async def set_visibility(
        self, itinerary_id: str, visibility: Visibility, *, expected_version: int | None = None
    ) -> Itinerary:
        async with self._lock:
            raw = self._get_raw(session_key(itinerary_id))
            if raw is None:
                raise NotFoundError(f"itinerary {itinerary_id} not found")
            current = Itinerary.model_validate_json(raw)
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(
                    f"itinerary {itinerary_id} is at version {current.version}, "
                    f"expected {expected_version}"
                )
            updated = current.model_copy(
                update={"visibility": visibility, "updated_at": self._now()}
            )
            self._save_locked(updated)
            return stamped(updated, itinerary_id)
