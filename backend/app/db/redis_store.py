"""Redis-backed session store.

Key schema:

  itinerary:{id}
      Type : String (itinerary JSON, camelCase)
      TTL  : session_ttl_seconds (default 2,592,000 s = 30 days; reset on each write)

Writes use WATCH/MULTI so a document is only overwritten when its stored
version still matches the version the writer read.
"""

import json
import logging
import uuid
from datetime import UTC, datetime

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from backend.app.db.repositories import session_key, stamped
from backend.app.errors import ConflictError, NotFoundError, PersistenceError
from backend.app.models.common import Visibility
from backend.app.models.itinerary import Itinerary

logger = logging.getLogger(__name__)


def _stored_version(raw: str | bytes) -> int:
    return int(json.loads(raw).get("version", 0))


class RedisSessionStore:
    """SessionStore on redis.asyncio."""

    def __init__(self, client: Redis, ttl_seconds: int = 60 * 60 * 24 * 30) -> None:
        self._redis = client
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 60 * 60 * 24 * 30) -> "RedisSessionStore":
        return cls(Redis.from_url(url, decode_responses=True), ttl_seconds=ttl_seconds)

    async def save(self, itinerary: Itinerary) -> str:
        itinerary_id = itinerary.id or str(uuid.uuid4())
        try:
            await self._compare_and_set(itinerary_id, itinerary, itinerary.version)
        except WatchError as e:
            raise ConflictError(f"itinerary {itinerary_id} changed during write") from e
        except RedisError as e:
            logger.error(f"Session store write failed for {itinerary_id}: {e}")
            raise PersistenceError(f"session store write failed: {type(e).__name__}") from e
        return itinerary_id

    async def _compare_and_set(
        self, itinerary_id: str, itinerary: Itinerary, expected_version: int
    ) -> None:
        key = session_key(itinerary_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            raw = await pipe.get(key)
            if raw is not None and _stored_version(raw) != expected_version:
                await pipe.unwatch()
                raise ConflictError(
                    f"itinerary {itinerary_id} is at version {_stored_version(raw)}, "
                    f"write was based on {expected_version}"
                )
            document = stamped(itinerary, itinerary_id)
            pipe.multi()
            pipe.set(key, document.model_dump_json(by_alias=True), ex=self._ttl)
            await pipe.execute()

    async def load(self, itinerary_id: str) -> Itinerary | None:
        try:
            raw = await self._redis.get(session_key(itinerary_id))
        except RedisError as e:
            logger.error(f"Session store read failed for {itinerary_id}: {e}")
            raise PersistenceError(f"session store read failed: {type(e).__name__}") from e
        if raw is None:
            return None
        return Itinerary.model_validate_json(raw)

    async def set_visibility(
        self, itinerary_id: str, visibility: Visibility, *, expected_version: int | None = None
    ) -> Itinerary:
        current = await self.load(itinerary_id)
        if current is None:
            raise NotFoundError(f"itinerary {itinerary_id} not found")
        if expected_version is not None and current.version != expected_version:
            raise ConflictError(
                f"itinerary {itinerary_id} is at version {current.version}, "
                f"expected {expected_version}"
            )
        updated = current.model_copy(
            update={"visibility": visibility, "updated_at": datetime.now(UTC)}
        )
        await self.save(updated)
        return stamped(updated, itinerary_id)

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()
