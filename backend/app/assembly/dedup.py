"""Run-scoped de-duplication registry for locations and photos.

One registry lives for one assembly run. Slot tasks run concurrently, so every
check-and-claim happens under a single asyncio.Lock: two slots can never both
claim the same location or photo.
"""

import asyncio
from collections.abc import Iterable

from backend.app.adapters.photos import STOCK_PHOTO_URL


def normalize_name(name: str) -> str:
    """Case-insensitive, whitespace-collapsed identity for a place name."""
    return " ".join(name.split()).casefold()


class UsedRegistry:
    """Claimed location identities and photo URLs for one itinerary."""

    def __init__(self) -> None:
        self._names: set[str] = set()
        self._stable_ids: set[str] = set()
        self._photos: set[str] = set()
        self._claimed_names: list[str] = []
        self._lock = asyncio.Lock()

    def _location_taken(self, name: str, stable_id: str | None) -> bool:
        if normalize_name(name) in self._names:
            return True
        return stable_id is not None and stable_id in self._stable_ids

    def _add_location(self, name: str, stable_id: str | None) -> None:
        self._names.add(normalize_name(name))
        self._claimed_names.append(name)
        if stable_id is not None:
            self._stable_ids.add(stable_id)

    async def claim_location(self, name: str, stable_id: str | None = None) -> bool:
        """Claim a location; False if its name or stable id is already used."""
        async with self._lock:
            if self._location_taken(name, stable_id):
                return False
            self._add_location(name, stable_id)
            return True

    async def claim_synthetic_name(self, base: str) -> str:
        """Claim and return the first unused of ``base``, ``base (2)``, ..."""
        async with self._lock:
            candidate = base
            n = 2
            while self._location_taken(candidate, None):
                candidate = f"{base} ({n})"
                n += 1
            self._add_location(candidate, None)
            return candidate

    async def claim_photos(self, urls: Iterable[str], limit: int) -> list[str]:
        """Claim up to ``limit`` unused URLs, in order."""
        claimed: list[str] = []
        async with self._lock:
            for url in urls:
                if len(claimed) >= limit:
                    break
                if url == STOCK_PHOTO_URL or url in self._photos:
                    continue
                self._photos.add(url)
                claimed.append(url)
        return claimed

    async def preseed(
        self, locations: Iterable[tuple[str, str | None]], photos: Iterable[str]
    ) -> None:
        """Mark locations and photos from already-generated blocks as used."""
        async with self._lock:
            for name, stable_id in locations:
                if not self._location_taken(name, stable_id):
                    self._add_location(name, stable_id)
            for url in photos:
                if url != STOCK_PHOTO_URL:
                    self._photos.add(url)

    def used_names(self) -> list[str]:
        """Snapshot of claimed location names, in claim order."""
        return list(self._claimed_names)

    def is_photo_used(self, url: str) -> bool:
        return url in self._photos
