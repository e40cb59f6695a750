"""Google Places text search adapter (external tier of place resolution)."""

from dataclasses import dataclass, field
from typing import Any

import httpx

TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"

# Statuses that mean "the call worked"; everything else is a provider failure
_OK_STATUSES = {"OK", "ZERO_RESULTS"}


class PlacesApiError(Exception):
    """Places API answered with an error status (quota, auth, bad request)."""

    pass


@dataclass(frozen=True)
class PlaceResult:
    """One text search hit, reduced to what the resolver needs."""

    place_id: str
    name: str
    address: str
    rating: float | None = None
    price_level: int | None = None
    photo_urls: tuple[str, ...] = ()
    types: tuple[str, ...] = field(default_factory=tuple)


def build_photo_url(reference: str, api_key: str, max_width: int = 800) -> str:
    """Public photo URL for a photo reference."""
    return f"{PHOTO_URL}?maxwidth={max_width}&photoreference={reference}&key={api_key}"


class GooglePlacesClient:
    """Text search against the Google Places web service."""

    def __init__(
        self,
        api_key: str,
        *,
        language: str = "en",
        photo_max_width: int = 800,
        photo_limit: int = 3,
        base_url: str = TEXT_SEARCH_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            api_key: Google Maps API key
            language: Result language
            photo_max_width: Width requested for photo URLs
            photo_limit: Photos kept per result
            base_url: Text search endpoint
            client: Optional httpx client (for testing with mocks)
        """
        self._api_key = api_key
        self._language = language
        self._photo_max_width = photo_max_width
        self._photo_limit = photo_limit
        self._base_url = base_url
        self._client = client

    async def text_search(self, query: str) -> list[PlaceResult]:
        """Run a text search and return results in provider order.

        Raises:
            httpx.HTTPError: On network or HTTP errors
            PlacesApiError: On a non-OK API status
        """
        params = {"query": query, "language": self._language, "key": self._api_key}

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=4.0)
            close_client = True

        try:
            response = await client.get(self._base_url, params=params)
            response.raise_for_status()
            data = response.json()
        finally:
            if close_client:
                await client.aclose()

        status = data.get("status", "OK")
        if status not in _OK_STATUSES:
            raise PlacesApiError(f"Places API status {status}: {data.get('error_message', '')}")

        return [self._parse_result(item) for item in data.get("results", [])]

    def _parse_result(self, item: dict[str, Any]) -> PlaceResult:
        photos = [
            build_photo_url(p["photo_reference"], self._api_key, self._photo_max_width)
            for p in item.get("photos", [])[: self._photo_limit]
            if p.get("photo_reference")
        ]
        return PlaceResult(
            place_id=item.get("place_id", ""),
            name=item.get("name", ""),
            address=item.get("formatted_address") or item.get("vicinity", ""),
            rating=item.get("rating"),
            price_level=item.get("price_level"),
            photo_urls=tuple(photos),
            types=tuple(item.get("types", [])),
        )
