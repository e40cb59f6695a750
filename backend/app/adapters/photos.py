"""Photo search adapter using the Unsplash API."""

import httpx

SEARCH_URL = "https://api.unsplash.com/search/photos"

# Generic image used when search is unavailable or every result is taken
STOCK_PHOTO_URL = (
    "https://images.unsplash.com/photo-1469474968028-56623f02e42e?w=800&h=600&fit=crop&q=80"
)


class UnsplashPhotoSource:
    """Free-text photo search returning image URLs in relevance order."""

    def __init__(
        self,
        access_key: str | None,
        *,
        base_url: str = SEARCH_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_key = access_key
        self._base_url = base_url
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self._access_key)

    async def search(self, query: str, count: int = 3) -> list[str]:
        """Search photos for a query.

        Returns an empty list when no access key is configured.

        Raises:
            httpx.HTTPError: On network or HTTP errors
        """
        if not self._access_key:
            return []

        params: dict[str, str | int] = {
            "query": query,
            "per_page": count,
            "orientation": "landscape",
            "client_id": self._access_key,
        }

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

        urls: list[str] = []
        for item in data.get("results", []):
            url = item.get("urls", {}).get("regular")
            if url:
                urls.append(url)
        return urls
