"""Tests for the Unsplash photo search adapter."""

import httpx
import pytest

from backend.app.adapters.photos import STOCK_PHOTO_URL, UnsplashPhotoSource


@pytest.mark.asyncio
async def test_search_returns_regular_urls_in_order() -> None:
    mock_response = {
        "results": [
            {"urls": {"regular": "https://images.test/a.jpg", "small": "x"}},
            {"urls": {}},
            {"urls": {"regular": "https://images.test/b.jpg"}},
        ]
    }
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=mock_response)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = UnsplashPhotoSource("access-key", client=client)

    urls = await source.search("Lisbon street walking", count=3)

    assert urls == ["https://images.test/a.jpg", "https://images.test/b.jpg"]
    params = captured[0].url.params
    assert params["query"] == "Lisbon street walking"
    assert params["per_page"] == "3"
    assert params["client_id"] == "access-key"

    await client.aclose()


@pytest.mark.asyncio
async def test_search_without_key_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = UnsplashPhotoSource(None, client=client)

    assert source.enabled is False
    assert await source.search("Lisbon") == []

    await client.aclose()


@pytest.mark.asyncio
async def test_search_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"errors": ["Rate Limit Exceeded"]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = UnsplashPhotoSource("access-key", client=client)

    with pytest.raises(httpx.HTTPStatusError):
        await source.search("Lisbon")

    await client.aclose()


def test_stock_photo_is_an_unsplash_url() -> None:
    assert STOCK_PHOTO_URL.startswith("https://images.unsplash.com/")
