"""Tests for the Google Places text search adapter."""

import httpx
import pytest

from backend.app.adapters.places import (
    PHOTO_URL,
    GooglePlacesClient,
    PlacesApiError,
    build_photo_url,
)


def place_item(n: int, photos: int = 0) -> dict[str, object]:
    return {
        "place_id": f"pid-{n}",
        "name": f"Place {n}",
        "formatted_address": f"Street {n}, Lisbon",
        "rating": 4.0 + n / 10,
        "price_level": 2,
        "types": ["cafe", "food"],
        "photos": [{"photo_reference": f"ref-{n}-{i}"} for i in range(photos)],
    }


@pytest.mark.asyncio
async def test_text_search_parses_results_in_provider_order() -> None:
    """Test that the adapter keeps provider order and maps fields."""
    mock_response = {"status": "OK", "results": [place_item(1, photos=5), place_item(2)]}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=mock_response)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    places = GooglePlacesClient("test-key", photo_limit=3, client=client)

    results = await places.text_search("breakfast coffee cafe in Lisbon")

    assert [r.name for r in results] == ["Place 1", "Place 2"]
    first = results[0]
    assert first.place_id == "pid-1"
    assert first.address == "Street 1, Lisbon"
    assert first.rating == pytest.approx(4.1)
    assert first.price_level == 2
    assert first.types == ("cafe", "food")
    # Photo references become URLs, capped at photo_limit
    assert len(first.photo_urls) == 3
    assert first.photo_urls[0] == build_photo_url("ref-1-0", "test-key", 800)
    assert results[1].photo_urls == ()

    await client.aclose()


@pytest.mark.asyncio
async def test_text_search_sends_query_language_and_key() -> None:
    """Test that the adapter constructs the text search request."""
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    places = GooglePlacesClient("test-key", language="pt", client=client)

    results = await places.text_search("dinner in Lisbon")

    assert results == []
    params = captured[0].url.params
    assert params["query"] == "dinner in Lisbon"
    assert params["language"] == "pt"
    assert params["key"] == "test-key"
    assert "textsearch" in str(captured[0].url)

    await client.aclose()


@pytest.mark.asyncio
async def test_text_search_raises_on_error_status() -> None:
    """Quota and auth failures come back as HTTP 200 with an error status."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"status": "OVER_QUERY_LIMIT", "error_message": "quota", "results": []}
        )

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    places = GooglePlacesClient("test-key", client=client)

    with pytest.raises(PlacesApiError, match="OVER_QUERY_LIMIT"):
        await places.text_search("anything")

    await client.aclose()


@pytest.mark.asyncio
async def test_text_search_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    places = GooglePlacesClient("test-key", client=client)

    with pytest.raises(httpx.HTTPStatusError):
        await places.text_search("anything")

    await client.aclose()


def test_build_photo_url() -> None:
    url = build_photo_url("abc", "k", max_width=400)
    assert url.startswith(PHOTO_URL)
    assert "maxwidth=400" in url
    assert "photoreference=abc" in url
    assert "key=k" in url
