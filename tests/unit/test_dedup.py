"""Tests for the run-scoped de-duplication registry."""

import asyncio

import pytest

from backend.app.adapters.photos import STOCK_PHOTO_URL
from backend.app.assembly.dedup import UsedRegistry, normalize_name


def test_normalize_name_is_case_and_whitespace_insensitive() -> None:
    assert normalize_name("  Time  Out\tMarket ") == normalize_name("time out market")
    assert normalize_name("STRASSE") == normalize_name("straße")


@pytest.mark.asyncio
async def test_claim_location_rejects_same_name_any_case() -> None:
    registry = UsedRegistry()

    assert await registry.claim_location("Time Out Market", "catalog:2") is True
    assert await registry.claim_location("time out market") is False
    assert registry.used_names() == ["Time Out Market"]


@pytest.mark.asyncio
async def test_claim_location_rejects_same_stable_id_under_other_name() -> None:
    registry = UsedRegistry()

    assert await registry.claim_location("Mercado da Ribeira", "place:abc") is True
    assert await registry.claim_location("Time Out Market Lisboa", "place:abc") is False


@pytest.mark.asyncio
async def test_null_stable_ids_never_collide() -> None:
    registry = UsedRegistry()

    assert await registry.claim_location("A", None) is True
    assert await registry.claim_location("B", None) is True


@pytest.mark.asyncio
async def test_claim_synthetic_name_numbers_duplicates() -> None:
    registry = UsedRegistry()

    first = await registry.claim_synthetic_name("Another option in Lisbon")
    second = await registry.claim_synthetic_name("Another option in Lisbon")
    third = await registry.claim_synthetic_name("another option in lisbon")

    assert first == "Another option in Lisbon"
    assert second == "Another option in Lisbon (2)"
    assert third == "another option in lisbon (3)"


@pytest.mark.asyncio
async def test_claim_photos_skips_used_and_stock_urls() -> None:
    registry = UsedRegistry()

    first = await registry.claim_photos(["a", "b", STOCK_PHOTO_URL], limit=10)
    second = await registry.claim_photos(["b", "c", "d", "e"], limit=2)

    assert first == ["a", "b"]
    assert second == ["c", "d"]
    assert registry.is_photo_used("e") is False
    assert registry.is_photo_used(STOCK_PHOTO_URL) is False


@pytest.mark.asyncio
async def test_preseed_marks_locations_and_photos_used() -> None:
    registry = UsedRegistry()
    await registry.preseed([("Fábrica Coffee Roasters", "catalog:1")], ["p1", STOCK_PHOTO_URL])

    assert await registry.claim_location("fábrica coffee roasters") is False
    assert await registry.claim_location("Other", "catalog:1") is False
    assert await registry.claim_photos(["p1", "p2"], limit=5) == ["p2"]


@pytest.mark.asyncio
async def test_concurrent_claims_have_one_winner() -> None:
    registry = UsedRegistry()

    results = await asyncio.gather(
        *(registry.claim_location("Miradouro da Graça", "place:x") for _ in range(20))
    )

    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_concurrent_photo_claims_are_disjoint() -> None:
    registry = UsedRegistry()
    urls = [f"u{i}" for i in range(6)]

    claimed = await asyncio.gather(*(registry.claim_photos(urls, limit=2) for _ in range(4)))

    flat = [url for batch in claimed for url in batch]
    assert len(flat) == len(set(flat)) == 6
