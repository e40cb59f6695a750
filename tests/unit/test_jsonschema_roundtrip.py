"""Test JSON schema export and roundtrip of the itinerary document."""

import importlib.util
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from backend.app.models import (
    Column,
    DayConcept,
    DividerBlock,
    GenerateRequest,
    Itinerary,
    LocationBlock,
    LocationContent,
    LocationEntry,
    ThreeColumnsBlock,
    ThreeColumnsContent,
    TimeSlot,
    TitleBlock,
    TitleContent,
    Visibility,
)

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "export_schemas.py"


def entry(name: str) -> LocationEntry:
    return LocationEntry(
        name=name,
        address=f"{name} street",
        description=f"About {name}.",
        recommendation=f"Visit {name} early.",
        photos=[f"https://img.test/{name}.jpg"],
    )


def sample_itinerary() -> Itinerary:
    blocks = [
        TitleBlock(content=TitleContent(text="Slow Lisbon")),
        LocationBlock(
            content=LocationContent(
                time_slot="09:00-10:00",
                purpose="Breakfast / Coffee + Gentle Start",
                main_location=entry("Fabrica"),
                alternative_locations=[entry("Alcoa"), entry("Manteigaria")],
            )
        ),
        DividerBlock(),
        ThreeColumnsBlock(
            content=ThreeColumnsContent(
                columns=[Column(text=t, photo=f"https://img.test/{t}.jpg") for t in "abc"]
            )
        ),
    ]
    return Itinerary(
        id="abc",
        city="Lisbon",
        date="2026-10-18",
        budget=100,
        audience="couples",
        interests=["food"],
        interest_ids=[1],
        concept=DayConcept(
            text="Slow day.",
            time_slots=[TimeSlot(time="09:00", activity="Coffee", category="cafe")],
        ),
        content_blocks=[b.model_copy(update={"order_index": i}) for i, b in enumerate(blocks)],
        total_cost=95,
        within_budget=True,
        visibility=Visibility.full,
    )


@pytest.fixture
def exported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the export script inside a scratch directory."""
    spec = importlib.util.spec_from_file_location("export_schemas", SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    monkeypatch.chdir(tmp_path)
    module.main()
    return tmp_path / "docs" / "schemas"


def test_schemas_exported_with_camel_case(exported: Path) -> None:
    itinerary = json.loads((exported / "Itinerary.schema.json").read_text())
    request = json.loads((exported / "GenerateRequest.schema.json").read_text())

    assert itinerary["title"] == "Itinerary"
    assert {"contentBlocks", "withinBudget", "totalCost"} <= set(itinerary["properties"])
    assert {"interestIds", "previewOnly"} <= set(request["properties"])


def test_itinerary_round_trips_through_json() -> None:
    itinerary = sample_itinerary()

    restored = Itinerary.model_validate_json(itinerary.model_dump_json(by_alias=True))

    assert restored == itinerary
    assert isinstance(restored.content_blocks[1], LocationBlock)
    assert isinstance(restored.content_blocks[3], ThreeColumnsBlock)


def test_wire_format_uses_camel_case_and_block_type_tags() -> None:
    data = sample_itinerary().model_dump(mode="json", by_alias=True)

    assert data["withinBudget"] is True
    assert [b["blockType"] for b in data["contentBlocks"]] == [
        "title",
        "location",
        "divider",
        "3columns",
    ]
    location = data["contentBlocks"][1]["content"]
    assert location["timeSlot"] == "09:00-10:00"
    assert location["mainLocation"]["name"] == "Fabrica"
    assert len(location["alternativeLocations"]) == 2
    assert data["contentBlocks"][1]["orderIndex"] == 1


def test_order_index_must_be_contiguous() -> None:
    data = sample_itinerary().model_dump(mode="json", by_alias=True)
    data["contentBlocks"][2]["orderIndex"] = 5

    with pytest.raises(ValidationError, match="orderIndex must be contiguous"):
        Itinerary.model_validate(data)


def test_location_needs_exactly_two_alternatives() -> None:
    with pytest.raises(ValidationError):
        LocationContent(
            time_slot="09:00-10:00",
            purpose="Breakfast",
            main_location=entry("A"),
            alternative_locations=[entry("B")],
        )


def test_three_columns_needs_three_columns() -> None:
    with pytest.raises(ValidationError):
        ThreeColumnsContent(columns=[Column(text="a", photo="p")] * 2)


def test_unknown_block_type_is_rejected() -> None:
    data = sample_itinerary().model_dump(mode="json", by_alias=True)
    data["contentBlocks"][2]["blockType"] = "video"

    with pytest.raises(ValidationError):
        Itinerary.model_validate(data)


def test_generate_request_accepts_camel_case_and_defaults() -> None:
    request = GenerateRequest.model_validate(
        {"city": "Lisbon", "budget": 100, "interestIds": [1, 4], "previewOnly": False}
    )

    assert request.interest_ids == [1, 4]
    assert request.preview_only is False
    assert request.audience == "travelers"
    assert GenerateRequest().preview_only is True


def test_time_slot_time_is_normalised() -> None:
    assert TimeSlot(time=" 9:05", activity="Coffee").time == "09:05"
    with pytest.raises(ValidationError):
        TimeSlot(time="25:00", activity="Coffee")
