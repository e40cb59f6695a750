"""Itinerary models - the aggregate document returned to callers and persisted."""

from datetime import UTC, datetime

from pydantic import Field, model_validator

from backend.app.models.blocks import ContentBlock, LocationBlock
from backend.app.models.common import CamelModel, Visibility
from backend.app.models.concept import DayConcept


class Activity(CamelModel):
    """Budget-bearing projection of a location block's main location."""

    time: str
    name: str
    description: str
    category: str
    price: int = Field(..., ge=0)
    price_level: int = Field(2, ge=0, le=4)
    price_range: str
    location: str
    photos: list[str] = Field(default_factory=list)
    recommendations: str = ""
    rating: float | None = None


class Weather(CamelModel):
    temperature: float
    description: str
    clothing: str
    tips: str = ""


class GenerateRequest(CamelModel):
    """Input for a generation run.

    Fields are permissive here so that missing values surface as a pipeline
    ValidationError rather than a model error.
    """

    city: str = ""
    audience: str = "travelers"
    interests: list[str] = Field(default_factory=list)
    interest_ids: list[int] = Field(default_factory=list)
    date: str = ""
    budget: int | None = None
    preview_only: bool = True


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Itinerary(CamelModel):
    """Complete day guide document."""

    id: str | None = None
    city: str
    date: str
    budget: int = Field(..., gt=0)
    audience: str
    interests: list[str] = Field(default_factory=list)
    interest_ids: list[int] = Field(default_factory=list)
    title: str = ""
    subtitle: str = ""
    weather: Weather | None = None
    concept: DayConcept
    content_blocks: list[ContentBlock] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)
    total_cost: int = 0
    within_budget: bool = False
    visibility: Visibility = Visibility.preview
    payment_confirmed: bool = False
    version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def validate_contiguous_order(self) -> "Itinerary":
        """Ensure orderIndex runs 0..N-1 in list order."""
        for position, block in enumerate(self.content_blocks):
            if block.order_index != position:
                raise ValueError(
                    f"orderIndex must be contiguous from 0; block {position} has "
                    f"{block.order_index}"
                )
        return self

    def location_blocks(self) -> list[LocationBlock]:
        """Location blocks in document order."""
        return [b for b in self.content_blocks if isinstance(b, LocationBlock)]
