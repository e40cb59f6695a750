"""Location models - resolved places and the entries rendered inside blocks."""

from pydantic import ConfigDict, Field

from backend.app.models.common import CamelModel, SourceTier


class ResolvedLocation(CamelModel):
    """Concrete place attached to one time slot.

    Created during resolution and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    rating: float | None = None
    price_level: int = Field(2, ge=0, le=4)
    photos: tuple[str, ...] = ()
    source_tier: SourceTier
    stable_id: str | None = None
    category: str = "attraction"
    slot_time: str
    activity: str = ""
    description: str | None = None
    recommendation: str | None = None


class LocationEntry(CamelModel):
    """A main or alternative location as rendered in a location block."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    description: str
    recommendation: str
    photos: list[str] = Field(default_factory=list)
    rating: float | None = None
    price_level: int | None = None
    approx_cost: str | None = None
    category: str | None = None
    source_tier: SourceTier | None = None
    stable_id: str | None = None
    time: str | None = None


class AlternativePlace(CamelModel):
    """A nearby place offered to swap in for a rendered location."""

    name: str
    address: str
    rating: float = 4.0
    price_level: int = Field(2, ge=0, le=4)
    photos: list[str] = Field(default_factory=list)
    place_id: str | None = None


class AlternativesResponse(CamelModel):
    """Response of GET /itineraries/alternatives."""

    alternatives: list[AlternativePlace]
