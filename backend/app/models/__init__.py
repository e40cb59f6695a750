"""Models package - re-exports for convenience."""

from backend.app.models.blocks import (
    Column,
    ContentBlock,
    DividerBlock,
    DividerContent,
    LocationBlock,
    LocationContent,
    PhotoBlock,
    PhotoContent,
    SlideBlock,
    SlideContent,
    TextBlock,
    TextContent,
    ThreeColumnsBlock,
    ThreeColumnsContent,
    TitleBlock,
    TitleContent,
)
from backend.app.models.common import (
    BlockType,
    CamelModel,
    ItineraryState,
    SourceTier,
    Visibility,
)
from backend.app.models.concept import DayConcept, TimeSlot
from backend.app.models.itinerary import Activity, GenerateRequest, Itinerary, Weather
from backend.app.models.location import LocationEntry, ResolvedLocation

__all__ = [
    # Common
    "CamelModel",
    "BlockType",
    "ItineraryState",
    "SourceTier",
    "Visibility",
    # Concept
    "DayConcept",
    "TimeSlot",
    # Locations
    "ResolvedLocation",
    "LocationEntry",
    # Blocks
    "ContentBlock",
    "TitleBlock",
    "TitleContent",
    "TextBlock",
    "TextContent",
    "DividerBlock",
    "DividerContent",
    "PhotoBlock",
    "PhotoContent",
    "SlideBlock",
    "SlideContent",
    "ThreeColumnsBlock",
    "ThreeColumnsContent",
    "Column",
    "LocationBlock",
    "LocationContent",
    # Itinerary
    "Activity",
    "GenerateRequest",
    "Itinerary",
    "Weather",
]
