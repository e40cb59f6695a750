"""Common types and enums shared across all models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model for the itinerary JSON contract (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceTier(str, Enum):
    """Which resolution tier produced a location."""

    catalog = "catalog"
    external = "external"
    synthetic = "synthetic"


class Visibility(str, Enum):
    """How much of an itinerary the caller may see."""

    preview = "preview"
    full = "full"


class ItineraryState(str, Enum):
    """Lifecycle state of an itinerary document."""

    generating = "generating"
    preview = "preview"
    payment = "payment"
    full = "full"
    error = "error"


class BlockType(str, Enum):
    """Renderable block kinds, in the vocabulary used by the document."""

    title = "title"
    text = "text"
    location = "location"
    divider = "divider"
    photo = "photo"
    slide = "slide"
    three_columns = "3columns"
