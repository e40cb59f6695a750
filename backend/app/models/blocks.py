"""Content block models - tagged union keyed by blockType."""

from typing import Annotated, Literal

from pydantic import ConfigDict, Field

from backend.app.models.common import CamelModel
from backend.app.models.location import LocationEntry


class TitleContent(CamelModel):
    text: str
    size: str = "large"


class TextContent(CamelModel):
    text: str
    formatted: bool = False


class DividerContent(CamelModel):
    style: str = "solid"


class PhotoContent(CamelModel):
    photos: list[str]
    caption: str


class SlideContent(CamelModel):
    title: str
    text: str
    photos: list[str] = Field(default_factory=list)


class Column(CamelModel):
    text: str
    photo: str


class ThreeColumnsContent(CamelModel):
    columns: Annotated[list[Column], Field(min_length=3, max_length=3)]


class LocationContent(CamelModel):
    """Main location plus exactly two alternatives for one time window."""

    time_slot: str
    purpose: str
    main_location: LocationEntry
    alternative_locations: Annotated[list[LocationEntry], Field(min_length=2, max_length=2)]


class _Block(CamelModel):
    model_config = ConfigDict(frozen=True)

    order_index: int = Field(0, ge=0)


class TitleBlock(_Block):
    block_type: Literal["title"] = "title"
    content: TitleContent


class TextBlock(_Block):
    block_type: Literal["text"] = "text"
    content: TextContent


class DividerBlock(_Block):
    block_type: Literal["divider"] = "divider"
    content: DividerContent = Field(default_factory=DividerContent)


class PhotoBlock(_Block):
    block_type: Literal["photo"] = "photo"
    content: PhotoContent


class SlideBlock(_Block):
    block_type: Literal["slide"] = "slide"
    content: SlideContent


class ThreeColumnsBlock(_Block):
    block_type: Literal["3columns"] = "3columns"
    content: ThreeColumnsContent


class LocationBlock(_Block):
    block_type: Literal["location"] = "location"
    content: LocationContent


ContentBlock = Annotated[
    TitleBlock
    | TextBlock
    | DividerBlock
    | PhotoBlock
    | SlideBlock
    | ThreeColumnsBlock
    | LocationBlock,
    Field(discriminator="block_type"),
]
