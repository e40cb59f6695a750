"""The fixed 17-slot block sequence of a day guide."""

from collections.abc import Sequence
from dataclasses import dataclass

from backend.app.models.blocks import ContentBlock, LocationBlock
from backend.app.models.common import BlockType


@dataclass(frozen=True)
class LocationWindow:
    """Time window a location slot accepts, matched by slot-time prefix."""

    label: str
    purpose: str
    prefixes: tuple[str, ...]

    def matches(self, time: str) -> bool:
        return time.startswith(self.prefixes)


@dataclass(frozen=True)
class SlotSpec:
    key: str
    block_type: BlockType
    window: LocationWindow | None = None


BREAKFAST = LocationWindow("09:00-10:00", "Breakfast / Coffee + Gentle Start", ("09:", "10:00"))
WALKING = LocationWindow(
    "10:30-12:00", "Walking / Exploring After Breakfast", ("10:", "11:", "12:00")
)
LUNCH = LocationWindow("12:30-15:00", "Lunch / Long Break", ("12:", "13:", "14:", "15:00"))
AFTERNOON = LocationWindow("15:30-17:00", "Light Activity After Lunch", ("15:", "16:", "17:00"))
TRANSITION = LocationWindow(
    "17:30-19:00", "Pre-Dinner Walk / Views / Transition", ("17:", "18:", "19:00")
)
DINNER = LocationWindow("19:30-21:00", "Dinner", ("19:", "20:", "21:00"))

SEQUENCE: tuple[SlotSpec, ...] = (
    SlotSpec("title", BlockType.title),
    SlotSpec("intro", BlockType.text),
    SlotSpec("location_breakfast", BlockType.location, BREAKFAST),
    SlotSpec("divider_1", BlockType.divider),
    SlotSpec("photo", BlockType.photo),
    SlotSpec("location_walking", BlockType.location, WALKING),
    SlotSpec("divider_2", BlockType.divider),
    SlotSpec("location_lunch", BlockType.location, LUNCH),
    SlotSpec("slide", BlockType.slide),
    SlotSpec("divider_3", BlockType.divider),
    SlotSpec("location_afternoon", BlockType.location, AFTERNOON),
    SlotSpec("three_columns", BlockType.three_columns),
    SlotSpec("divider_4", BlockType.divider),
    SlotSpec("location_transition", BlockType.location, TRANSITION),
    SlotSpec("location_dinner", BlockType.location, DINNER),
    SlotSpec("divider_5", BlockType.divider),
    SlotSpec("closing", BlockType.text),
)

LOCATION_SLOTS: tuple[SlotSpec, ...] = tuple(s for s in SEQUENCE if s.window is not None)


def assign_slot_keys(blocks: Sequence[ContentBlock]) -> dict[str, ContentBlock]:
    """Map stored blocks back to the slot keys that produced them.

    Stored documents are a subsequence of SEQUENCE (only location slots may be
    missing), and location blocks carry their window label.

    Raises:
        ValueError: Blocks do not follow the slot sequence
    """
    keyed: dict[str, ContentBlock] = {}
    position = 0
    for block in blocks:
        while position < len(SEQUENCE):
            spec = SEQUENCE[position]
            position += 1
            if spec.block_type.value != block.block_type:
                continue
            if isinstance(block, LocationBlock) and (
                spec.window is None or spec.window.label != block.content.time_slot
            ):
                continue
            keyed[spec.key] = block
            break
        else:
            raise ValueError(f"block {block.block_type!r} does not fit the slot sequence")
    return keyed
