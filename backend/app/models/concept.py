"""Day concept models - abstract plan units produced before any place is known."""

import re

from pydantic import ConfigDict, Field, field_validator

from backend.app.models.common import CamelModel

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


class TimeSlot(CamelModel):
    """One ungrounded plan unit: a time, an activity label and search hints."""

    model_config = ConfigDict(frozen=True)

    time: str
    activity: str
    category: str = "attraction"
    description: str = ""
    keywords: tuple[str, ...] = ()
    budget_tier: str = "moderate"

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Normalise to zero-padded HH:MM."""
        v = v.strip()
        if not _TIME_PATTERN.match(v):
            raise ValueError(f"time must be HH:MM, got {v!r}")
        hours, minutes = v.split(":")
        return f"{int(hours):02d}:{minutes}"


class DayConcept(CamelModel):
    """Concept string plus the ordered time slots for the day."""

    text: str
    time_slots: list[TimeSlot] = Field(default_factory=list)

    @field_validator("time_slots")
    @classmethod
    def sort_by_time(cls, v: list[TimeSlot]) -> list[TimeSlot]:
        """Keep slots ordered by time of day."""
        return sorted(v, key=lambda s: s.time)
