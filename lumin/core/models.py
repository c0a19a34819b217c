"""
Domain model — break categories, statistics tags, custom break definitions
and the runtime break session.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Tuple

CUSTOM_INTERVAL_MIN = 60.0        # 1 minute
CUSTOM_INTERVAL_MAX = 43200.0     # 12 hours
CUSTOM_DURATION_MIN = 1.0
CUSTOM_DURATION_MAX = 3600.0      # 1 hour


class BreakCategory(str, Enum):
    REGULAR = "regular"
    MICRO = "micro"
    WATER = "water"
    CUSTOM = "custom"

    @classmethod
    def named(cls) -> Tuple["BreakCategory", ...]:
        """The categories that own exactly one schedule each."""
        return (cls.REGULAR, cls.MICRO, cls.WATER)


# (title, icon) shown by the overlay for each category
CATEGORY_DISPLAY = {
    BreakCategory.REGULAR: ("Look away from the screen", "eye"),
    BreakCategory.MICRO:   ("Blink and check posture!", "eye"),
    BreakCategory.WATER:   ("Take a sip of water", "drop"),
    BreakCategory.CUSTOM:  ("Break time!", "star"),
}


@dataclass(frozen=True)
class BreakTag:
    """Statistics tag: a category, plus the break's name for custom breaks."""
    category: BreakCategory
    name: Optional[str] = None

    @classmethod
    def custom(cls, name: str) -> "BreakTag":
        return cls(BreakCategory.CUSTOM, name)

    @property
    def label(self) -> str:
        if self.category == BreakCategory.CUSTOM:
            return f"custom:{self.name or ''}"
        return self.category.value

    @classmethod
    def from_label(cls, label: str) -> "BreakTag":
        if label.startswith("custom:"):
            return cls.custom(label[len("custom:"):])
        return cls(BreakCategory(label))


@dataclass
class CustomBreakDefinition:
    name: str
    icon: str
    interval: float
    duration: float
    enabled: bool = True
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "icon": self.icon,
            "interval": self.interval,
            "duration": self.duration,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomBreakDefinition":
        return cls(
            id=uuid.UUID(str(data["id"])),
            name=str(data["name"]),
            icon=str(data.get("icon") or ""),
            interval=float(data["interval"]),
            duration=float(data["duration"]),
            enabled=bool(data.get("enabled", True)),
        )


def _clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return low
    return max(low, min(value, high))


def normalize_custom_break(
    definition: CustomBreakDefinition,
) -> Tuple[CustomBreakDefinition, bool]:
    """
    Clamp interval to [60, 43200] s and duration to [1, 3600] s.

    Returns the clamped copy and whether anything changed. Normalising an
    already-normalised definition returns equal values and False.
    """
    interval = _clamp(definition.interval, CUSTOM_INTERVAL_MIN, CUSTOM_INTERVAL_MAX)
    duration = _clamp(definition.duration, CUSTOM_DURATION_MIN, CUSTOM_DURATION_MAX)
    adjusted = interval != definition.interval or duration != definition.duration
    return replace(definition, interval=interval, duration=duration), adjusted


@dataclass
class BreakSession:
    """A break that is currently being presented. Lives from trigger to finish."""
    tag: BreakTag
    title: str
    icon: str
    duration: float
    started_at: float
    custom_id: Optional[uuid.UUID] = None
    overlay: Any = None
    deadline: Any = None
    finished: bool = False

    @property
    def category(self) -> BreakCategory:
        return self.tag.category

    def finish(self) -> bool:
        """Latch the session; only the first caller gets True."""
        if self.finished:
            return False
        self.finished = True
        return True

    def remaining(self, now: float) -> float:
        return max(0.0, self.started_at + self.duration - now)
