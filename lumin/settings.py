"""
Break settings store — persisted to data/settings.json.

SettingsStore is the engine's durable key-value configuration: master and
per-category toggles, intervals and durations in seconds, and the list of
custom breaks kept as a single JSON blob. Writes are visible to reads
immediately; disk failures are reported and the in-memory value is kept.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .core.models import (
    CUSTOM_INTERVAL_MAX,
    BreakCategory,
    CustomBreakDefinition,
    normalize_custom_break,
)
from .errors import PersistenceError, SettingsValidationError, report_error

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "enabled":               True,
    "regular_enabled":       True,
    "micro_enabled":         True,
    "water_enabled":         True,
    "custom_breaks_enabled": True,
    "regular_interval":      1200.0,   # 20 min
    "regular_duration":      20.0,
    "micro_interval":        300.0,    # 5 min
    "micro_duration":        2.0,
    "water_interval":        1800.0,   # 30 min
    "water_duration":        5.0,
    "start_at_login":        False,
    "custom_breaks":         "[]",     # JSON-encoded list of custom breaks
}

# key -> (min, max) in seconds
LIMITS: Dict[str, Tuple[float, float]] = {
    "regular_interval": (60.0, CUSTOM_INTERVAL_MAX),
    "micro_interval":   (60.0, CUSTOM_INTERVAL_MAX),
    "water_interval":   (60.0, 3600.0),
    "regular_duration": (1.0, 3600.0),
    "micro_duration":   (1.0, 3600.0),
    "water_duration":   (1.0, 3600.0),
}

_LABELS = {
    BreakCategory.REGULAR: "Break",
    BreakCategory.MICRO: "Micro-break",
    BreakCategory.WATER: "Water break",
}


def interval_key(category: BreakCategory) -> str:
    return f"{category.value}_interval"


def duration_key(category: BreakCategory) -> str:
    return f"{category.value}_duration"


def enabled_key(category: BreakCategory) -> str:
    return f"{category.value}_enabled"


def _describe(seconds: float) -> str:
    if seconds >= 3600 and seconds % 3600 == 0:
        hours = int(seconds // 3600)
        return "1 hour" if hours == 1 else f"{hours} hours"
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return "1 second" if seconds == 1 else f"{seconds:g} seconds"


def validate(key: str, value: Any) -> float:
    """Check *value* against LIMITS[key]; return it as float or raise SettingsValidationError."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SettingsValidationError(key, value, f"{key} must be a number of seconds")

    low, high = LIMITS[key]
    category = BreakCategory(key.split("_")[0])
    what = "interval" if key.endswith("_interval") else "duration"
    label = f"{_LABELS[category]} {what}"
    if not math.isfinite(number):
        raise SettingsValidationError(key, value, f"{label} must be a finite number of seconds")
    if number < low:
        raise SettingsValidationError(key, value, f"{label} must be at least {_describe(low)}")
    if number > high:
        raise SettingsValidationError(key, value, f"{label} cannot exceed {_describe(high)}")
    return number


class SettingsStore:
    """JSON-file settings with typed defaults."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._current: dict[str, Any] = {}
        self._custom_cache: Optional[List[CustomBreakDefinition]] = None
        self._load()

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def _load(self) -> None:
        self._current = dict(DEFAULTS)
        self._custom_cache = None
        if not self.path.exists():
            return
        try:
            saved = json.loads(self.path.read_text())
            for k, v in saved.items():
                if k in DEFAULTS:
                    # coerce to the same type as the default
                    self._current[k] = type(DEFAULTS[k])(v)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            # malformed file, fall back to defaults
            report_error(
                "settings load",
                PersistenceError(f"could not read {self.path}: {exc}", self.path),
            )
            self._current = dict(DEFAULTS)
        self._drop_out_of_range()
        logger.debug("Settings loaded from %s: %s", self.path, self._summary())

    def _drop_out_of_range(self) -> None:
        # a hand-edited or older file may hold values the timers cannot run with
        for key in LIMITS:
            try:
                validate(key, self._current[key])
            except SettingsValidationError as exc:
                logger.warning(
                    "Stored %s=%r rejected (%s); using default %s",
                    key, self._current[key], exc.message, DEFAULTS[key],
                )
                self._current[key] = DEFAULTS[key]

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._current, indent=2))
        except OSError as exc:
            report_error(
                "settings persistence",
                PersistenceError(f"could not write {self.path}: {exc}", self.path),
            )

    def _summary(self) -> str:
        shown = {k: v for k, v in self._current.items() if k != "custom_breaks"}
        shown["custom_breaks"] = len(self.custom_breaks())
        return ", ".join(f"{k}={v}" for k, v in shown.items())

    # ------------------------------------------------------------------
    # Key/value access
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any:
        return self._current[key]

    def all(self) -> dict[str, Any]:
        """Return a copy of the current settings dict."""
        return dict(self._current)

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Apply *patch* (unknown keys ignored), persist to disk, return full settings."""
        for k, v in patch.items():
            if k in DEFAULTS:
                self._current[k] = type(DEFAULTS[k])(v)
                if k == "custom_breaks":
                    self._custom_cache = None
        self._save()
        return dict(self._current)

    def reset_to_defaults(self) -> None:
        self._current = dict(DEFAULTS)
        self._custom_cache = None
        self._save()
        logger.debug("Settings reset to defaults")

    # ------------------------------------------------------------------
    # Custom breaks blob
    # ------------------------------------------------------------------

    def custom_breaks(self) -> List[CustomBreakDefinition]:
        if self._custom_cache is None:
            self._custom_cache = self._decode_custom_breaks(self._current["custom_breaks"])
        return list(self._custom_cache)

    def set_custom_breaks(self, breaks: List[CustomBreakDefinition]) -> None:
        blob = json.dumps([b.to_dict() for b in breaks])
        self._current["custom_breaks"] = blob
        self._custom_cache = list(breaks)
        self._save()

    @staticmethod
    def _decode_custom_breaks(blob: str) -> List[CustomBreakDefinition]:
        if not blob:
            return []
        try:
            decoded = [CustomBreakDefinition.from_dict(item) for item in json.loads(blob)]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.debug("Failed to decode custom breaks: %s", exc)
            return []
        breaks = []
        for definition in decoded:
            normalized, adjusted = normalize_custom_break(definition)
            if adjusted:
                logger.warning(
                    "Stored custom break %r out of range; clamped to interval=%s duration=%s",
                    definition.name, normalized.interval, normalized.duration,
                )
            breaks.append(normalized)
        return breaks
