"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import (
    CUSTOM_DURATION_MAX,
    CUSTOM_INTERVAL_MAX,
    CustomBreakDefinition,
)

# ── Engine state ───────────────────────────────────────────────────────────

class CurrentBreakOut(BaseModel):
    kind: str
    title: str
    icon: str
    duration: float
    started_at: float
    remaining_seconds: float
    countdown: str = Field(..., description="MM:SS")


class UpcomingCustomBreakOut(BaseModel):
    id: uuid.UUID
    name: str
    fire_at: float


class EngineStateOut(BaseModel):
    enabled: bool
    on_break: bool
    current_break: Optional[CurrentBreakOut] = None
    next_breaks: Dict[str, Optional[float]]
    next_custom_breaks: List[UpcomingCustomBreakOut]
    timestamp: float


class EnabledIn(BaseModel):
    enabled: bool


class BreakActionOut(BaseModel):
    status: str
    on_break: bool


# ── Settings ───────────────────────────────────────────────────────────────

class SettingsPatch(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    enabled:               Optional[bool]  = None
    regular_enabled:       Optional[bool]  = None
    micro_enabled:         Optional[bool]  = None
    water_enabled:         Optional[bool]  = None
    custom_breaks_enabled: Optional[bool]  = None
    start_at_login:        Optional[bool]  = None
    regular_interval:      Optional[float] = Field(None, ge=60, le=CUSTOM_INTERVAL_MAX)
    regular_duration:      Optional[float] = Field(None, ge=1, le=3600)
    micro_interval:        Optional[float] = Field(None, ge=60, le=CUSTOM_INTERVAL_MAX)
    micro_duration:        Optional[float] = Field(None, ge=1, le=3600)
    water_interval:        Optional[float] = Field(None, ge=60, le=3600)
    water_duration:        Optional[float] = Field(None, ge=1, le=3600)


# ── Custom breaks ──────────────────────────────────────────────────────────

class CustomBreakIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    # out-of-range values are clamped by the engine, not rejected
    name: str = Field(..., min_length=1)
    icon: str = "star"
    interval: float = Field(..., gt=0, description="seconds, stored within [60, 43200]")
    duration: float = Field(..., gt=0, description="seconds, stored within [1, 3600]")
    enabled: bool = True


class CustomBreakOut(BaseModel):
    id: uuid.UUID
    name: str
    icon: str
    interval: float = Field(..., le=CUSTOM_INTERVAL_MAX)
    duration: float = Field(..., le=CUSTOM_DURATION_MAX)
    enabled: bool
    next_fire_at: Optional[float] = None

    @classmethod
    def from_definition(
        cls, definition: CustomBreakDefinition, next_fire_at: Optional[float] = None
    ) -> "CustomBreakOut":
        return cls(
            id=definition.id,
            name=definition.name,
            icon=definition.icon,
            interval=definition.interval,
            duration=definition.duration,
            enabled=definition.enabled,
            next_fire_at=next_fire_at,
        )


class CustomBreakSavedOut(BaseModel):
    custom_break: CustomBreakOut
    adjusted: bool = Field(..., description="True when interval/duration were clamped")


# ── Statistics ─────────────────────────────────────────────────────────────

class DailyStatisticsOut(BaseModel):
    date: str
    total_breaks: int
    completed_breaks: int
    regular_breaks: int
    micro_breaks: int
    water_breaks: int
    custom_breaks: Dict[str, int]
    total_time: float
    completion_rate: float


class StatisticsSummaryOut(BaseModel):
    completion_rate: float
    taken_by_kind: Dict[str, int]
    most_active_day: Optional[str] = None
