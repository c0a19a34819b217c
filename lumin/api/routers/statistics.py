"""
/statistics — taken/skipped break history and aggregates.

The recorder does blocking SQLite reads, so these routes are plain ``def``
and run in the threadpool; they never touch the engine.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import DailyStatisticsOut, StatisticsSummaryOut
from ...core.models import BreakCategory, BreakTag
from ...stats.recorder import DailyStatistics

router = APIRouter(prefix="/statistics", tags=["statistics"])


def _get_recorder(request: Request):
    return request.app.state.recorder


def _get_settings(request: Request):
    return request.app.state.settings


def _daily_out(d: DailyStatistics) -> DailyStatisticsOut:
    return DailyStatisticsOut(
        date=d.date,
        total_breaks=d.total_breaks,
        completed_breaks=d.completed_breaks,
        regular_breaks=d.regular_breaks,
        micro_breaks=d.micro_breaks,
        water_breaks=d.water_breaks,
        custom_breaks=d.custom_breaks,
        total_time=d.total_time,
        completion_rate=d.completion_rate,
    )


@router.get("/daily", response_model=DailyStatisticsOut)
def get_daily(
    day: Optional[date] = Query(default=None, description="YYYY-MM-DD (default: today)"),
    recorder=Depends(_get_recorder),
):
    return _daily_out(recorder.daily_stats(day or date.today()))


@router.get("/weekly", response_model=List[DailyStatisticsOut])
def get_weekly(
    ending: Optional[date] = Query(default=None, description="Last day of the week (default: today)"),
    recorder=Depends(_get_recorder),
):
    """Seven days of statistics, oldest first."""
    return [_daily_out(d) for d in recorder.weekly_stats(ending)]


@router.get("/summary", response_model=StatisticsSummaryOut)
def get_summary(recorder=Depends(_get_recorder), settings=Depends(_get_settings)):
    taken = {c.value: recorder.total_taken(BreakTag(c)) for c in BreakCategory.named()}
    for definition in settings.custom_breaks():
        tag = BreakTag.custom(definition.name)
        taken[tag.label] = recorder.total_taken(tag)
    most_active = recorder.most_active_day()
    return StatisticsSummaryOut(
        completion_rate=recorder.completion_rate(),
        taken_by_kind=taken,
        most_active_day=most_active.isoformat() if most_active else None,
    )


@router.delete("")
def reset_statistics(recorder=Depends(_get_recorder)):
    recorder.reset()
    return {"status": "reset"}
