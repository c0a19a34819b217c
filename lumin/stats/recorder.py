"""
Break Statistics — append-only SQLite store of taken and skipped breaks.

Recording is best-effort: a failing write is logged and dropped so the
scheduling loop never sees it. Daily and weekly figures are derived from the
event rows on read.
"""

from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from ..core.models import BreakCategory, BreakTag

logger = logging.getLogger(__name__)


@dataclass
class BreakEvent:
    id: str
    tag: BreakTag
    scheduled_time: float
    actual_time: Optional[float]
    duration: Optional[float]
    completed: bool


@dataclass
class DailyStatistics:
    """Aggregate statistics for one local calendar day."""
    date: str                   # "YYYY-MM-DD"
    total_breaks: int = 0
    completed_breaks: int = 0
    regular_breaks: int = 0
    micro_breaks: int = 0
    water_breaks: int = 0
    custom_breaks: Dict[str, int] = field(default_factory=dict)   # name → count
    total_time: float = 0.0     # seconds spent on completed breaks

    @property
    def completion_rate(self) -> float:
        if self.total_breaks == 0:
            return 0.0
        return self.completed_breaks / self.total_breaks * 100


def _day(ts: float) -> date:
    return datetime.fromtimestamp(ts).date()


def _day_bounds(day: date) -> tuple[float, float]:
    start = datetime.combine(day, datetime.min.time()).timestamp()
    end = datetime.combine(day + timedelta(days=1), datetime.min.time()).timestamp()
    return start, end


class StatisticsRecorder:
    """SQLite-backed break event store."""

    def __init__(self, db_path: Path, now: Callable[[], float] = time.time):
        self.db_path = db_path
        self._now = now
        self._init_db()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def record_scheduled(self, tag: BreakTag, scheduled_time: float) -> None:
        # Repeating timers would add a row per tick; only outcomes are stored.
        logger.debug("Break scheduled: %s at %.3f", tag.label, scheduled_time)

    def record_taken(
        self, tag: BreakTag, scheduled_time: float, actual_time: float, duration: float
    ) -> None:
        self._append(tag, scheduled_time, actual_time, duration, completed=True)

    def record_skipped(self, tag: BreakTag, scheduled_time: float) -> None:
        self._append(tag, scheduled_time, self._now(), 0.0, completed=False)

    def reset(self) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM break_events")

    def _append(
        self,
        tag: BreakTag,
        scheduled_time: float,
        actual_time: Optional[float],
        duration: Optional[float],
        completed: bool,
    ) -> None:
        try:
            with self._conn() as conn:
                conn.execute(
                    """
                    INSERT INTO break_events
                        (id, kind, custom_name, scheduled_time, actual_time, duration, completed)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(uuid.uuid4()),
                        tag.category.value,
                        tag.name,
                        scheduled_time,
                        actual_time,
                        duration,
                        int(completed),
                    ),
                )
        except sqlite3.Error as exc:
            logger.error("Could not record %s break: %s", tag.label, exc, exc_info=exc)

    # ------------------------------------------------------------------
    # Read — raw events
    # ------------------------------------------------------------------

    def events(
        self,
        since: Optional[float] = None,
        until: Optional[float] = None,
        limit: int = 10_000,
    ) -> List[BreakEvent]:
        """Events ordered oldest → newest by scheduled time."""
        clauses = []
        params: list = []

        if since is not None:
            clauses.append("scheduled_time >= ?")
            params.append(since)
        if until is not None:
            clauses.append("scheduled_time < ?")
            params.append(until)

        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        params.append(limit)

        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT id, kind, custom_name, scheduled_time, actual_time, duration, completed "
                f"FROM break_events {where} ORDER BY scheduled_time ASC, rowid ASC LIMIT ?",
                params,
            ).fetchall()

        return [
            BreakEvent(
                id=row[0],
                tag=BreakTag(BreakCategory(row[1]), row[2]),
                scheduled_time=row[3],
                actual_time=row[4],
                duration=row[5],
                completed=bool(row[6]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Read — aggregates
    # ------------------------------------------------------------------

    def daily_stats(self, day: date) -> DailyStatistics:
        since, until = _day_bounds(day)
        stats = DailyStatistics(date=day.isoformat())
        for event in self.events(since=since, until=until):
            stats.total_breaks += 1
            if not event.completed:
                continue
            stats.completed_breaks += 1
            stats.total_time += event.duration or 0.0
            category = event.tag.category
            if category == BreakCategory.REGULAR:
                stats.regular_breaks += 1
            elif category == BreakCategory.MICRO:
                stats.micro_breaks += 1
            elif category == BreakCategory.WATER:
                stats.water_breaks += 1
            else:
                name = event.tag.name or ""
                stats.custom_breaks[name] = stats.custom_breaks.get(name, 0) + 1
        return stats

    def weekly_stats(self, ending: Optional[date] = None) -> List[DailyStatistics]:
        """Seven days ending at *ending* (default today), oldest first."""
        ending = ending or _day(self._now())
        return [self.daily_stats(ending - timedelta(days=i)) for i in range(6, -1, -1)]

    def total_taken(self, tag: BreakTag) -> int:
        with self._conn() as conn:
            if tag.category == BreakCategory.CUSTOM:
                row = conn.execute(
                    "SELECT COUNT(*) FROM break_events WHERE completed = 1 AND kind = ? AND custom_name = ?",
                    (tag.category.value, tag.name),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM break_events WHERE completed = 1 AND kind = ?",
                    (tag.category.value,),
                ).fetchone()
        return int(row[0])

    def completion_rate(self) -> float:
        with self._conn() as conn:
            total, completed = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(completed), 0) FROM break_events"
            ).fetchone()
        return completed / total * 100 if total else 0.0

    def most_active_day(self, now: Optional[float] = None) -> Optional[date]:
        """Day with the most completed breaks in the last 30 days."""
        now = self._now() if now is None else now
        start = _day(now) - timedelta(days=30)
        counts: Dict[date, int] = {}
        for event in self.events(since=_day_bounds(start)[0]):
            if not event.completed:
                continue
            day = _day(event.actual_time if event.actual_time is not None else event.scheduled_time)
            if day >= start:
                counts[day] = counts.get(day, 0) + 1
        if not counts:
            return None
        return max(counts, key=lambda d: counts[d])

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS break_events (
                    id             TEXT    PRIMARY KEY,
                    kind           TEXT    NOT NULL,
                    custom_name    TEXT,
                    scheduled_time REAL    NOT NULL,
                    actual_time    REAL,
                    duration       REAL,
                    completed      INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_scheduled ON break_events(scheduled_time)"
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()
