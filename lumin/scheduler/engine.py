"""
Schedule Engine — owns every break timer and runs the break lifecycle.

One repeating timer per enabled named category (regular, micro, water) and
one per enabled custom break. A single ``is_on_break`` flag makes sure only
one break overlay is ever presenting; triggers that arrive meanwhile are
dropped, not queued.

Lifecycle of a break:

    timer fires → trigger (gate) → overlay presented
        → user skip | natural expiry → outcome recorded
        → category timer restarted → idle

Regular and water timers restart when the break ends. The micro timer
restarts when the break starts, so micro cadence is measured from trigger
to trigger. Custom timers restart when their break ends.

All methods must be called on the engine's event loop (see Clock).
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from ..core.models import (
    CATEGORY_DISPLAY,
    BreakCategory,
    BreakSession,
    BreakTag,
    CustomBreakDefinition,
    normalize_custom_break,
)
from ..errors import report_error
from ..overlay.presenter import OverlayPresenter
from ..settings import SettingsStore, duration_key, enabled_key, interval_key, validate
from ..stats.recorder import StatisticsRecorder
from ..timefmt import humanize
from .clock import Clock
from .timers import RepeatingTimer

logger = logging.getLogger(__name__)


class EngineEvent(str, Enum):
    BREAK_STARTED = "break_started"
    BREAK_ENDED = "break_ended"
    TIMERS_CHANGED = "timers_changed"


Listener = Callable[[EngineEvent, Optional[BreakSession]], None]


class ScheduleEngine:

    def __init__(
        self,
        settings: SettingsStore,
        recorder: StatisticsRecorder,
        presenter: OverlayPresenter,
        clock: Clock,
        tolerance: float = 0.1,
    ):
        self._settings = settings
        self._recorder = recorder
        self._presenter = presenter
        self._clock = clock
        self._tolerance = tolerance

        self._timers: Dict[BreakCategory, Optional[RepeatingTimer]] = {
            c: None for c in BreakCategory.named()
        }
        self._custom_timers: Dict[uuid.UUID, RepeatingTimer] = {}
        self._custom_index: Dict[uuid.UUID, CustomBreakDefinition] = {
            b.id: b for b in settings.custom_breaks()
        }
        self._session: Optional[BreakSession] = None
        self._listeners: List[Listener] = []
        self.is_on_break = False

        for category in BreakCategory.named():
            logger.debug(
                "Initial %s break: interval=%s duration=%s enabled=%s",
                category.value,
                self.interval(category),
                self.duration(category),
                self.category_enabled(category),
            )
        logger.debug("Initial enabled=%s custom_breaks=%d", self.is_enabled, len(self._custom_index))

    # ------------------------------------------------------------------
    # Settings access
    # ------------------------------------------------------------------

    @property
    def is_enabled(self) -> bool:
        return bool(self._settings.get("enabled"))

    @property
    def custom_breaks_enabled(self) -> bool:
        return bool(self._settings.get("custom_breaks_enabled"))

    def category_enabled(self, category: BreakCategory) -> bool:
        return bool(self._settings.get(enabled_key(_named(category))))

    def interval(self, category: BreakCategory) -> float:
        return float(self._settings.get(interval_key(_named(category))))

    def duration(self, category: BreakCategory) -> float:
        return float(self._settings.get(duration_key(_named(category))))

    @property
    def custom_breaks(self) -> List[CustomBreakDefinition]:
        return self._settings.custom_breaks()

    def get_custom_break(self, break_id: uuid.UUID) -> Optional[CustomBreakDefinition]:
        for definition in self._settings.custom_breaks():
            if definition.id == break_id:
                return definition
        return None

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def current_session(self) -> Optional[BreakSession]:
        return self._session

    def next_fire_time(self, category: BreakCategory) -> Optional[float]:
        timer = self._timers[_named(category)]
        return timer.fire_at if timer is not None else None

    def next_break_times(self) -> Dict[str, Optional[float]]:
        return {c.value: self.next_fire_time(c) for c in BreakCategory.named()}

    def next_custom_fire_time(self, break_id: uuid.UUID) -> Optional[float]:
        timer = self._custom_timers.get(break_id)
        return timer.fire_at if timer is not None else None

    def next_custom_breaks(self) -> List[Tuple[CustomBreakDefinition, float]]:
        upcoming = []
        for break_id, timer in self._custom_timers.items():
            definition = self._custom_index.get(break_id)
            if definition is not None:
                upcoming.append((definition, timer.fire_at))
        upcoming.sort(key=lambda item: item[1])
        return upcoming

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def register_listener(self, fn: Listener) -> None:
        """Register a callback(event, session) called on lifecycle and timer changes."""
        self._listeners.append(fn)

    def unregister_listener(self, fn: Listener) -> None:
        if fn in self._listeners:
            self._listeners.remove(fn)

    def _notify(self, event: EngineEvent, session: Optional[BreakSession] = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception as exc:
                report_error("engine listener", exc)

    # ------------------------------------------------------------------
    # Timer orchestration
    # ------------------------------------------------------------------

    def start_all_timers(self) -> None:
        """Create missing timers for everything enabled. Running countdowns are left alone."""
        if not self.is_enabled:
            logger.debug("Breaks are disabled, not starting timers")
            return

        for category in BreakCategory.named():
            if not self.category_enabled(category):
                logger.debug("%s breaks disabled; not creating timer", category.value)
            elif self._timers[category] is not None:
                logger.debug("%s break timer already active; not recreating", category.value)
            else:
                self._timers[category] = self._new_timer(category)

        if self.custom_breaks_enabled:
            self._start_custom_timers()

        logger.debug(
            "Timers started - %s, custom: %d",
            ", ".join(f"{c.value}: {self._timers[c] is not None}" for c in BreakCategory.named()),
            len(self._custom_timers),
        )
        self._notify(EngineEvent.TIMERS_CHANGED)

    def stop_all_timers(self) -> None:
        logger.debug("Stopping all break timers")
        for category in BreakCategory.named():
            timer = self._timers[category]
            if timer is not None:
                timer.invalidate()
            self._timers[category] = None
        for timer in self._custom_timers.values():
            timer.invalidate()
        self._custom_timers.clear()

        session = self._session
        self._session = None
        self.is_on_break = False
        if session is not None and session.finish():
            # abandoned, not taken or skipped
            _cancel(session.deadline)
            if session.overlay is not None:
                session.overlay.dismiss()
            self._notify(EngineEvent.BREAK_ENDED, session)
        self._notify(EngineEvent.TIMERS_CHANGED)

    def restart_timer(self, category: BreakCategory) -> None:
        """Replace one category's timer with a fresh one counting from now."""
        category = _named(category)
        old = self._timers[category]
        if old is not None:
            old.invalidate()
        self._timers[category] = None

        if not self.is_enabled or not self.category_enabled(category):
            logger.debug("%s breaks disabled; not restarting timer", category.value)
        else:
            self._timers[category] = self._new_timer(category)
            logger.debug(
                "%s timer restarted with interval: %ss", category.value, self.interval(category)
            )
        self._notify(EngineEvent.TIMERS_CHANGED)

    def restart_regular_timer(self) -> None:
        self.restart_timer(BreakCategory.REGULAR)

    def restart_micro_timer(self) -> None:
        self.restart_timer(BreakCategory.MICRO)

    def restart_water_timer(self) -> None:
        self.restart_timer(BreakCategory.WATER)

    def _stop_timer(self, category: BreakCategory) -> None:
        timer = self._timers[category]
        if timer is not None:
            timer.invalidate()
        self._timers[category] = None
        self._notify(EngineEvent.TIMERS_CHANGED)

    def _new_timer(self, category: BreakCategory) -> RepeatingTimer:
        interval = self.interval(category)
        logger.debug("Creating %s break timer with interval %s", category.value, interval)
        return RepeatingTimer(
            self._clock,
            interval,
            lambda: self._on_timer_fired(category),
            key=category.value,
            tolerance=self._tolerance,
        )

    def _on_timer_fired(self, category: BreakCategory) -> None:
        logger.debug("%s break timer fired", category.value)
        title, icon = CATEGORY_DISPLAY[category]
        self._trigger(BreakTag(category), title, icon, self.duration(category))

    # ------------------------------------------------------------------
    # Settings mutators
    # ------------------------------------------------------------------

    def set_enabled(self, enabled: bool) -> None:
        self._settings.set("enabled", enabled)
        logger.info("Breaks %s", "enabled" if enabled else "disabled")
        if enabled:
            self.start_all_timers()
        else:
            self.stop_all_timers()

    def toggle_enabled(self) -> bool:
        self.set_enabled(not self.is_enabled)
        return self.is_enabled

    def set_category_enabled(self, category: BreakCategory, enabled: bool) -> None:
        category = _named(category)
        self._settings.set(enabled_key(category), enabled)
        if enabled:
            self.restart_timer(category)
        else:
            self._stop_timer(category)

    def set_custom_breaks_enabled(self, enabled: bool) -> None:
        self._settings.set("custom_breaks_enabled", enabled)
        if enabled:
            if self.is_enabled:
                self._start_custom_timers()
        else:
            for timer in self._custom_timers.values():
                timer.invalidate()
            self._custom_timers.clear()
        self._notify(EngineEvent.TIMERS_CHANGED)

    def set_interval(self, category: BreakCategory, seconds: float) -> None:
        """Validate, persist and restart the category timer against the new interval."""
        category = _named(category)
        key = interval_key(category)
        value = validate(key, seconds)
        self._settings.set(key, value)
        if self.is_enabled and self.category_enabled(category):
            self.restart_timer(category)

    def set_duration(self, category: BreakCategory, seconds: float) -> None:
        # read at the next trigger; a presenting break keeps its own duration
        category = _named(category)
        key = duration_key(category)
        self._settings.set(key, validate(key, seconds))

    def update_break_settings(
        self, category: BreakCategory, interval: float, duration: float
    ) -> None:
        category = _named(category)
        ikey, dkey = interval_key(category), duration_key(category)
        new_interval = validate(ikey, interval)
        new_duration = validate(dkey, duration)
        self._settings.update({ikey: new_interval, dkey: new_duration})
        if self.is_enabled and self.category_enabled(category):
            self.restart_timer(category)

    def update_regular_break_settings(self, interval: float, duration: float) -> None:
        self.update_break_settings(BreakCategory.REGULAR, interval, duration)

    def update_micro_break_settings(self, interval: float, duration: float) -> None:
        self.update_break_settings(BreakCategory.MICRO, interval, duration)

    def update_water_break_settings(self, interval: float, duration: float) -> None:
        self.update_break_settings(BreakCategory.WATER, interval, duration)

    def reset_to_defaults(self) -> None:
        """Restore default settings, drop custom breaks and restart every timer from now."""
        logger.info("Resetting break settings to defaults")
        self._settings.reset_to_defaults()
        self.stop_all_timers()
        self._custom_index = {}
        self.start_all_timers()

    def skip_next_break(self) -> None:
        """Push the next regular break a full interval out from now."""
        logger.debug("Skipping next break")
        self.restart_regular_timer()

    # ------------------------------------------------------------------
    # Break lifecycle
    # ------------------------------------------------------------------

    def start_break_now(self) -> bool:
        logger.debug("Starting break now")
        title, icon = CATEGORY_DISPLAY[BreakCategory.REGULAR]
        return self._trigger(
            BreakTag(BreakCategory.REGULAR), title, icon, self.duration(BreakCategory.REGULAR)
        )

    def skip_current_break(self) -> bool:
        session = self._session
        if session is None:
            return False
        self._on_skip(session)
        return True

    def _trigger(
        self,
        tag: BreakTag,
        title: str,
        icon: str,
        duration: float,
        custom_id: Optional[uuid.UUID] = None,
    ) -> bool:
        if not self.is_enabled:
            logger.info("Breaks are disabled, not starting %s break", tag.label)
            return False
        if self.is_on_break:
            logger.debug("A break is already in progress. Ignoring %s break trigger", tag.label)
            return False

        now = self._clock.now()
        session = BreakSession(
            tag=tag,
            title=title,
            icon=icon,
            duration=duration,
            started_at=now,
            custom_id=custom_id,
        )
        self.is_on_break = True
        self._session = session
        logger.info("Starting %s break for %s", tag.label, humanize(duration))
        self._clock.run_io(self._recorder.record_scheduled, tag, now)

        try:
            session.overlay = self._presenter.present(
                title, icon, duration, lambda: self._on_skip(session)
            )
        except Exception as exc:
            report_error("overlay presentation", exc)
            session.finish()
            self._session = None
            self.is_on_break = False
            return False

        if tag.category == BreakCategory.MICRO:
            self.restart_micro_timer()

        # at least one second so the overlay is visibly shown
        session.deadline = self._clock.call_later(
            max(1.0, duration), lambda: self._on_complete(session)
        )
        self._notify(EngineEvent.BREAK_STARTED, session)
        return True

    def _on_complete(self, session: BreakSession) -> None:
        if not session.finish():
            return
        logger.debug("%s break duration elapsed, ending break", session.tag.label)
        self._clock.run_io(
            self._recorder.record_taken,
            session.tag,
            session.started_at,
            self._clock.now(),
            session.duration,
        )
        self._end(session)

    def _on_skip(self, session: BreakSession) -> None:
        if not session.finish():
            return
        logger.info("%s break skipped by user", session.tag.label)
        _cancel(session.deadline)
        self._clock.run_io(self._recorder.record_skipped, session.tag, session.started_at)
        self._end(session)

    def _end(self, session: BreakSession) -> None:
        logger.debug("%s break ended", session.tag.label)
        if self._session is session:
            self._session = None
            self.is_on_break = False
        if session.overlay is not None:
            session.overlay.dismiss()

        category = session.category
        if category == BreakCategory.REGULAR:
            self.restart_regular_timer()
        elif category == BreakCategory.WATER:
            self.restart_water_timer()
        elif category == BreakCategory.CUSTOM and session.custom_id is not None:
            self.restart_custom_timer(session.custom_id)
        # micro: already restarted at trigger time
        self._notify(EngineEvent.BREAK_ENDED, session)

    # ------------------------------------------------------------------
    # Custom breaks
    # ------------------------------------------------------------------

    def add_custom_break(self, definition: CustomBreakDefinition) -> bool:
        """Store a new custom break; returns True if its values had to be clamped."""
        normalized, adjusted = normalize_custom_break(definition)
        breaks = self._settings.custom_breaks()
        breaks.append(normalized)
        self._settings.set_custom_breaks(breaks)
        self._custom_index[normalized.id] = normalized
        if self.is_enabled and normalized.enabled:
            self.restart_custom_timer(normalized.id)
        return adjusted

    def update_custom_break(self, definition: CustomBreakDefinition) -> bool:
        normalized, adjusted = normalize_custom_break(definition)
        breaks = self._settings.custom_breaks()
        for idx, existing in enumerate(breaks):
            if existing.id == normalized.id:
                break
        else:
            logger.debug("No custom break with id %s; update ignored", normalized.id)
            return False

        breaks[idx] = normalized
        self._settings.set_custom_breaks(breaks)
        self._custom_index[normalized.id] = normalized
        if self.is_enabled:
            if normalized.enabled:
                self.restart_custom_timer(normalized.id)
            else:
                self.stop_custom_timer(normalized.id)
        return adjusted

    def remove_custom_break(self, break_id: uuid.UUID) -> bool:
        breaks = self._settings.custom_breaks()
        remaining = [b for b in breaks if b.id != break_id]
        found = len(remaining) < len(breaks)
        if found:
            self._settings.set_custom_breaks(remaining)
        self.stop_custom_timer(break_id)
        self._custom_index.pop(break_id, None)
        return found

    def restart_custom_timer(self, break_id: uuid.UUID) -> None:
        self.stop_custom_timer(break_id)
        definition = self._custom_index.get(break_id)
        if definition is None or not definition.enabled:
            return
        if not self.is_enabled or not self.custom_breaks_enabled:
            logger.debug("Custom breaks disabled; not starting timer for %s", definition.name)
            return
        self._custom_timers[break_id] = RepeatingTimer(
            self._clock,
            definition.interval,
            lambda: self._on_custom_fired(break_id),
            key=f"custom:{break_id}",
            tolerance=self._tolerance,
        )
        logger.debug(
            "Custom timer restarted for: %s interval: %ss", definition.name, definition.interval
        )
        self._notify(EngineEvent.TIMERS_CHANGED)

    def stop_custom_timer(self, break_id: uuid.UUID) -> None:
        timer = self._custom_timers.pop(break_id, None)
        if timer is not None:
            timer.invalidate()
            self._notify(EngineEvent.TIMERS_CHANGED)

    def _start_custom_timers(self) -> None:
        self._custom_index = {b.id: b for b in self._settings.custom_breaks()}
        for definition in self._custom_index.values():
            if definition.enabled and definition.id not in self._custom_timers:
                self.restart_custom_timer(definition.id)

    def _on_custom_fired(self, break_id: uuid.UUID) -> None:
        # look the definition up now; the timer may predate an edit
        definition = self._custom_index.get(break_id)
        if definition is None or not definition.enabled:
            logger.debug("Custom break %s no longer active; stopping its timer", break_id)
            self.stop_custom_timer(break_id)
            return
        timer = self._custom_timers.get(break_id)
        if timer is not None and timer.interval != definition.interval:
            self.restart_custom_timer(break_id)

        self._trigger(
            BreakTag.custom(definition.name),
            definition.name,
            definition.icon or CATEGORY_DISPLAY[BreakCategory.CUSTOM][1],
            definition.duration,
            custom_id=break_id,
        )


def _named(category: BreakCategory) -> BreakCategory:
    category = BreakCategory(category)
    if category == BreakCategory.CUSTOM:
        raise ValueError("custom breaks are scheduled by id, not by category")
    return category


def _cancel(handle) -> None:
    if handle is not None:
        handle.cancel()
