"""
Shared pytest fixtures and configuration.

Engine tests run on ManualClock: virtual time that only moves when a test
calls advance()/advance_to(), delivering due callbacks in time order.
"""

from __future__ import annotations

import heapq
import itertools
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from lumin.api.app import create_app
from lumin.overlay.presenter import OverlayHandle, OverlayPresenter
from lumin.scheduler.clock import Clock
from lumin.scheduler.engine import ScheduleEngine
from lumin.settings import SettingsStore
from lumin.stats.recorder import StatisticsRecorder


# ── Test doubles ─────────────────────────────────────────────────────────────

class _Call:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback):
        call = _Call(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (call.when, next(self._seq), call))
        return call

    def run_io(self, fn, *args) -> None:
        fn(*args)

    def advance_to(self, when: float) -> None:
        while self._queue and self._queue[0][0] <= when:
            due, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._now = due
            call.callback()
        self._now = when

    def advance(self, seconds: float) -> None:
        self.advance_to(self._now + seconds)

    def pending(self) -> int:
        return sum(1 for _, _, c in self._queue if not c.cancelled)


class FakeOverlay(OverlayHandle):

    def __init__(self, title, icon, duration, on_skip):
        self.title = title
        self.icon = icon
        self.duration = duration
        self.on_skip = on_skip
        self.dismissed = False

    def dismiss(self) -> None:
        self.dismissed = True

    def skip(self) -> None:
        self.on_skip()


class FakePresenter(OverlayPresenter):

    def __init__(self):
        self.overlays: list[FakeOverlay] = []

    def present(self, title, icon, duration, on_skip):
        overlay = FakeOverlay(title, icon, duration, on_skip)
        self.overlays.append(overlay)
        return overlay

    @property
    def last(self) -> FakeOverlay:
        return self.overlays[-1]


# ── Engine fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def presenter():
    return FakePresenter()


@pytest.fixture
def recorder():
    return MagicMock(spec=StatisticsRecorder)


@pytest.fixture
def settings(tmp_path):
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def make_engine(settings, recorder, presenter, clock):
    """Build an engine after applying *overrides* to the settings store."""
    def _make(**overrides) -> ScheduleEngine:
        if overrides:
            settings.update(overrides)
        return ScheduleEngine(settings, recorder, presenter, clock)
    return _make


# ── API fixtures ─────────────────────────────────────────────────────────────

@pytest.fixture()
def app(tmp_path):
    """A fresh app instance with its own data directory."""
    return create_app(data_dir=tmp_path)


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
