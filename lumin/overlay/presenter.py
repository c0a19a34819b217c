"""
Overlay Presenter — the surface that shows a break's full-screen countdown.

The engine owns the timing: it calls present() when a break starts and
dismiss() on natural expiry. The presenter only reports a genuine user skip,
at most once per overlay.

ApiOverlayPresenter keeps the active overlay in memory so that any UI
(browser dashboard, tray app) can render it from GET /state and send the
user's skip back through POST /breaks/current/skip.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..timefmt import format_countdown

logger = logging.getLogger(__name__)

SkipCallback = Callable[[], None]


class OverlayHandle(ABC):

    @abstractmethod
    def dismiss(self) -> None:
        """Close the overlay. Idempotent."""


class OverlayPresenter(ABC):

    @abstractmethod
    def present(
        self, title: str, icon: str, duration: float, on_skip: SkipCallback
    ) -> OverlayHandle:
        """Show an overlay for *duration* seconds; call *on_skip* if the user skips."""


@dataclass
class ActiveOverlay(OverlayHandle):
    title: str
    icon: str
    duration: float
    on_skip: SkipCallback
    shown_at: float
    dismissed: bool = False
    skipped: bool = False
    _presenter: Optional["ApiOverlayPresenter"] = field(default=None, repr=False)
    _now: Callable[[], float] = field(default=time.time, repr=False)

    def remaining(self, now: Optional[float] = None) -> float:
        now = self._now() if now is None else now
        return max(0.0, self.shown_at + self.duration - now)

    def countdown(self, now: Optional[float] = None) -> str:
        return format_countdown(self.remaining(now))

    def skip(self) -> bool:
        """User pressed skip. Returns False when the overlay is already gone."""
        if self.dismissed or self.skipped:
            return False
        self.skipped = True
        logger.debug("Overlay %r skipped by user", self.title)
        self.on_skip()
        return True

    def dismiss(self) -> None:
        if self.dismissed:
            return
        self.dismissed = True
        if self._presenter is not None:
            self._presenter._release(self)
        logger.debug("Overlay %r dismissed", self.title)


class ApiOverlayPresenter(OverlayPresenter):
    """Holds at most one active overlay for the HTTP API to expose."""

    def __init__(self, now: Callable[[], float] = time.time):
        self.current: Optional[ActiveOverlay] = None
        self._now = now

    def present(
        self, title: str, icon: str, duration: float, on_skip: SkipCallback
    ) -> ActiveOverlay:
        if self.current is not None:
            self.current.dismiss()
        overlay = ActiveOverlay(
            title=title,
            icon=icon,
            duration=duration,
            on_skip=on_skip,
            shown_at=self._now(),
            _presenter=self,
            _now=self._now,
        )
        self.current = overlay
        logger.info("Showing overlay %r (%s)", title, format_countdown(duration))
        return overlay

    def skip_current(self) -> bool:
        if self.current is None:
            return False
        return self.current.skip()

    def _release(self, overlay: ActiveOverlay) -> None:
        if self.current is overlay:
            self.current = None
