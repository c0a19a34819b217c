"""
Repeating timers bound to one schedule key (a break category or a custom break id).
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

from .clock import Clock

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """
    Fires *callback* every *interval* seconds, first at ``now + interval``.

    The next fire is measured from the previous scheduled fire, not from when
    the callback ran; fires missed while the loop was busy are coalesced into
    one. The timer reschedules itself before calling back, so the callback may
    invalidate or replace it.
    """

    def __init__(
        self,
        clock: Clock,
        interval: float,
        callback: Callable[[], Any],
        key: str = "",
        tolerance: float = 0.1,
    ):
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._clock = clock
        self._callback = callback
        self.key = key
        self.interval = float(interval)
        self.tolerance = self.interval * tolerance
        self.fire_at = clock.now() + self.interval
        self._valid = True
        self._handle: Optional[Any] = clock.call_later(self.interval, self._fire)

    @property
    def valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        if not self._valid:
            return
        self._valid = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        # a fire delivered after invalidate() is discarded
        if not self._valid:
            return
        now = self._clock.now()
        next_fire = self.fire_at + self.interval
        while next_fire <= now:
            next_fire += self.interval
        self.fire_at = next_fire
        self._handle = self._clock.call_later(next_fire - now, self._fire)
        logger.debug("Timer %s fired; next fire at %.3f", self.key, self.fire_at)
        self._callback()

    def __repr__(self) -> str:
        state = "valid" if self._valid else "invalid"
        return f"<RepeatingTimer {self.key} every {self.interval:g}s next={self.fire_at:.3f} {state}>"
