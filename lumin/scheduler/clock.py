"""
Clock — the engine's only view of time and of the event loop.

Everything the engine schedules goes through a Clock, so the same engine code
runs on the asyncio loop in production and on a virtual clock in tests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Clock(ABC):

    @abstractmethod
    def now(self) -> float:
        """Current time as a Unix timestamp."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> Any:
        """Run *callback* on the engine's loop after *delay* seconds. Returns a cancellable handle."""

    @abstractmethod
    def run_io(self, fn: Callable[..., Any], *args: Any) -> None:
        """Fire-and-forget *fn(*args)* without blocking the loop."""


class AsyncioClock(Clock):
    """Wall-clock time, callbacks on the running asyncio loop, I/O on its default executor."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)

    def run_io(self, fn: Callable[..., Any], *args: Any) -> None:
        future = self.loop.run_in_executor(None, fn, *args)
        future.add_done_callback(_log_failure)


def _log_failure(future: "asyncio.Future[Any]") -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background I/O failed: %s", exc, exc_info=exc)
