"""
Error taxonomy for the break engine.

Invalid input for the three primary break categories is rejected with
SettingsValidationError. Persistence problems are wrapped in PersistenceError
and reported, never raised into the scheduling loop.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class LuminError(Exception):
    """Base class for all engine errors."""


class SettingsValidationError(LuminError):
    def __init__(self, key: str, value: Any, message: str):
        super().__init__(message)
        self.key = key
        self.value = value
        self.message = message


class PersistenceError(LuminError):
    def __init__(self, message: str, path: Any = None):
        super().__init__(message)
        self.path = path


def report_error(context: str, exc: BaseException) -> None:
    """Log *exc* with the area of the engine it came from."""
    logger.error("Error in %s: %s", context, exc, exc_info=exc)
