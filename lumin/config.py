"""
Central configuration for the Lumin break engine process.
All values can be overridden via environment variables or a local config.json.

User-facing break settings (intervals, durations, toggles) do not live here;
see settings.py.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    settings_file: str = "settings.json"
    statistics_db: str = "statistics.db"
    lock_file: str = "lumin.lock"

    # Logging
    log_level: str = "INFO"

    # Scheduling
    timer_tolerance: float = 0.1             # fraction of the interval
    state_push_interval_s: float = 2.0       # websocket heartbeat

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def lock_path(self) -> Path:
        return self.data_dir / self.lock_file

    @classmethod
    def load(cls, config_file: Path = _CONFIG_FILE) -> "Config":
        """Defaults, then config.json, then LUMIN_<FIELD> environment variables."""
        cfg = cls()
        names = list(cfg.__dataclass_fields__)  # type: ignore[attr-defined]
        if config_file.exists():
            for key, value in json.loads(config_file.read_text()).items():
                if key in names:
                    cfg._coerce_into(key, value)
                else:
                    logger.warning("Ignoring unknown config key %r in %s", key, config_file)
        for key in names:
            raw = os.environ.get(f"LUMIN_{key.upper()}")
            if raw is not None:
                cfg._coerce_into(key, raw)
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        return cfg

    def _coerce_into(self, key: str, value) -> None:
        setattr(self, key, type(getattr(self, key))(value))


# Module-level singleton
config = Config.load()
