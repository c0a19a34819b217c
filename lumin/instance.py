"""
Single-instance guard — only one engine may own the break timers.

A pid file created with O_EXCL marks the live instance. A pid file left
behind by a process that is no longer running is treated as stale and
replaced.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import urllib.error
import urllib.request
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    if sys.platform == "win32":
        import ctypes

        PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
        handle = ctypes.windll.kernel32.OpenProcess(
            PROCESS_QUERY_LIMITED_INFORMATION, False, pid
        )
        if not handle:
            return False
        ctypes.windll.kernel32.CloseHandle(handle)
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True     # exists, owned by someone else
    return True


class InstanceLock:

    def __init__(self, path: Path):
        self.path = Path(path)
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def owner_pid(self) -> Optional[int]:
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def acquire(self) -> bool:
        """Take the lock. Returns False if another live instance holds it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                pid = self.owner_pid()
                if pid is not None and pid != os.getpid() and _pid_alive(pid):
                    logger.info("Another instance is running (pid %d)", pid)
                    return False
                logger.debug("Removing stale instance lock %s (pid %s)", self.path, pid)
                try:
                    self.path.unlink()
                except FileNotFoundError:
                    pass
                continue
            with os.fdopen(fd, "w") as fh:
                fh.write(str(os.getpid()))
            self._held = True
            return True
        return False

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            if self.owner_pid() == os.getpid():
                self.path.unlink()
        except FileNotFoundError:
            pass


def query_running_instance(base_url: str, timeout: float = 2.0) -> Optional[dict]:
    """Ask a running engine for its /health payload. None if nothing answers."""
    try:
        with urllib.request.urlopen(f"{base_url.rstrip('/')}/health", timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (urllib.error.URLError, OSError, ValueError):
        return None
