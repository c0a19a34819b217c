"""
Entry point — start the Lumin break engine.

Usage:
    python -m lumin.main
    python -m lumin.main --port 8766 --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

import uvicorn

from .config import config
from .instance import InstanceLock, query_running_instance

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lumin break reminder engine")
    parser.add_argument("--host", default=config.api_host, help="API bind address")
    parser.add_argument("--port", type=int, default=config.api_port, help="API port")
    parser.add_argument("--log-level", default=config.log_level, help="DEBUG, INFO, WARNING, ...")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    lock = InstanceLock(config.lock_path)
    if not lock.acquire():
        running = query_running_instance(f"http://{args.host}:{args.port}")
        if running is not None:
            logger.info("Lumin is already running (%s); deferring to it", running.get("version"))
        else:
            logger.info("Lumin is already running (pid %s); deferring to it", lock.owner_pid())
        return 0

    try:
        uvicorn.run(
            "lumin.api.app:app",
            host=args.host,
            port=args.port,
            reload=False,
            log_level=args.log_level.lower(),
        )
    finally:
        lock.release()
    return 0


if __name__ == "__main__":
    sys.exit(main())
