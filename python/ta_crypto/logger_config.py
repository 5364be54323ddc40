"""Central loguru configuration.

Call :func:`init_logger` once at program start (the scripts do). Library
modules only ever ``from loguru import logger``.

Environment (.env):
- LOG_LEVEL: console/file level (default INFO)
- LOG_DIR: directory of the rotating file sink; unset disables it
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def init_logger(level: Optional[str] = None, log_dir: Optional[str | Path] = None) -> str:
    """Reset loguru handlers; returns the effective level."""
    load_dotenv()
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_dir is None:
        log_dir = os.getenv("LOG_DIR") or None

    logger.remove()
    logger.add(sys.stderr, level=level, colorize=True, format=LOG_FORMAT)

    if log_dir is not None:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        logger.add(
            path / "ta_crypto.log",
            level=level,
            rotation="1 day",
            retention="7 days",
            enqueue=True,
            backtrace=True,
            diagnose=False,
            format=LOG_FORMAT,
        )
        logger.debug("Logging to {}", path / "ta_crypto.log")
    return level
