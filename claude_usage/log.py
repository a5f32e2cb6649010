"""Logging setup: a size-capped debug log in the application data directory."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import app_dir

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
LOG_MAX_BYTES = 2 * 1024 * 1024


def log_path() -> Path:
    return app_dir() / 'logs' / 'debug.log'


def setup_logging(level: int = logging.INFO, path: Path | None = None) -> Path | None:
    """Attach a rotating file handler to the package logger.

    Returns the log file path, or None if the log directory is not writable
    (the app then runs without a log file rather than failing to start).
    """
    path = path or log_path()
    logger = logging.getLogger('claude_usage')
    logger.setLevel(level)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=1, encoding='utf-8')
    except OSError:
        logger.addHandler(logging.NullHandler())
        return None

    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(handler)
    return path
