"""Logging helpers for the meal planner service.

Provides a `get_logger` factory that attaches a shared stream handler and a
rotating file handler, so every module logs with the same format.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from core.config import get_settings

_settings = get_settings()

LOG_DIR = _settings.log_dir or os.path.join(os.path.dirname(__file__), "..", "logs")
os.makedirs(LOG_DIR, exist_ok=True)

LOG_FILE = os.path.join(LOG_DIR, "meal_planner.log")

_formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

_stream_handler = logging.StreamHandler()
_stream_handler.setFormatter(_formatter)

_file_handler = RotatingFileHandler(LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3)
_file_handler.setFormatter(_formatter)

DEFAULT_LEVEL = logging.getLevelName(_settings.log_level.upper())
if not isinstance(DEFAULT_LEVEL, int):
    DEFAULT_LEVEL = logging.INFO


def get_logger(name: str = __name__, level: int = None) -> logging.Logger:
    """Return a logger wired to the shared stream and rotating file handlers.

    Handlers are attached only once per logger name, so repeated calls from
    the same module do not duplicate output.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level if level is not None else DEFAULT_LEVEL)
        logger.addHandler(_stream_handler)
        logger.addHandler(_file_handler)
    return logger
