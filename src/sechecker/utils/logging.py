"""Logging setup for sechecker."""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int | str = logging.INFO, format_string: str | None = None) -> logging.Logger:
    """
    Set up logging for sechecker.

    Args:
        level: Logging level, as a number or a level name (default: INFO).
        format_string: Custom format string (optional).

    Returns:
        The package logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger("sechecker")
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a sechecker component."""
    return logging.getLogger(f"sechecker.{name}")
