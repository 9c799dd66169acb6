"""Shared utilities for sechecker."""

from sechecker.utils.logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
]
