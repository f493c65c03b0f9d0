"""Utility functions for RegionForge.

Example:
    >>> from regionforge.utils import setup_logging
    >>> setup_logging(verbosity=1)
"""

from regionforge.utils.logging import ProgressLogger, Timer, get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "ProgressLogger",
    "Timer",
]
