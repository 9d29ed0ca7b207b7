"""
Utilities package for the I/O handlers.

Exports shared helpers for logging and profiling.
Keep this package lightweight and free of handler-specific logic.
"""

from iohandlers.utils.logging import configure_logging, get_logger
from iohandlers.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
