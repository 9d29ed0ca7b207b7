"""
Domain package for the I/O handlers.

Exports the work-item variants and the queue handler configuration model.
Keep this package focused on data definitions and validation concerns.
"""

from iohandlers.domain.models import PlainItem, QueueConfig, WorkItem, ZoneRecord

__all__ = [
    "PlainItem",
    "QueueConfig",
    "WorkItem",
    "ZoneRecord",
]
