"""
Handlers package for the I/O adapters.

This module re-exports the abstract interfaces and the concrete handler classes
so downstream code can import from `iohandlers.handlers` directly.
"""

from iohandlers.handlers.abstract import (
    AbstractSink,
    AbstractSource,
    Sink,
    SinkResult,
    Source,
    SourceResult,
)
from iohandlers.handlers.file import FileSink, FileSource
from iohandlers.handlers.rabbitmq import QueueState, RabbitMQSource

__all__ = [
    # Abstracts
    "AbstractSink",
    "AbstractSource",
    "Sink",
    "SinkResult",
    "Source",
    "SourceResult",
    # Concrete handlers
    "FileSink",
    "FileSource",
    "QueueState",
    "RabbitMQSource",
]
