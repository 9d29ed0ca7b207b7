"""
iohandlers - pluggable input/output adapters for domain resolution pipelines.

Sources feed work items (domain names, or DNS zone-file records) into a work
channel; sinks drain result lines from a results channel. Built-in handlers:

- file: lines or zone-file records from a file/stdin; results to a file/stdout
- rabbitmq: domains from a durable RabbitMQ queue with prefetch flow control
  and acknowledge-after-enqueue delivery

The coordinator wires a source, relay workers and sinks together and waits on
a completion signal released once by every source and sink.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from iohandlers.channels import CancelToken, Channel, CompletionSignal
from iohandlers.config import Settings, get_settings
from iohandlers.coordinator import PipelineConfig, PipelineResult, run_pipeline
from iohandlers.domain.models import PlainItem, QueueConfig, WorkItem, ZoneRecord
from iohandlers.errors import (
    CancelledError,
    ChannelClosedError,
    CompletionError,
    ConfigurationError,
    ConnectionSetupError,
    IOHandlerError,
    PipelineError,
    RegistryError,
    StreamError,
)
from iohandlers.handlers.abstract import (
    AbstractSink,
    AbstractSource,
    Sink,
    SinkResult,
    Source,
    SourceResult,
)
from iohandlers.registry import HandlerRegistry, default_registry
from iohandlers.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Plumbing
    "CancelToken",
    "Channel",
    "CompletionSignal",
    # Orchestration
    "PipelineConfig",
    "PipelineResult",
    "run_pipeline",
    "HandlerRegistry",
    "default_registry",
    # Domain
    "PlainItem",
    "ZoneRecord",
    "WorkItem",
    "QueueConfig",
    # Handler abstractions
    "Source",
    "Sink",
    "AbstractSource",
    "AbstractSink",
    "SourceResult",
    "SinkResult",
    # Errors
    "IOHandlerError",
    "ConfigurationError",
    "ConnectionSetupError",
    "StreamError",
    "RegistryError",
    "ChannelClosedError",
    "CompletionError",
    "CancelledError",
    "PipelineError",
    # Logging
    "configure_logging",
    "get_logger",
]
