"""
Typed error taxonomy for the I/O handlers.

Every failure a handler can hit is raised as one of these exceptions instead of
terminating the process, so the coordinator (or the host pipeline) decides
whether to abort or to drain sibling handlers and stop.
"""

from __future__ import annotations

from typing import Dict, Optional


class IOHandlerError(Exception):
    """Base class for all handler errors."""


class ConfigurationError(IOHandlerError):
    """Missing or malformed configuration, including missing TLS material."""


class ConnectionSetupError(IOHandlerError):
    """Broker unreachable, or queue declaration rejected, before streaming starts."""


class StreamError(IOHandlerError):
    """I/O failure after streaming has started (file read, broker channel error)."""


class RegistryError(IOHandlerError):
    """Unknown or duplicate handler name."""


class ChannelClosedError(IOHandlerError):
    """Send on a closed channel, or a second close."""


class CompletionError(IOHandlerError):
    """A participant released the completion signal twice, or too many releases."""


class CancelledError(IOHandlerError):
    """A blocking operation observed a cancelled token."""


class PipelineError(IOHandlerError):
    """
    Raised by the coordinator under the strict failure policy.

    `errors` maps participant name to the exception it raised.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, BaseException]] = None) -> None:
        super().__init__(message)
        self.errors: Dict[str, BaseException] = dict(errors or {})


__all__ = [
    "IOHandlerError",
    "ConfigurationError",
    "ConnectionSetupError",
    "StreamError",
    "RegistryError",
    "ChannelClosedError",
    "CompletionError",
    "CancelledError",
    "PipelineError",
]
