"""
Source and sink interfaces and result contracts for the I/O handlers.

Concrete handlers (file, rabbitmq) implement the `Source` / `Sink` protocols.
The ABC helpers own the termination discipline so subclasses only write the
read or write loop:

- the work channel is closed exactly once, on every exit path;
- the completion signal is released exactly once per participant, after the
  handler's own resources are released;
- failures surface as typed `IOHandlerError`s raised to the caller, never as
  process exits; cancellation ends the run quietly with `cancelled=True`.
"""

from __future__ import annotations

import abc
import time
from typing import Optional, Protocol, TypedDict, runtime_checkable

from iohandlers.channels import CancelToken, Channel, CompletionSignal
from iohandlers.config import Settings
from iohandlers.domain.models import WorkItem
from iohandlers.errors import CancelledError, IOHandlerError, StreamError
from iohandlers.utils.logging import get_logger

log = get_logger(__name__)


class SourceResult(TypedDict, total=False):
    """Summary returned by `Source.feed_channel`."""

    participant: str
    items: int
    duration_seconds: float
    cancelled: bool
    notes: Optional[str]


class SinkResult(TypedDict, total=False):
    """Summary returned by `Sink.write_results`."""

    participant: str
    items: int
    duration_seconds: float
    cancelled: bool
    notes: Optional[str]


@runtime_checkable
class Source(Protocol):
    """
    Produces work items into a channel.

    Contract: construct once, call `initialize` once, then `feed_channel` once.
    """

    name: str
    participant: str

    def initialize(self, settings: Settings) -> None: ...

    def feed_channel(
        self,
        out: Channel[WorkItem],
        completion: CompletionSignal,
        zone_mode: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> SourceResult: ...

    def close(self) -> None: ...


@runtime_checkable
class Sink(Protocol):
    """
    Drains result lines from a channel into a destination.

    Contract: construct once, call `initialize` once, then `write_results` once.
    """

    name: str
    participant: str

    def initialize(self, settings: Settings) -> None: ...

    def write_results(
        self,
        results: Channel[str],
        completion: CompletionSignal,
        cancel: Optional[CancelToken] = None,
    ) -> SinkResult: ...

    def close(self) -> None: ...


class AbstractSource(abc.ABC):
    """
    ABC helper for sources.

    Subclasses set `name` and implement `initialize` and `_feed`; `_feed` sends
    items through `self._emit` so the item count survives a mid-stream failure.
    `_shutdown` releases handler resources and runs after the channel is closed.
    """

    name: str

    def __init__(self, participant: Optional[str] = None) -> None:
        self.participant = participant or f"source:{self.name}"
        self._sent = 0

    @abc.abstractmethod
    def initialize(self, settings: Settings) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def _feed(
        self, out: Channel[WorkItem], zone_mode: bool, cancel: Optional[CancelToken]
    ) -> Optional[str]:  # pragma: no cover - interface only
        """Run the read loop; return optional notes for the result."""
        raise NotImplementedError

    def _shutdown(self) -> None:
        """Release handler resources. Runs after the channel closes; must be idempotent."""

    def close(self) -> None:
        """Release resources of a source that was initialized but never fed."""
        self._shutdown()

    def _emit(self, out: Channel[WorkItem], item: WorkItem, cancel: Optional[CancelToken]) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
        out.send(item, cancel)
        self._sent += 1

    def feed_channel(
        self,
        out: Channel[WorkItem],
        completion: CompletionSignal,
        zone_mode: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> SourceResult:
        start = time.perf_counter()
        cancelled = False
        notes: Optional[str] = None
        log.info(f"[SOURCE START] {self.participant}", extra={"participant": self.participant})
        try:
            notes = self._feed(out, zone_mode, cancel)
        except CancelledError:
            cancelled = True
            log.warning(
                f"[SOURCE CANCELLED] {self.participant}",
                extra={"participant": self.participant, "items": self._sent},
            )
        except IOHandlerError:
            log.exception(f"[SOURCE FAILED] {self.participant}", extra={"participant": self.participant})
            raise
        except Exception as exc:
            log.exception(f"[SOURCE FAILED] {self.participant}", extra={"participant": self.participant})
            raise StreamError(f"{self.participant}: {exc}") from exc
        finally:
            try:
                out.close()
            finally:
                try:
                    self._shutdown()
                finally:
                    completion.release(self.participant)

        duration = time.perf_counter() - start
        log.info(
            f"[SOURCE COMPLETE] {self.participant}",
            extra={"participant": self.participant, "items": self._sent},
        )
        return SourceResult(
            participant=self.participant,
            items=self._sent,
            duration_seconds=duration,
            cancelled=cancelled,
            notes=notes,
        )


class AbstractSink(abc.ABC):
    """
    ABC helper for sinks.

    Subclasses implement `initialize` and `_drain`, counting lines through
    `self._written`. `_shutdown` releases the destination.
    """

    name: str

    def __init__(self, participant: Optional[str] = None) -> None:
        self.participant = participant or f"sink:{self.name}"
        self._written = 0

    @abc.abstractmethod
    def initialize(self, settings: Settings) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def _drain(
        self, results: Channel[str], cancel: Optional[CancelToken]
    ) -> Optional[str]:  # pragma: no cover - interface only
        raise NotImplementedError

    def _shutdown(self) -> None:
        """Release the destination. Must be idempotent."""

    def close(self) -> None:
        self._shutdown()

    def write_results(
        self,
        results: Channel[str],
        completion: CompletionSignal,
        cancel: Optional[CancelToken] = None,
    ) -> SinkResult:
        start = time.perf_counter()
        cancelled = False
        notes: Optional[str] = None
        log.info(f"[SINK START] {self.participant}", extra={"participant": self.participant})
        try:
            notes = self._drain(results, cancel)
        except CancelledError:
            cancelled = True
            log.warning(
                f"[SINK CANCELLED] {self.participant}",
                extra={"participant": self.participant, "items": self._written},
            )
        except IOHandlerError:
            log.exception(f"[SINK FAILED] {self.participant}", extra={"participant": self.participant})
            raise
        except Exception as exc:
            log.exception(f"[SINK FAILED] {self.participant}", extra={"participant": self.participant})
            raise StreamError(f"{self.participant}: {exc}") from exc
        finally:
            try:
                self._shutdown()
            finally:
                completion.release(self.participant)

        duration = time.perf_counter() - start
        log.info(
            f"[SINK COMPLETE] {self.participant}",
            extra={"participant": self.participant, "items": self._written},
        )
        return SinkResult(
            participant=self.participant,
            items=self._written,
            duration_seconds=duration,
            cancelled=cancelled,
            notes=notes,
        )


__all__ = [
    "SourceResult",
    "SinkResult",
    "Source",
    "Sink",
    "AbstractSource",
    "AbstractSink",
]
