"""
Thread-based handoff primitives shared by sources, sinks and the coordinator.

- `Channel`: FIFO with a single close event, safe for many readers and writers.
- `CompletionSignal`: countdown latch released once per participant.
- `CancelToken`: cooperative cancellation checked at every blocking point.

Usage:
    work = Channel(maxsize=1000, name="work")
    done = CompletionSignal(2)

    work.send(item)
    work.close()
    for item in work:
        ...
    done.release("source")
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Deque, Generic, Iterator, Optional, Set, TypeVar

from iohandlers.errors import CancelledError, ChannelClosedError, CompletionError

T = TypeVar("T")

# Upper bound on how long a blocked send/receive goes without re-checking its cancel token.
_CANCEL_POLL_SECONDS = 0.05


class CancelToken:
    """Cooperative cancellation flag backed by `threading.Event`."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or `timeout` elapses; return whether cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("operation cancelled")


class Channel(Generic[T]):
    """
    Thread-safe FIFO with Go-like close semantics.

    `maxsize <= 0` means unbounded. Once closed, `send` raises and readers keep
    receiving until the buffer is empty; after that every reader sees closure.
    """

    def __init__(self, maxsize: int = 0, name: str = "channel") -> None:
        self.name = name
        self.maxsize = maxsize
        self._items: Deque[T] = deque()
        self._cond = threading.Condition()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def _full(self) -> bool:
        return self.maxsize > 0 and len(self._items) >= self.maxsize

    def send(self, item: T, cancel: Optional[CancelToken] = None) -> None:
        """
        Append `item`, blocking while a bounded channel is full.

        Raises
        ------
        ChannelClosedError
            If the channel was closed before the item could be sent.
        CancelledError
            If `cancel` fires while waiting for room.
        """
        self._put(item, cancel, deadline=None)

    def offer(self, item: T, timeout: float, cancel: Optional[CancelToken] = None) -> bool:
        """
        Like `send`, but give up after `timeout` seconds without room.

        Returns False when the item was not sent, so the caller can do other
        work (e.g. keep a broker connection alive) before trying again.
        """
        return self._put(item, cancel, deadline=time.monotonic() + timeout)

    def _put(self, item: T, cancel: Optional[CancelToken], deadline: Optional[float]) -> bool:
        with self._cond:
            while True:
                if self._closed:
                    raise ChannelClosedError(f"send on closed channel '{self.name}'")
                if not self._full():
                    self._items.append(item)
                    self._cond.notify_all()
                    return True
                if cancel is not None and cancel.cancelled:
                    raise CancelledError(f"send on channel '{self.name}' cancelled")
                wait = _CANCEL_POLL_SECONDS if cancel is not None else None
                if deadline is not None:
                    left = deadline - time.monotonic()
                    if left <= 0:
                        return False
                    wait = left if wait is None else min(wait, left)
                self._cond.wait(timeout=wait)

    def close(self) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosedError(f"channel '{self.name}' closed twice")
            self._closed = True
            self._cond.notify_all()

    def receive(self, cancel: Optional[CancelToken] = None) -> T:
        """
        Pop the oldest item, blocking while the channel is empty and open.

        Raises
        ------
        ChannelClosedError
            When the channel is closed and fully drained.
        CancelledError
            If `cancel` fires while waiting for an item.
        """
        with self._cond:
            while True:
                if self._items:
                    item = self._items.popleft()
                    self._cond.notify_all()
                    return item
                if self._closed:
                    raise ChannelClosedError(f"channel '{self.name}' is closed")
                if cancel is not None and cancel.cancelled:
                    raise CancelledError(f"receive on channel '{self.name}' cancelled")
                self._cond.wait(timeout=_CANCEL_POLL_SECONDS if cancel is not None else None)

    def iter_items(self, cancel: Optional[CancelToken] = None) -> Iterator[T]:
        """Yield items until the channel is closed and drained."""
        while True:
            try:
                yield self.receive(cancel)
            except ChannelClosedError:
                return

    def __iter__(self) -> Iterator[T]:
        return self.iter_items()


class CompletionSignal:
    """
    Countdown latch the coordinator waits on.

    Each participant releases it exactly once, on its own termination path.
    """

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError("count must be >= 0")
        self._remaining = count
        self._released: Set[str] = set()
        self._cond = threading.Condition()

    @property
    def remaining(self) -> int:
        with self._cond:
            return self._remaining

    @property
    def released(self) -> Set[str]:
        with self._cond:
            return set(self._released)

    def release(self, participant: str) -> None:
        with self._cond:
            if participant in self._released:
                raise CompletionError(f"participant '{participant}' released twice")
            if self._remaining == 0:
                raise CompletionError(
                    f"participant '{participant}' released an already complete signal"
                )
            self._released.add(participant)
            self._remaining -= 1
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every participant released; return False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._remaining == 0, timeout=timeout)


def describe(channel: Channel[Any]) -> str:
    return f"{channel.name}(buffered={len(channel)}, closed={channel.closed})"


__all__ = ["CancelToken", "Channel", "CompletionSignal", "describe"]
