from __future__ import annotations

import threading
import time

import pytest

from iohandlers.channels import CancelToken, Channel, CompletionSignal
from iohandlers.errors import CancelledError, ChannelClosedError, CompletionError

READER_COUNT = 4
ITEM_COUNT = 200


def test_channel_preserves_fifo_order_and_drains_after_close() -> None:
    channel: Channel[int] = Channel(name="test")
    for value in range(5):
        channel.send(value)
    channel.close()

    assert list(channel) == [0, 1, 2, 3, 4]
    assert list(channel) == []


def test_channel_rejects_send_after_close_and_double_close() -> None:
    channel: Channel[str] = Channel(name="test")
    channel.close()

    with pytest.raises(ChannelClosedError, match="send on closed channel"):
        channel.send("late")
    with pytest.raises(ChannelClosedError, match="closed twice"):
        channel.close()


def test_receive_on_closed_empty_channel_raises() -> None:
    channel: Channel[str] = Channel()
    channel.close()
    with pytest.raises(ChannelClosedError):
        channel.receive()


def test_closure_is_visible_to_every_reader() -> None:
    channel: Channel[int] = Channel(maxsize=8)
    received: list[int] = []
    lock = threading.Lock()

    def reader() -> None:
        for item in channel:
            with lock:
                received.append(item)

    readers = [threading.Thread(target=reader) for _ in range(READER_COUNT)]
    for thread in readers:
        thread.start()
    for value in range(ITEM_COUNT):
        channel.send(value)
    channel.close()
    for thread in readers:
        thread.join(timeout=5)

    assert not any(thread.is_alive() for thread in readers)
    assert sorted(received) == list(range(ITEM_COUNT))


def test_bounded_send_blocks_until_cancelled() -> None:
    channel: Channel[str] = Channel(maxsize=1)
    cancel = CancelToken()
    channel.send("first", cancel)
    errors: list[BaseException] = []

    def blocked_send() -> None:
        try:
            channel.send("second", cancel)
        except CancelledError as exc:
            errors.append(exc)

    thread = threading.Thread(target=blocked_send)
    thread.start()
    time.sleep(0.05)
    assert thread.is_alive()

    cancel.cancel()
    thread.join(timeout=2)

    assert not thread.is_alive()
    assert len(errors) == 1
    assert len(channel) == 1


def test_bounded_send_resumes_when_reader_makes_room() -> None:
    channel: Channel[str] = Channel(maxsize=1)
    channel.send("first")
    thread = threading.Thread(target=channel.send, args=("second",))
    thread.start()
    time.sleep(0.05)

    assert channel.receive() == "first"
    thread.join(timeout=2)
    assert channel.receive() == "second"


def test_receive_honors_cancel_token() -> None:
    channel: Channel[str] = Channel()
    cancel = CancelToken()
    timer = threading.Timer(0.05, cancel.cancel)
    timer.start()

    with pytest.raises(CancelledError):
        channel.receive(cancel)


def test_buffered_items_are_received_even_after_cancel() -> None:
    channel: Channel[str] = Channel()
    cancel = CancelToken()
    channel.send("ready")
    cancel.cancel()

    assert channel.receive(cancel) == "ready"


def test_completion_signal_counts_each_participant_once() -> None:
    signal = CompletionSignal(2)
    assert signal.wait(timeout=0.01) is False

    signal.release("source:file")
    assert signal.remaining == 1
    with pytest.raises(CompletionError, match="released twice"):
        signal.release("source:file")

    signal.release("sink:file")
    assert signal.wait(timeout=0.01) is True
    assert signal.released == {"source:file", "sink:file"}

    with pytest.raises(CompletionError, match="already complete"):
        signal.release("sink:extra")


def test_completion_signal_wakes_waiter_from_other_thread() -> None:
    signal = CompletionSignal(1)
    threading.Timer(0.05, signal.release, args=("source:file",)).start()
    assert signal.wait(timeout=2) is True


def test_completion_signal_rejects_negative_count() -> None:
    with pytest.raises(ValueError):
        CompletionSignal(-1)


def test_cancel_token_raise_if_cancelled() -> None:
    token = CancelToken()
    token.raise_if_cancelled()
    token.cancel()
    assert token.cancelled
    assert token.wait(0) is True
    with pytest.raises(CancelledError):
        token.raise_if_cancelled()


def test_offer_gives_up_on_a_full_channel_after_timeout() -> None:
    channel: Channel[str] = Channel(maxsize=1)
    channel.send("first")

    started = time.monotonic()
    assert channel.offer("second", timeout=0.05) is False
    assert time.monotonic() - started >= 0.04
    assert len(channel) == 1

    assert channel.receive() == "first"
    assert channel.offer("second", timeout=0.05) is True
    assert channel.receive() == "second"


def test_offer_honors_close_and_cancel() -> None:
    channel: Channel[str] = Channel(maxsize=1)
    channel.send("first")
    cancel = CancelToken()
    cancel.cancel()

    with pytest.raises(CancelledError):
        channel.offer("second", timeout=1, cancel=cancel)

    channel.close()
    with pytest.raises(ChannelClosedError):
        channel.offer("third", timeout=1)
