"""
Integration tests for the rabbitmq input handler.

These tests run against a real RabbitMQ broker and verify that:
1. Published domains come out of the source in publish order
2. Deliveries are acked once their domains are enqueued
3. The pipeline relays queue input to a file sink

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest

from iohandlers.channels import CancelToken, Channel, CompletionSignal
from iohandlers.coordinator import PipelineConfig, run_pipeline
from iohandlers.domain.models import QueueConfig, WorkItem
from iohandlers.handlers.rabbitmq import QueueState, RabbitMQSource
from iohandlers.infrastructure.amqp_factory import open_connection
from scripts.publish_domains import _batch_bodies, _publish

DOMAINS = [f"host{i}.example" for i in range(12)]
PER_MESSAGE = 5
JOIN_TIMEOUT_SECONDS = 10

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
        reason="Integration tests require RUN_INTEGRATION_TESTS=1 and a reachable RabbitMQ",
    ),
]


def _message_count(values: Dict[str, Any]) -> int:
    connection = open_connection(QueueConfig.model_validate(values))
    try:
        frame = connection.channel().queue_declare(queue=values["Rabbitmq-Qname"], passive=True)
        return frame.method.message_count
    finally:
        connection.close()


def test_source_streams_published_domains_and_acks(
    broker_queue, write_queue_config, make_settings
) -> None:
    _publish(QueueConfig.model_validate(broker_queue), _batch_bodies(DOMAINS, PER_MESSAGE))
    settings = make_settings(
        input_handler="rabbitmq",
        input_handler_config=str(write_queue_config(broker_queue)),
        consume_poll_seconds=0.1,
    )
    source = RabbitMQSource()
    source.initialize(settings)
    out: Channel[WorkItem] = Channel(name="work")
    completion = CompletionSignal(1)
    cancel = CancelToken()
    received: List[str] = []

    thread = threading.Thread(target=source.feed_channel, args=(out, completion), kwargs={"cancel": cancel})
    thread.start()
    for item in out.iter_items():
        received.append(item.to_text())
        if len(received) == len(DOMAINS):
            break
    cancel.cancel()
    thread.join(timeout=JOIN_TIMEOUT_SECONDS)

    assert not thread.is_alive()
    assert received == DOMAINS
    assert completion.remaining == 0
    assert source.state is QueueState.CLOSED
    assert _message_count(broker_queue) == 0


def test_pipeline_relays_queue_to_file(
    broker_queue, write_queue_config, make_settings, tmp_path: Path
) -> None:
    _publish(QueueConfig.model_validate(broker_queue), _batch_bodies(DOMAINS, PER_MESSAGE))
    output_path = tmp_path / "out.txt"
    settings = make_settings(
        input_handler="rabbitmq",
        input_handler_config=str(write_queue_config(broker_queue)),
        output_file_path=str(output_path),
        consume_poll_seconds=0.1,
    )
    cancel = CancelToken()
    # The queue never ends on its own; stop intake once everything has had time to arrive.
    threading.Timer(2.0, cancel.cancel).start()

    result = run_pipeline(PipelineConfig.from_settings(settings), settings, cancel=cancel)

    assert result["completed"] is True
    assert result["errors"] == {}
    assert result["source"]["items"] == len(DOMAINS)
    assert output_path.read_text(encoding="utf-8").splitlines() == DOMAINS
