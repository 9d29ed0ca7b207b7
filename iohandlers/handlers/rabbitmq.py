"""
RabbitMQ input handler.

Consumes a durable, length-bounded queue with manual acknowledgement and turns
each delivery into one work item per whitespace-separated domain in its body.

Lifecycle:
    UNCONFIGURED -> CONNECTED -> DECLARED      (initialize)
    CONSUMING -> DRAINING -> CLOSED           (feed_channel)

Delivery guarantees:
- a delivery is acked only after every one of its domains is in the work
  channel, so a crash before that point leads to redelivery (at-least-once);
- prefetch caps the number of unacked deliveries the broker pushes;
- on cancellation the consumer is cancelled, which requeues unacked deliveries.

The consume loop wakes up every `consume_poll_seconds` when idle to check the
cancel token, so shutdown is bounded by that interval. A send blocked on a
full work channel also wakes up at that interval to service the connection,
so heartbeats keep flowing while downstream is slow.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Dict, Optional

import pika.exceptions
from pika.adapters.blocking_connection import BlockingChannel, BlockingConnection

from iohandlers.channels import CancelToken, Channel
from iohandlers.config import Settings
from iohandlers.domain.models import PlainItem, QueueConfig, WorkItem
from iohandlers.errors import CancelledError, ConnectionSetupError, StreamError
from iohandlers.handlers.abstract import AbstractSource
from iohandlers.infrastructure.amqp_factory import load_queue_config, open_connection
from iohandlers.utils.logging import get_logger

log = get_logger(__name__)

# Broker close codes that mean "stream is over" rather than "stream failed".
_NORMAL_CLOSE_CODES = frozenset({200, 320})


class QueueState(str, enum.Enum):
    UNCONFIGURED = "unconfigured"
    CONNECTED = "connected"
    DECLARED = "declared"
    CONSUMING = "consuming"
    DRAINING = "draining"
    CLOSED = "closed"


def split_domains(body: bytes) -> list[str]:
    """Split a delivery body into domain tokens on any whitespace."""
    return body.decode("utf-8", errors="replace").split()


class RabbitMQSource(AbstractSource):
    """
    Feed work items from a RabbitMQ queue.

    `connection_factory` opens the broker connection for a `QueueConfig`;
    tests substitute a fake broker through it.
    """

    name: str = "rabbitmq"

    def __init__(
        self,
        participant: Optional[str] = None,
        connection_factory: Callable[[QueueConfig], BlockingConnection] = open_connection,
    ) -> None:
        super().__init__(participant)
        self._connection_factory = connection_factory
        self.state = QueueState.UNCONFIGURED
        self.config: Optional[QueueConfig] = None
        self.poll_interval = 1.0
        self.acked = 0
        self._connection: Optional[BlockingConnection] = None
        self._channel: Optional[BlockingChannel] = None

    def initialize(self, settings: Settings) -> None:
        """
        Load the handler config, connect, declare the queue and set prefetch.

        Raises
        ------
        ConfigurationError
            If the config file or TLS material is missing or malformed.
        ConnectionSetupError
            If the broker is unreachable or the queue declaration is rejected,
            e.g. an existing queue with different arguments.
        """
        self.config = load_queue_config(settings.input_handler_config)
        self.poll_interval = settings.consume_poll_seconds

        self._connection = self._connection_factory(self.config)
        self.state = QueueState.CONNECTED
        try:
            self._channel = self._connection.channel()
            self._declare(self._channel, self.config)
            self.state = QueueState.DECLARED
            self._channel.basic_qos(prefetch_count=self.config.prefetch_count)
        except pika.exceptions.ChannelClosedByBroker as exc:
            self._shutdown()
            raise ConnectionSetupError(
                f"Failed to declare queue '{self.config.queue_name}': "
                f"{exc.reply_code} {exc.reply_text}"
            ) from exc
        except pika.exceptions.AMQPError as exc:
            self._shutdown()
            raise ConnectionSetupError(f"Failed to set up rabbitmq channel: {exc!r}") from exc
        except Exception:
            self._shutdown()
            raise

        log.info(
            "Queue declared",
            extra={
                "queue": self.config.queue_name,
                "max_length": self.config.queue_size,
                "prefetch": self.config.prefetch_count,
            },
        )

    @staticmethod
    def _declare(channel: BlockingChannel, config: QueueConfig) -> None:
        arguments: Dict[str, Any] = {"x-max-length": config.queue_size}
        channel.queue_declare(
            queue=config.queue_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
            arguments=arguments,
        )

    def _feed(
        self, out: Channel[WorkItem], zone_mode: bool, cancel: Optional[CancelToken]
    ) -> Optional[str]:
        channel = self._channel
        if channel is None or self._connection is None or self.config is None:
            raise StreamError("rabbitmq input handler used before initialize")
        if zone_mode:
            log.warning("Zone file input is not supported by the rabbitmq handler; reading plain domains")

        deliveries = channel.consume(
            self.config.queue_name,
            auto_ack=False,
            exclusive=False,
            inactivity_timeout=self.poll_interval,
        )
        self.state = QueueState.CONSUMING
        try:
            for method, _properties, body in deliveries:
                if cancel is not None and cancel.cancelled:
                    raise CancelledError("rabbitmq consumer cancelled")
                if method is None:
                    continue
                self._handle_delivery(channel, out, method.delivery_tag, body, cancel)
        except (
            pika.exceptions.ChannelClosedByBroker,
            pika.exceptions.ConnectionClosedByBroker,
        ) as exc:
            if exc.reply_code not in _NORMAL_CLOSE_CODES:
                raise StreamError(
                    f"rabbitmq closed the stream: {exc.reply_code} {exc.reply_text}"
                ) from exc
            log.info("Broker closed the delivery stream", extra={"reply_code": exc.reply_code})
        except pika.exceptions.AMQPError as exc:
            raise StreamError(f"rabbitmq consume failed: {exc!r}") from exc
        finally:
            self.state = QueueState.DRAINING

        return f"acked {self.acked} deliveries"

    def _emit(self, out: Channel[WorkItem], item: WorkItem, cancel: Optional[CancelToken]) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
        # pika only does I/O inside its own calls; keep heartbeats flowing while
        # a bounded work channel is full.
        while not out.offer(item, self.poll_interval, cancel):
            if self._connection is not None:
                self._connection.process_data_events(time_limit=0)
        self._sent += 1

    def _handle_delivery(
        self,
        channel: BlockingChannel,
        out: Channel[WorkItem],
        delivery_tag: int,
        body: bytes,
        cancel: Optional[CancelToken],
    ) -> None:
        domains = split_domains(body)
        for domain in domains:
            self._emit(out, PlainItem(domain), cancel)
        # Ack only once every domain is enqueued.
        channel.basic_ack(delivery_tag=delivery_tag)
        self.acked += 1
        log.debug("Delivery acked", extra={"delivery_tag": delivery_tag, "tokens": len(domains)})

    def _shutdown(self) -> None:
        channel, self._channel = self._channel, None
        connection, self._connection = self._connection, None
        if channel is not None and channel.is_open:
            try:
                requeued = channel.cancel()
                if requeued:
                    log.info("Requeued unacked deliveries", extra={"requeued": requeued})
            except pika.exceptions.AMQPError as exc:
                log.warning("Failed to cancel rabbitmq consumer", extra={"error": repr(exc)})
        if connection is not None and connection.is_open:
            try:
                connection.close()
            except pika.exceptions.AMQPError as exc:
                log.warning("Failed to close rabbitmq connection", extra={"error": repr(exc)})
        if connection is not None:
            self.state = QueueState.CLOSED


__all__ = ["QueueState", "RabbitMQSource", "split_domains"]
