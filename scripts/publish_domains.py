"""
Queue seeding script for the rabbitmq input handler.

Reads domains from a file (or stdin) and publishes them as persistent messages
to the queue described by a handler config file, several whitespace-separated
domains per message. The queue is declared with the same arguments the input
handler uses, so either side may start first.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import IO, Iterable, Iterator, List

import pika
import typer

from iohandlers.domain.models import QueueConfig
from iohandlers.infrastructure.amqp_factory import load_queue_config, open_connection

app = typer.Typer(help="Publish domains to the rabbitmq input handler's queue.")


def _read_domains(stream: IO[str]) -> Iterator[str]:
    for line in stream:
        yield from line.split()


def _batch_bodies(domains: Iterable[str], per_message: int) -> Iterator[bytes]:
    batch: List[str] = []
    for domain in domains:
        batch.append(domain)
        if len(batch) >= per_message:
            yield " ".join(batch).encode("utf-8")
            batch.clear()
    if batch:
        yield " ".join(batch).encode("utf-8")


def _publish(config: QueueConfig, bodies: Iterable[bytes]) -> int:
    connection = open_connection(config)
    published = 0
    try:
        channel = connection.channel()
        channel.queue_declare(
            queue=config.queue_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
            arguments={"x-max-length": config.queue_size},
        )
        properties = pika.BasicProperties(
            content_type="text/plain",
            delivery_mode=pika.DeliveryMode.Persistent,
        )
        for body in bodies:
            channel.basic_publish(
                exchange="",
                routing_key=config.queue_name,
                body=body,
                properties=properties,
            )
            published += 1
    finally:
        connection.close()
    return published


@app.command()
def main(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Rabbitmq handler config file (YAML).",
    ),
    input_path: Path | None = typer.Option(
        None,
        "--input",
        "-f",
        help="File with domains (whitespace separated). Reads stdin if omitted.",
    ),
    per_message: int = typer.Option(
        1,
        "--per-message",
        "-n",
        min=1,
        help="Number of domains packed into each message body.",
    ),
) -> None:
    """
    Publish domains to the configured queue as persistent messages.
    """
    queue_config = load_queue_config(config)
    start = time.perf_counter()

    if input_path:
        with input_path.open("r", encoding="utf-8") as f:
            published = _publish(queue_config, _batch_bodies(_read_domains(f), per_message))
    else:
        published = _publish(queue_config, _batch_bodies(_read_domains(sys.stdin), per_message))

    duration = time.perf_counter() - start
    typer.echo(
        f"Published {published:,} messages to '{queue_config.queue_name}' in {duration:.2f}s."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
