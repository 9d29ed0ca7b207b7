"""
Pytest configuration for the I/O handlers.

Provides fixtures for:
- Settings built for a test (no environment/.env leakage into paths)
- Writing rabbitmq handler config files
- Broker availability and a throwaway queue for integration tests
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Generator

import pytest
import yaml

from iohandlers.config import Settings, get_settings


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """
    Factory for Settings with test-friendly defaults.

    Keyword arguments use field names (e.g. `input_file_path=...`).
    """

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "input_handler": "file",
            "output_handler": "file",
            "input_file_path": "",
            "output_file_path": "",
            "input_handler_config": "",
            "consume_poll_seconds": 0.01,
            "shutdown_timeout_seconds": 2.0,
            "log_level": "DEBUG",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def queue_config_values() -> Dict[str, Any]:
    return {
        "Rabbitmq-Username": "guest",
        "Rabbitmq-Password": "guest",
        "Rabbitmq-IP": "localhost:5672",
        "Rabbitmq-Qname": "domains",
        "Rabbitmq-Qsize": 1000,
    }


@pytest.fixture
def write_queue_config(tmp_path: Path) -> Callable[[Dict[str, Any]], Path]:
    """Write a mapping as the rabbitmq handler's YAML config and return its path."""

    def _write(values: Dict[str, Any]) -> Path:
        path = tmp_path / f"rabbitmq-{uuid.uuid4().hex[:8]}.yaml"
        path.write_text(yaml.safe_dump(values), encoding="utf-8")
        return path

    return _write


@pytest.fixture(scope="session")
def broker_config_values() -> Dict[str, Any]:
    """
    Broker settings for integration tests.

    Can be overridden via environment variables in CI or local testing.
    """
    return {
        "Rabbitmq-Username": os.getenv("RABBITMQ_USER", "guest"),
        "Rabbitmq-Password": os.getenv("RABBITMQ_PASSWORD", "guest"),
        "Rabbitmq-IP": os.getenv("RABBITMQ_HOST", "localhost:5672"),
        "Rabbitmq-Qname": f"iohandlers-test-{uuid.uuid4().hex[:8]}",
        "Rabbitmq-Qsize": 10_000,
        "Rabbitmq-Prefetch": 10,
    }


@pytest.fixture(scope="session")
def broker_available(broker_config_values: Dict[str, Any]) -> bool:
    """
    Check if the broker is reachable.

    Used to conditionally skip integration tests when RabbitMQ is not available.
    """
    from iohandlers.domain.models import QueueConfig
    from iohandlers.errors import ConnectionSetupError
    from iohandlers.infrastructure.amqp_factory import open_connection

    try:
        connection = open_connection(QueueConfig.model_validate(broker_config_values))
    except ConnectionSetupError:
        return False
    connection.close()
    return True


@pytest.fixture
def broker_queue(
    broker_available: bool,
    broker_config_values: Dict[str, Any],
) -> Generator[Dict[str, Any], None, None]:
    """
    Provide a fresh queue name on a reachable broker and delete it afterwards.

    Skips tests if the broker is not available.
    """
    if not broker_available:
        pytest.skip("RabbitMQ not available for integration tests")

    from iohandlers.domain.models import QueueConfig
    from iohandlers.infrastructure.amqp_factory import open_connection

    values = dict(broker_config_values, **{"Rabbitmq-Qname": f"iohandlers-test-{uuid.uuid4().hex[:8]}"})
    yield values

    connection = open_connection(QueueConfig.model_validate(values))
    try:
        connection.channel().queue_delete(queue=values["Rabbitmq-Qname"])
    finally:
        connection.close()
