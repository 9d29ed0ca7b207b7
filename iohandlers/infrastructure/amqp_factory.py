"""
RabbitMQ connection factory utilities for the queue input handler.

Loads the handler's YAML config file, builds pika connection parameters
(optionally with mutual TLS from a certs directory), and opens blocking
connections. Failures raise typed errors before any item is streamed:

- `ConfigurationError` for a missing/malformed config file or TLS material;
- `ConnectionSetupError` when the broker cannot be reached.

Nothing here retries; reconnecting is left to whatever supervises the process.
"""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import Any, Dict, Tuple

import pika
import pika.exceptions
import yaml
from pydantic import ValidationError

from iohandlers.domain.models import QueueConfig
from iohandlers.errors import ConfigurationError, ConnectionSetupError
from iohandlers.utils.logging import get_logger

log = get_logger(__name__)

CONFIG_REQUIRED_MSG = (
    "this iohandler requires a config file with a username, password, ip address, qname, and qsize"
)

AMQP_PORT = 5672
AMQPS_PORT = 5671

CA_CERT_FILE = "cacert.pem"
CLIENT_CERT_FILE = "cert.pem"
CLIENT_KEY_FILE = "key.pem"


def load_queue_config(path: str | Path) -> QueueConfig:
    """
    Load and validate the queue handler's YAML config file.

    Raises
    ------
    ConfigurationError
        If the path is empty, the file cannot be read, the YAML is malformed,
        or a required field is missing or invalid.
    """
    if not str(path):
        raise ConfigurationError(CONFIG_REQUIRED_MSG)
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"{CONFIG_REQUIRED_MSG}: {exc}") from exc

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Data in rabbitmq config wasn't formatted correctly: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Data in rabbitmq config wasn't formatted correctly: root must be a mapping")

    try:
        return QueueConfig.model_validate(raw)
    except ValidationError as exc:
        missing = sorted(
            str(err["loc"][0]) for err in exc.errors() if err.get("loc")
        )
        raise ConfigurationError(f"{CONFIG_REQUIRED_MSG} (invalid: {', '.join(missing)})") from exc


def split_host(address: str, tls: bool) -> Tuple[str, int]:
    """Split "host[:port]" into host and port, defaulting to the AMQP(S) port."""
    default_port = AMQPS_PORT if tls else AMQP_PORT
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest.lstrip(":")
        return host, int(port) if port else default_port
    host, sep, port = address.rpartition(":")
    if sep and port.isdigit() and ":" not in host:
        return host, int(port)
    return address, default_port


def build_ssl_context(config: QueueConfig) -> ssl.SSLContext:
    """
    Build a client TLS context from `<certs>/cacert.pem`, `cert.pem` and `key.pem`.

    The CA bundle is the only trust root; the cert/key pair is presented as
    the client certificate.
    """
    certs = Path(config.certs_dir)
    ca_path = certs / CA_CERT_FILE
    cert_path = certs / CLIENT_CERT_FILE
    key_path = certs / CLIENT_KEY_FILE

    if not ca_path.is_file():
        raise ConfigurationError(f"{CA_CERT_FILE} in certs/ directory is required ({ca_path})")
    if not cert_path.is_file() or not key_path.is_file():
        raise ConfigurationError(
            f"{CLIENT_CERT_FILE} and {CLIENT_KEY_FILE} required in certs directory ({certs})"
        )

    try:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=str(ca_path))
        context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    except (ssl.SSLError, OSError) as exc:
        raise ConfigurationError(f"unable to load TLS material from {certs}: {exc}") from exc
    return context


def build_connection_parameters(config: QueueConfig) -> pika.ConnectionParameters:
    """Translate a `QueueConfig` into pika connection parameters."""
    host, port = split_host(config.host, config.tls)
    kwargs: Dict[str, Any] = {
        "host": host,
        "port": port,
        "virtual_host": config.virtual_host,
        "credentials": pika.PlainCredentials(config.username, config.password),
    }
    if config.tls:
        context = build_ssl_context(config)
        kwargs["ssl_options"] = pika.SSLOptions(context, config.ca_server_name or host)
    return pika.ConnectionParameters(**kwargs)


def open_connection(config: QueueConfig) -> pika.BlockingConnection:
    """
    Open a blocking connection to the broker described by `config`.

    Raises
    ------
    ConfigurationError
        If TLS is enabled and the TLS material is missing or invalid.
    ConnectionSetupError
        If the broker is unreachable or rejects the credentials.
    """
    params = build_connection_parameters(config)
    try:
        connection = pika.BlockingConnection(params)
    except (pika.exceptions.AMQPError, OSError) as exc:
        raise ConnectionSetupError(
            f"Failed to connect to specified rabbitmq server {params.host}:{params.port}: {exc!r}"
        ) from exc
    log.info(
        "Connected to rabbitmq",
        extra={"host": params.host, "port": params.port, "tls": config.tls},
    )
    return connection


__all__ = [
    "CONFIG_REQUIRED_MSG",
    "load_queue_config",
    "split_host",
    "build_ssl_context",
    "build_connection_parameters",
    "open_connection",
]
