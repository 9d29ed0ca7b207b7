"""
Infrastructure package for the I/O handlers.

Centralizes broker connectivity concerns (config loading, TLS, connections).
Keep this layer focused on I/O and resource management, decoupled from
handler/coordinator logic.
"""

from iohandlers.infrastructure.amqp_factory import (
    build_connection_parameters,
    build_ssl_context,
    load_queue_config,
    open_connection,
)

__all__ = [
    "build_connection_parameters",
    "build_ssl_context",
    "load_queue_config",
    "open_connection",
]
