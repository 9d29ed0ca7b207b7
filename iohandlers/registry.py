"""
Handler registry: maps configuration names to source/sink factories.

The registry is an explicit object built by whoever coordinates the pipeline;
nothing registers itself at import time.

Usage:
    registry = default_registry()
    source = registry.create_input("rabbitmq")
    sink = registry.create_output("file")
"""

from __future__ import annotations

from typing import Callable, Dict, List

from iohandlers.errors import RegistryError
from iohandlers.handlers.abstract import Sink, Source
from iohandlers.handlers.file import FileSink, FileSource
from iohandlers.handlers.rabbitmq import RabbitMQSource

SourceFactory = Callable[[], Source]
SinkFactory = Callable[[], Sink]


class HandlerRegistry:
    """Name-to-factory lookup for input and output handlers."""

    def __init__(self) -> None:
        self._inputs: Dict[str, SourceFactory] = {}
        self._outputs: Dict[str, SinkFactory] = {}

    def register_input(self, name: str, factory: SourceFactory) -> None:
        if name in self._inputs:
            raise RegistryError(f"input handler '{name}' is already registered")
        self._inputs[name] = factory

    def register_output(self, name: str, factory: SinkFactory) -> None:
        if name in self._outputs:
            raise RegistryError(f"output handler '{name}' is already registered")
        self._outputs[name] = factory

    def available_inputs(self) -> List[str]:
        return sorted(self._inputs)

    def available_outputs(self) -> List[str]:
        return sorted(self._outputs)

    def create_input(self, name: str) -> Source:
        if name not in self._inputs:
            raise RegistryError(
                f"Unknown input handler '{name}'. Available: {', '.join(self.available_inputs())}"
            )
        return self._inputs[name]()

    def create_output(self, name: str) -> Sink:
        if name not in self._outputs:
            raise RegistryError(
                f"Unknown output handler '{name}'. Available: {', '.join(self.available_outputs())}"
            )
        return self._outputs[name]()


def default_registry() -> HandlerRegistry:
    """Registry with the built-in handlers."""
    registry = HandlerRegistry()
    registry.register_input("file", lambda: FileSource())
    registry.register_output("file", lambda: FileSink())
    registry.register_input("rabbitmq", lambda: RabbitMQSource())
    return registry


__all__ = ["HandlerRegistry", "SourceFactory", "SinkFactory", "default_registry"]
