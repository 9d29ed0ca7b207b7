"""
Domain models for the I/O handlers.

`WorkItem` is a tagged variant over the two shapes a source can produce:
`PlainItem` (a bare domain name or input line) and `ZoneRecord` (one record
parsed from DNS master-file syntax). Consumers can match on the class or on
the `kind` tag.

`QueueConfig` mirrors the RabbitMQ handler's YAML config file.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Literal, Union

from pydantic import BaseModel, Field, PositiveInt


@dataclass(frozen=True)
class PlainItem:
    value: str
    kind: ClassVar[Literal["plain"]] = "plain"

    def to_text(self) -> str:
        return self.value


@dataclass(frozen=True)
class ZoneRecord:
    """A single resource record, with absolute owner name."""

    name: str
    ttl: int
    rdclass: str
    rdtype: str
    rdata: str = field(default="")
    kind: ClassVar[Literal["zone"]] = "zone"

    def to_text(self) -> str:
        return f"{self.name} {self.ttl} {self.rdclass} {self.rdtype} {self.rdata}".rstrip()


WorkItem = Union[PlainItem, ZoneRecord]


class QueueConfig(BaseModel):
    """
    RabbitMQ input handler configuration.

    Field aliases are the keys used in the handler's YAML config file.
    """

    username: str = Field(..., alias="Rabbitmq-Username", min_length=1)
    password: str = Field(..., alias="Rabbitmq-Password")
    host: str = Field(..., alias="Rabbitmq-IP", min_length=1, description="host[:port]")
    queue_name: str = Field(..., alias="Rabbitmq-Qname", min_length=1)
    queue_size: PositiveInt = Field(..., alias="Rabbitmq-Qsize")
    tls: bool = Field(False, alias="Rabbitmq-Tls")
    certs_dir: Path = Field(Path(""), alias="Rabbitmq-Certs")
    ca_server_name: str = Field("", alias="Rabbitmq-CertificateAuthorityServer")
    virtual_host: str = Field("/", alias="Rabbitmq-Vhost")
    prefetch_count: PositiveInt = Field(300, alias="Rabbitmq-Prefetch")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }


__all__ = ["PlainItem", "ZoneRecord", "WorkItem", "QueueConfig"]
