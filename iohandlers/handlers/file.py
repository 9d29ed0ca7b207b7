"""
File input and output handlers.

The source reads one domain per line, or DNS master-file records in zone mode,
from a file or stdin. The sink appends one result per line to a file or stdout.
A path of "" or "-" selects the standard stream.

Both sides work on bytes: lines split on "\\n" only, one trailing "\\r" is
dropped, and bytes that are not valid UTF-8 pass through unchanged
(decoded with `surrogateescape` and encoded back the same way).
"""

from __future__ import annotations

import sys
from typing import IO, Callable, List, Optional, Tuple

import dns.exception
import dns.name
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.tokenizer
import dns.transaction
import dns.zonefile

from iohandlers.channels import CancelToken, Channel
from iohandlers.config import Settings
from iohandlers.domain.models import PlainItem, WorkItem, ZoneRecord
from iohandlers.errors import StreamError
from iohandlers.handlers.abstract import AbstractSink, AbstractSource
from iohandlers.utils.logging import get_logger

log = get_logger(__name__)

STDIO_PATHS = ("", "-")
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


def is_stdio(path: str) -> bool:
    return path in STDIO_PATHS


def decode_line(raw: bytes) -> str:
    """Strip the "\\n" terminator and at most one "\\r" before it."""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode(ENCODING, ENCODING_ERRORS)


class _RootOrigin(dns.transaction.TransactionManager):
    def origin_information(self) -> Tuple[dns.name.Name, bool, dns.name.Name]:
        return dns.name.root, False, dns.name.root

    def get_class(self) -> dns.rdataclass.RdataClass:
        return dns.rdataclass.IN


class _RecordPerLine(dns.transaction.Transaction):
    """
    Reader target that hands over every record as it is parsed.

    Nothing is merged into rdatasets, so records keep file order and
    duplicates are kept.
    """

    def __init__(self, on_record: Callable[[dns.name.Name, int, dns.rdata.Rdata], None]) -> None:
        super().__init__(_RootOrigin(), replacement=True)
        self._on_record = on_record

    def add(self, *args) -> None:
        name, ttl, rdata = args
        self._on_record(name, ttl, rdata)

    def _set_origin(self, origin: Optional[dns.name.Name]) -> None:
        pass


def read_zone_records(text: str, filename: str, on_record: Callable[[ZoneRecord], None]) -> None:
    """
    Parse master-file text rooted at "." and pass each record to `on_record`.

    Records are delivered in file order while parsing, so a syntax error
    further down the file surfaces after the earlier records were handed over.
    """

    def forward(name: dns.name.Name, ttl: int, rdata: dns.rdata.Rdata) -> None:
        on_record(
            ZoneRecord(
                name=name.to_text(),
                ttl=ttl,
                rdclass=dns.rdataclass.to_text(rdata.rdclass),
                rdtype=dns.rdatatype.to_text(rdata.rdtype),
                rdata=rdata.to_text(),
            )
        )

    tokenizer = dns.tokenizer.Tokenizer(text, filename or "<stdin>")
    dns.zonefile.Reader(tokenizer, dns.rdataclass.IN, _RecordPerLine(forward)).read()


class FileSource(AbstractSource):
    """Read work items from a file or stdin, preserving input order."""

    name: str = "file"

    def __init__(self, participant: Optional[str] = None) -> None:
        super().__init__(participant)
        self.filepath = ""
        self._stream: Optional[IO[bytes]] = None

    def initialize(self, settings: Settings) -> None:
        self.filepath = settings.input_file_path

    def _open(self) -> IO[bytes]:
        if is_stdio(self.filepath):
            return sys.stdin.buffer
        try:
            self._stream = open(self.filepath, "rb")
        except OSError as exc:
            raise StreamError(f"unable to open input file: {exc}") from exc
        return self._stream

    def _feed(
        self, out: Channel[WorkItem], zone_mode: bool, cancel: Optional[CancelToken]
    ) -> Optional[str]:
        stream = self._open()
        if zone_mode:
            return self._feed_zone(stream, out, cancel)

        try:
            for raw in stream:
                self._emit(out, PlainItem(decode_line(raw)), cancel)
        except OSError as exc:
            raise StreamError(f"input unable to read file: {exc}") from exc
        return None

    def _feed_zone(
        self, stream: IO[bytes], out: Channel[WorkItem], cancel: Optional[CancelToken]
    ) -> str:
        records: List[int] = [0]

        def emit(record: ZoneRecord) -> None:
            self._emit(out, record, cancel)
            records[0] += 1

        try:
            text = stream.read().decode(ENCODING)
            read_zone_records(text, self.filepath, emit)
        except (dns.exception.DNSException, OSError, UnicodeDecodeError) as exc:
            raise StreamError(f"unable to parse zone file input: {exc}") from exc
        return f"zone mode, {records[0]} records"

    def _shutdown(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None


class FileSink(AbstractSink):
    """Append result lines to a file or stdout."""

    name: str = "file"

    def __init__(self, participant: Optional[str] = None) -> None:
        super().__init__(participant)
        self.filepath = ""
        self._stream: Optional[IO[bytes]] = None

    def initialize(self, settings: Settings) -> None:
        self.filepath = settings.output_file_path

    def _open(self) -> IO[bytes]:
        if is_stdio(self.filepath):
            sys.stdout.flush()
            return sys.stdout.buffer
        try:
            self._stream = open(self.filepath, "ab")
        except OSError as exc:
            raise StreamError(f"unable to open output file: {exc}") from exc
        return self._stream

    def _drain(self, results: Channel[str], cancel: Optional[CancelToken]) -> Optional[str]:
        stream = self._open()
        try:
            for line in results.iter_items(cancel):
                stream.write(line.encode(ENCODING, ENCODING_ERRORS) + b"\n")
                self._written += 1
        except OSError as exc:
            raise StreamError(f"unable to write output file: {exc}") from exc
        return None

    def _shutdown(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        elif is_stdio(self.filepath):
            sys.stdout.buffer.flush()


__all__ = ["FileSource", "FileSink", "decode_line", "read_zone_records", "is_stdio"]
