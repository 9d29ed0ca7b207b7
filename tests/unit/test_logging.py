from __future__ import annotations

import json
import logging

from iohandlers.utils.logging import _json_formatter, configure_logging

EXPECTED_ITEMS = 10
EXPECTED_PREFETCH = 300


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.items = EXPECTED_ITEMS
    record.participant = "source:file"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["items"] == EXPECTED_ITEMS
    assert payload["participant"] == "source:file"
    assert "pathname" not in payload
    assert "lineno" not in payload


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"prefetch": EXPECTED_PREFETCH}

    payload = json.loads(_json_formatter(record))

    assert payload["prefetch"] == EXPECTED_PREFETCH
    assert "extra" not in payload


def test_json_formatter_renders_non_serializable_values() -> None:
    record = _record()
    record.path = object()

    payload = json.loads(_json_formatter(record))

    assert payload["path"].startswith("<object object")


def test_configure_logging_writes_to_stderr(capsys) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(level="INFO", json_logs=True)
        logging.getLogger("iohandlers.test").info("to stderr", extra={"items": 1})
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    captured = capsys.readouterr()
    assert captured.out == ""
    assert json.loads(captured.err.strip().splitlines()[-1])["items"] == 1
