"""Tests for logging configuration."""

import json
import logging

import pytest

from scansplit.logging_config import (
    HumanReadableFormatter,
    JSONFormatter,
    get_log_format_from_env,
    get_log_level_from_env,
    get_logger,
    log_performance,
    setup_logging,
)


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="scansplit.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_basic_fields():
    data = json.loads(JSONFormatter(include_context=False).format(_record()))
    assert data["level"] == "INFO"
    assert data["logger"] == "scansplit.test"
    assert data["message"] == "hello world"
    assert data["timestamp"].endswith("Z")
    assert "module" not in data


def test_json_formatter_context_and_extra():
    data = json.loads(JSONFormatter(include_context=True).format(_record(table="events", splits=3)))
    assert data["line"] == 10
    assert data["table"] == "events"
    assert data["splits"] == 3


def test_json_formatter_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        import sys

        record = _record()
        record.exc_info = sys.exc_info()
    data = json.loads(JSONFormatter().format(record))
    assert "ValueError: boom" in data["exception"]


def test_human_formatter():
    formatted = HumanReadableFormatter(use_colors=False).format(_record())
    assert formatted.startswith("[INFO]")
    assert "scansplit.test - hello world" in formatted


@pytest.mark.parametrize(
    "env,expected",
    [
        ({"SCANSPLIT_LOG_LEVEL": "debug"}, logging.DEBUG),
        ({"LOG_LEVEL": "WARN"}, logging.WARNING),
        ({"SCANSPLIT_LOG_LEVEL": "ERROR", "LOG_LEVEL": "DEBUG"}, logging.ERROR),
        ({"SCANSPLIT_LOG_LEVEL": "nonsense"}, logging.INFO),
        ({}, logging.INFO),
    ],
)
def test_get_log_level_from_env(monkeypatch, env, expected):
    monkeypatch.delenv("SCANSPLIT_LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    assert get_log_level_from_env() == expected


def test_get_log_format_from_env(monkeypatch):
    monkeypatch.delenv("SCANSPLIT_LOG_FORMAT", raising=False)
    assert get_log_format_from_env() == "human"
    monkeypatch.setenv("SCANSPLIT_LOG_FORMAT", "JSON")
    assert get_log_format_from_env() == "json"


def test_setup_logging_replaces_handlers(restore_root_logger, monkeypatch):
    monkeypatch.delenv("SCANSPLIT_LOG_FILE", raising=False)
    setup_logging(level=logging.WARNING, format_type="json")
    setup_logging(level=logging.DEBUG, format_type="simple")

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert root.handlers[0].formatter._fmt == "%(levelname)s: %(message)s"


def test_setup_logging_file_is_json(restore_root_logger, tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "scansplit.log"
    monkeypatch.setenv("SCANSPLIT_LOG_FILE", str(log_file))

    setup_logging(level=logging.INFO, format_type="human")
    logging.getLogger("scansplit.test").info("planned %d splits", 4)
    for handler in restore_root_logger.handlers:
        handler.flush()

    line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
    assert json.loads(line)["message"] == "planned 4 splits"


def test_get_logger_with_extra():
    adapter = get_logger("scansplit.test", extra={"table": "events"})
    assert isinstance(adapter, logging.LoggerAdapter)
    assert adapter.extra == {"table": "events"}
    assert isinstance(get_logger("scansplit.test"), logging.Logger)


def test_log_performance(caplog):
    logger = logging.getLogger("scansplit.test.perf")
    with caplog.at_level(logging.INFO, logger="scansplit.test.perf"):
        log_performance(logger, "compute_splits", 1.234, splits=7)
    record = caplog.records[-1]
    assert record.getMessage() == "Performance: compute_splits completed in 1.23s"
    assert record.operation == "compute_splits"
    assert record.splits == 7


def test_human_formatter_appends_split_context():
    formatter = HumanReadableFormatter(use_colors=False)
    assert formatter.format(_record(table="events", scan_index=2)).endswith("hello world [events#2]")
    assert formatter.format(_record(table="events")).endswith("hello world [events]")
