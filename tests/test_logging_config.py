"""Tests for structlog-backed logging setup."""
from __future__ import annotations

import json
import logging

import pytest

from reportsearch.config import LoggingSettings
from reportsearch.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_json_lines_from_stdlib_logger(tmp_path, restore_root_logger):
    log_file = tmp_path / "service.log"
    setup_logging(LoggingSettings(level="info", format="json", file=str(log_file)))

    logging.getLogger("reportsearch.test").info("indexed %s reports", 3)
    _flush()

    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert record["event"] == "indexed 3 reports"
    assert record["level"] == "info"
    assert record["logger"] == "reportsearch.test"
    assert "timestamp" in record


def test_json_lines_include_exception(tmp_path, restore_root_logger):
    log_file = tmp_path / "service.log"
    setup_logging(LoggingSettings(format="json", file=str(log_file)))

    try:
        raise ValueError("bad line")
    except ValueError:
        logging.getLogger("reportsearch.test").exception("parse failed")
    _flush()

    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert record["event"] == "parse failed"
    assert "ValueError: bad line" in record["exception"]


def test_text_format_and_level_filter(tmp_path, restore_root_logger):
    log_file = tmp_path / "service.log"
    setup_logging(LoggingSettings(level="warning", format="text", file=str(log_file)))

    logger = logging.getLogger("reportsearch.test")
    logger.info("hidden")
    logger.warning("store slow")
    _flush()

    output = log_file.read_text(encoding="utf-8")
    assert "hidden" not in output
    assert "store slow" in output
    assert "reportsearch.test" in output
    with pytest.raises(json.JSONDecodeError):
        json.loads(output.splitlines()[-1])
