# tests/unit/logging/test_unit_logger.py - v3
"""Tests for logging/logger.py - context filter, formatters, setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from promptlift.logging.context import bind_log_context, request_scope
from promptlift.logging.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    RequestContextFilter,
    TextFormatter,
    setup_logging,
)


def _record(msg: str = "Hello", exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="promptlift.test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )
    record.created = 1772442000.0  # 2026-03-02 09:00:00 UTC
    return record


def _stamped(msg: str = "Hello", exc_info=None) -> logging.LogRecord:
    record = _record(msg, exc_info)
    RequestContextFilter().filter(record)
    return record


class TestRequestContextFilter:
    def test_stamps_current_context(self):
        with request_scope("req42"):
            bind_log_context(fingerprint="abcd", phase="enrich")
            record = _stamped()
        assert (record.request_id, record.fingerprint, record.phase) == ("req42", "abcd", "enrich")

    def test_outside_request(self):
        record = _stamped()
        assert record.request_id is None

    def test_explicit_extra_wins(self):
        record = _record()
        record.phase = "custom"
        with request_scope("req1"):
            bind_log_context(phase="enrich")
            RequestContextFilter().filter(record)
        assert record.phase == "custom"


class TestJsonFormatter:
    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_stamped()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert parsed["logger"] == "promptlift.test"
        assert parsed["timestamp"].startswith("2026-03-02T09:00:00")
        assert "context" not in parsed

    def test_format_with_context(self):
        with request_scope("req42"):
            bind_log_context(phase="enrich")
            record = _stamped()
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["context"] == {"request_id": "req42", "phase": "enrich"}

    def test_unfiltered_record_has_no_context(self):
        with request_scope("req42"):
            parsed = json.loads(JsonFormatter().format(_record()))
        assert "context" not in parsed

    def test_format_extra_data(self):
        record = _stamped()
        record.data = {"hits": 3}
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["data"] == {"hits": 3}

    def test_format_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _stamped(exc_info=sys.exc_info())
        parsed = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def test_format_basic(self):
        output = TextFormatter().format(_stamped("Hello text"))
        assert output == "2026-03-02 09:00:00 INFO    promptlift.test Hello text"

    def test_includes_request_and_phase(self):
        with request_scope("req7"):
            bind_log_context(phase="gather_context")
            record = _stamped()
        output = TextFormatter().format(record)
        assert "[req7] (gather_context) Hello" in output


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _reset_root(self):
        yield
        root = logging.getLogger(ROOT_LOGGER)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.setLevel(logging.NOTSET)

    def test_setup_json(self):
        root = setup_logging(level="DEBUG", log_format="json")
        assert root.name == ROOT_LOGGER
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert any(isinstance(f, RequestContextFilter) for f in root.handlers[0].filters)

    def test_setup_text_no_duplicates(self):
        setup_logging(level="INFO", log_format="text")
        root = setup_logging(level="INFO", log_format="text")
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_quiets_third_party_loggers(self):
        logging.getLogger("httpx").setLevel(logging.DEBUG)
        setup_logging(quiet=("httpx",))
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_setup_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "promptlift.log"
        root = setup_logging(level="INFO", log_format="json", log_file=str(log_file))
        with request_scope("req9"):
            logging.getLogger("promptlift.cache").info("written")
        for handler in root.handlers:
            handler.flush()
        line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert line["message"] == "written"
        assert line["context"] == {"request_id": "req9"}
