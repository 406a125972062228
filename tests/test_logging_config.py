"""
Unit tests for logging configuration.

Tests structured JSON logging, file rotation, and different output formats
for development and CI environments.
"""

import json
import logging
import logging.handlers
import sys
from unittest.mock import MagicMock

import pytest

from sanity_runner.core.config import Config
from sanity_runner.core.logging_config import (
    ContextAdapter,
    StructuredFormatter,
    TextFormatter,
    get_logger,
    log_performance,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="sanity_runner.component",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture
def restore_root_logger():
    """setup_logging replaces root handlers; put the originals back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Test cases for StructuredFormatter."""

    def test_format_basic_log_record(self):
        log_data = json.loads(StructuredFormatter("run-123").format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["component"] == "sanity_runner.component"
        assert log_data["run_id"] == "run-123"
        assert log_data["message"] == "Test message"
        assert log_data["timestamp"].endswith("Z")

    def test_format_with_metadata(self):
        record = make_record(level=logging.ERROR)
        record.metadata = {"test_file": "login.test.js", "duration": 2.5}

        log_data = json.loads(StructuredFormatter("run-123").format(record))

        assert log_data["metadata"] == {"test_file": "login.test.js", "duration": 2.5}

    def test_format_with_exception(self):
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        log_data = json.loads(StructuredFormatter("run-123").format(record))

        assert "ValueError: Test exception" in log_data["exception"]

    def test_format_with_context_fields(self):
        record = make_record()
        record.run_id = "run-from-record"
        record.execution_id = "exec-1"
        record.test_file = "checkout.test.js"
        record.status = "failed"

        log_data = json.loads(StructuredFormatter("run-123").format(record))

        assert log_data["run_id"] == "run-from-record"
        assert log_data["execution_id"] == "exec-1"
        assert log_data["test_file"] == "checkout.test.js"
        assert log_data["status"] == "failed"


class TestTextFormatter:
    """Test cases for TextFormatter."""

    def test_format_includes_metadata(self):
        record = make_record()
        record.metadata = {"retry_count": 1}

        line = TextFormatter("abcdef1234").format(record)

        assert "INFO" in line
        assert "Test message" in line
        assert "(run: abcdef12)" in line
        assert "retry_count=1" in line


class TestLoggingSetup:
    """Test cases for logging setup functions."""

    def test_setup_logging_text_mode(self, restore_root_logger, tmp_path):
        config = Config(log_level="DEBUG", log_format="text", logs_dir=tmp_path / "logs")

        setup_logging(config, "run-123")

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, TextFormatter)
        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers
        )
        assert (tmp_path / "logs" / "sanity-runner.log").exists()

    def test_setup_logging_ci_mode(self, restore_root_logger, tmp_path):
        config = Config(ci_mode=True, logs_dir=tmp_path / "logs")

        setup_logging(config, "run-123")

        root = restore_root_logger
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_get_logger(self):
        logger = get_logger("sanity_runner.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "sanity_runner.test"

    def test_get_logger_with_context(self):
        logger = get_logger("sanity_runner.test", run_id="run-1")

        assert isinstance(logger, ContextAdapter)
        msg, kwargs = logger.process("hello", {"extra": {"metadata": {"a": 1}}})
        assert kwargs["extra"] == {"metadata": {"a": 1}, "run_id": "run-1"}

    def test_log_performance(self):
        logger = MagicMock()

        log_performance(logger, "engine_attempt", 1.5, success=True)

        message = logger.info.call_args[0][0]
        metadata = logger.info.call_args[1]["extra"]["metadata"]
        assert "engine_attempt completed in 1.50s" in message
        assert metadata == {"operation": "engine_attempt", "duration": 1.5, "success": True}
