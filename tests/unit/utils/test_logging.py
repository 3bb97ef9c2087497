"""Tests for logging utilities module."""

import asyncio
import io
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import pytest
import structlog

from docbatch.utils.logging import (
    SafeStreamHandler,
    _add_separator,
    _filter_event_dict,
    create_task_log_path,
    get_console,
    get_logger,
    job_context,
    setup_logging,
    setup_task_logging,
)


class TestSafeStreamHandler:
    """Tests for SafeStreamHandler class."""

    def test_emit_unicode_message(self):
        """Test emitting message with unicode characters."""
        stream = io.StringIO()
        handler = SafeStreamHandler(stream)
        handler.setFormatter(logging.Formatter("%(message)s"))

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Rapport annuel été 2024.docx",
            args=(),
            exc_info=None,
        )

        handler.emit(record)
        assert "été" in stream.getvalue()


class TestFilterEventDict:
    """Tests for _filter_event_dict processor."""

    def test_truncates_long_string(self):
        """Test truncating long string values."""
        long_string = "x" * 1000
        event_dict = {"event": "test", "data": long_string}

        result = _filter_event_dict(None, "info", event_dict)

        assert len(result["data"]) < len(long_string)
        assert "chars total" in result["data"]

    def test_handles_binary_data(self):
        """Test handling binary data."""
        event_dict = {"event": "test", "data": b"x" * 1000}

        result = _filter_event_dict(None, "info", event_dict)

        assert "[BINARY DATA:" in result["data"]

    def test_does_not_truncate_short_string(self):
        """Test that short strings are not modified."""
        event_dict = {"event": "test", "data": "short"}

        result = _filter_event_dict(None, "info", event_dict)

        assert result["data"] == "short"


class TestAddSeparator:
    """Tests for _add_separator processor."""

    def test_adds_separator_when_context_present(self):
        """Test adding separator when context keys present."""
        event_dict = {"event": "Job succeeded", "source_ref": "a.docx"}

        result = _add_separator(None, "info", event_dict)

        assert result["event"] == "Job succeeded |"

    def test_no_separator_without_context(self):
        """Test no separator when only internal keys are present."""
        event_dict = {"event": "Batch started", "level": "info", "timestamp": "2026-01-01"}

        result = _add_separator(None, "info", event_dict)

        assert result["event"] == "Batch started"


class TestGetConsole:
    """Tests for get_console function."""

    def test_returns_same_instance(self):
        """Test that get_console returns the same instance."""
        assert get_console() is get_console()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_configures_root_logger(self):
        """Test that root logger is configured."""
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_supports_file_logging(self, tmp_path):
        """Test file logging configuration."""
        log_file = tmp_path / "subdir" / "test.log"

        setup_logging(level="INFO", log_file=str(log_file))
        logging.getLogger("test").info("Test message")

        assert log_file.exists()

    def test_file_handler_rotates_daily(self, tmp_path):
        """Test the file handler rotates at midnight and keeps a week of logs."""
        setup_logging(level="INFO", log_file=str(tmp_path / "run.log"), file_level="DEBUG")

        handler = logging.getLogger().handlers[1]
        assert isinstance(handler, TimedRotatingFileHandler)
        assert handler.when == "MIDNIGHT"
        assert handler.backupCount == 7
        assert handler.suffix == "%Y-%m-%d"
        assert handler.level == logging.DEBUG
        handler.close()

    def test_console_level_override(self):
        """Test console level override leaves root level alone."""
        setup_logging(level="DEBUG", console_level="WARNING")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert root.handlers[0].level == logging.WARNING

    def test_suppresses_noisy_loggers(self):
        """Test that noisy third-party loggers are suppressed."""
        setup_logging(level="DEBUG")

        assert logging.getLogger("asyncio").level >= logging.WARNING

    def test_get_logger_has_methods(self):
        """Test get_logger returns a usable logger."""
        setup_logging(level="INFO")
        logger = get_logger("docbatch.test")

        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")


class TestJobContext:
    """Tests for job_context."""

    def test_binds_source_ref(self):
        """Test the source reference is bound inside the block only."""
        with job_context("a.docx", attempt=1):
            bound = structlog.contextvars.get_contextvars()
            assert bound["source_ref"] == "a.docx"
            assert bound["attempt"] == 1

        assert "source_ref" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self):
        """Test concurrent tasks each see their own source reference."""

        async def worker(ref: str) -> str:
            with job_context(ref):
                await asyncio.sleep(0.01)
                return structlog.contextvars.get_contextvars()["source_ref"]

        results = await asyncio.gather(worker("a.docx"), worker("b.docx"))

        assert results == ["a.docx", "b.docx"]


class TestCreateTaskLogPath:
    """Tests for create_task_log_path function."""

    def test_creates_log_directory(self, tmp_path):
        """Test that log directory is created."""
        log_dir = tmp_path / "logs"
        create_task_log_path(log_dir, "run")

        assert log_dir.exists()

    def test_log_path_shape(self, tmp_path):
        """Test task ID length, prefix and extension."""
        task_id, log_path = create_task_log_path(tmp_path, "run")

        assert len(task_id) == 8
        assert isinstance(log_path, Path)
        assert log_path.name.startswith("run_")
        assert log_path.suffix == ".log"


class TestSetupTaskLogging:
    """Tests for setup_task_logging function."""

    def test_returns_log_path_in_dir(self, tmp_path):
        """Test the task log lives in the given directory."""
        _, log_path = setup_task_logging(tmp_path, prefix="run")

        assert log_path.parent == tmp_path

    def test_quiet_console_by_default(self, tmp_path):
        """Test console shows warnings only unless verbose."""
        setup_task_logging(tmp_path, prefix="run")

        assert logging.getLogger().handlers[0].level == logging.WARNING

    def test_verbose_console(self, tmp_path):
        """Test verbose mode shows debug on the console."""
        setup_task_logging(tmp_path, prefix="run", verbose=True)

        assert logging.getLogger().handlers[0].level == logging.DEBUG
