"""Tests for error statistics module."""

from docbatch.config.constants import MAX_RECENT_ERRORS
from docbatch.exceptions import (
    CorruptedFileError,
    ErrorCategory,
    FileAccessError,
    InternalError,
    SourceNotFoundError,
)
from docbatch.services.error_reporter import ErrorContext
from docbatch.utils.stats import ErrorStats


def _context() -> ErrorContext:
    return ErrorContext(operation="single_file_processing", source_ref="a.docx")


class TestErrorStats:
    """Tests for ErrorStats dataclass."""

    def test_default_values(self):
        """Test every category starts at zero."""
        stats = ErrorStats()

        assert stats.total_errors == 0
        assert set(stats.by_category) == set(ErrorCategory)
        assert all(n == 0 for n in stats.by_category.values())
        assert stats.by_code == {}
        assert len(stats.recent) == 0
        assert stats.most_common_code is None

    def test_add_counts(self):
        """Test counters by category and code."""
        stats = ErrorStats()

        stats.add(SourceNotFoundError("a.docx"), _context())
        stats.add(FileAccessError("locked"), _context())
        stats.add(CorruptedFileError("b.docx"), _context())

        assert stats.total_errors == 3
        assert stats.by_category[ErrorCategory.FILE_ACCESS] == 2
        assert stats.by_category[ErrorCategory.PARSING] == 1
        assert stats.by_code["FILE_NOT_FOUND"] == 1
        assert stats.recent[-1].error.code == "CORRUPTED_FILE"

    def test_recent_is_bounded(self):
        """Test the recent buffer keeps only the newest entries."""
        stats = ErrorStats()

        for i in range(MAX_RECENT_ERRORS + 20):
            stats.add(InternalError(f"error {i}"), _context())

        assert stats.total_errors == MAX_RECENT_ERRORS + 20
        assert len(stats.recent) == MAX_RECENT_ERRORS
        assert stats.recent[0].error.message == "error 20"
        assert stats.recent[-1].error.message == f"error {MAX_RECENT_ERRORS + 19}"

    def test_copy_is_independent(self):
        """Test a copy is not affected by later additions."""
        stats = ErrorStats()
        stats.add(InternalError("first"), _context())

        snapshot = stats.copy()
        stats.add(InternalError("second"), _context())

        assert snapshot.total_errors == 1
        assert len(snapshot.recent) == 1
        assert snapshot.by_code["SYSTEM_ERROR"] == 1

    def test_most_common_code(self):
        """Test the most frequent code is reported."""
        stats = ErrorStats()
        stats.add(InternalError("a"), _context())
        stats.add(CorruptedFileError("x"), _context())
        stats.add(CorruptedFileError("y"), _context())

        assert stats.most_common_code == "CORRUPTED_FILE"

    def test_format_summary(self):
        """Test the summary lists categories and codes."""
        stats = ErrorStats()
        stats.add(CorruptedFileError("x"), _context())

        summary = stats.format_summary()

        assert "Errors: 1" in summary
        assert "PARSING(1)" in summary
        assert "CORRUPTED_FILE(1)" in summary

    def test_to_dict(self):
        """Test serialization."""
        stats = ErrorStats()
        stats.add(SourceNotFoundError("a.docx"), _context())

        data = stats.to_dict()

        assert data["total_errors"] == 1
        assert data["by_category"]["FILE_ACCESS"] == 1
        assert data["recent"][0]["code"] == "FILE_NOT_FOUND"
        assert data["recent"][0]["operation"] == "single_file_processing"
