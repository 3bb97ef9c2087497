"""Service layer for docbatch."""

from docbatch.services.error_reporter import (
    BatchErrorReport,
    ErrorContext,
    ErrorReporter,
    get_error_reporter,
)

__all__ = [
    "BatchErrorReport",
    "ErrorContext",
    "ErrorReporter",
    "get_error_reporter",
]
