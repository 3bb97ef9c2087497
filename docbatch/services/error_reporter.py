"""Error classification, statistics, and user-facing messages.

The reporter turns raw exceptions into classified ``DocbatchError`` values,
keeps process-wide statistics, and maps error codes to the text shown to
users. It never hands raw tracebacks or internal identifiers to callers.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any

from docbatch.exceptions import (
    TERMINAL_CODES,
    DocbatchError,
    ErrorCategory,
    InternalError,
    RecoveryAction,
)
from docbatch.utils.logging import get_logger
from docbatch.utils.stats import ErrorStats

log = get_logger(__name__)


_USER_MESSAGES: dict[str, str] = {
    # File access
    "FILE_NOT_FOUND": (
        "The selected file could not be found. Please check if the file still exists."
    ),
    "FILE_PERMISSION_ERROR": (
        "Permission denied. Please check if you have access to read this file."
    ),
    "FILE_ACCESS_ERROR": "Unable to access the file. Please try again or select a different file.",
    # Parsing
    "UNSUPPORTED_FORMAT": "This file format is not supported. Please select a supported document.",
    "CORRUPTED_FILE": (
        "The file appears to be corrupted or damaged. Please try with a different file."
    ),
    "DOCUMENT_PARSING_ERROR": (
        "Unable to read the document content. "
        "The file may be corrupted or use unsupported features."
    ),
    # Processing
    "CONTENT_PROCESSING_ERROR": (
        "An error occurred while processing the document content. Please try again."
    ),
    "FORMAT_CONVERSION_ERROR": (
        "Unable to convert the document to the selected format. "
        "Please try a different output format."
    ),
    "PROCESSING_ERROR": "An error occurred during document processing. Please try again.",
    "BATCH_STATE_ERROR": "Another batch is in progress. Please wait for it to finish.",
    # Output
    "OUTPUT_ERROR": (
        "Unable to save the processed document. Please check your permissions and try again."
    ),
    "DISK_SPACE_ERROR": (
        "Insufficient disk space to save the output. Please free up some space and try again."
    ),
    # System
    "MEMORY_ERROR": (
        "Not enough memory to process this document. "
        "Please try with a smaller file or fewer files at once."
    ),
    "SYSTEM_ERROR": "A system error occurred. Please try again or restart the application.",
    # Validation
    "VALIDATION_ERROR": "Invalid input provided. Please check your settings and try again.",
}

_CATEGORY_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.FILE_ACCESS: (
        "There was a problem accessing the file. Please check the file path and permissions."
    ),
    ErrorCategory.PARSING: "Unable to read the document. Please ensure it is a valid document.",
    ErrorCategory.PROCESSING: "An error occurred while processing the document. Please try again.",
    ErrorCategory.OUTPUT: "Unable to save the processed document. Please check your permissions.",
    ErrorCategory.VALIDATION: "Invalid input provided. Please check your settings.",
    ErrorCategory.SYSTEM: "A system error occurred. Please try again or restart the application.",
}

_DEFAULT_MESSAGE = "An unexpected error occurred. Please try again."

_SUGGESTIONS: dict[str, list[str]] = {
    "FILE_NOT_FOUND": [
        "Check if the file still exists in the original location",
        "Try selecting the file again",
        "Verify the file hasn't been moved or deleted",
    ],
    "FILE_PERMISSION_ERROR": [
        "Check if you have read permissions for the file",
        "Ensure the file is not locked by another application",
    ],
    "UNSUPPORTED_FORMAT": [
        "Convert the file to a supported format",
        "Check if the file extension is correct",
    ],
    "CORRUPTED_FILE": [
        "Try opening the file in its original application to check if it's readable",
        "Use a different copy of the file if available",
        "Try repairing the document with its original application",
    ],
    "MEMORY_ERROR": [
        "Close other applications to free up memory",
        "Try processing smaller files or fewer files at once",
        "Lower the concurrency limit",
        "Consider processing files individually instead of in batch",
    ],
    "DISK_SPACE_ERROR": [
        "Free up disk space by deleting unnecessary files",
        "Choose a different output location with more space",
    ],
}

_DEFAULT_SUGGESTIONS = [
    "Try the operation again",
    "Restart the application if the problem persists",
    "Check the application logs for more details",
]

_CATEGORY_LOG_LEVELS: dict[ErrorCategory, int] = {
    ErrorCategory.SYSTEM: logging.ERROR,
    ErrorCategory.PROCESSING: logging.ERROR,
    ErrorCategory.FILE_ACCESS: logging.WARNING,
    ErrorCategory.PARSING: logging.WARNING,
    ErrorCategory.VALIDATION: logging.INFO,
    ErrorCategory.OUTPUT: logging.WARNING,
}


@dataclass(frozen=True)
class ErrorContext:
    """Where and when an error was observed."""

    operation: str
    source_ref: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    additional_info: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchErrorReport:
    """Verdict on a set of errors collected from one batch group."""

    should_continue_batch: bool
    per_error_action: list[RecoveryAction]
    summary_message: str


class ErrorReporter:
    """Classifies errors, keeps statistics, and produces user-facing text.

    Statistics survive across batches until ``clear`` is called. All
    mutations go through a single lock, so one reporter may be shared by
    several coordinators.
    """

    def __init__(self) -> None:
        self._stats = ErrorStats()
        self._lock = threading.Lock()

    def classify(self, raw_error: BaseException) -> DocbatchError:
        """Normalize any exception into a classified error."""
        if isinstance(raw_error, DocbatchError):
            return raw_error
        return InternalError(f"Unexpected error: {raw_error}", cause=raw_error)

    def create_context(
        self, operation: str, source_ref: str | None = None, **additional_info: Any
    ) -> ErrorContext:
        """Create an error context for an operation."""
        return ErrorContext(
            operation=operation, source_ref=source_ref, additional_info=additional_info
        )

    def record(self, error: DocbatchError, context: ErrorContext) -> None:
        """Count an error and log it at a level derived from its category."""
        with self._lock:
            self._stats.add(error, context)

        level = _CATEGORY_LOG_LEVELS.get(error.category, logging.INFO)
        log.log(
            level,
            f"[{error.category.value}] {error.code}: {error.message}",
            operation=context.operation,
            source_ref=context.source_ref or error.source_ref,
            cause=repr(error.cause) if error.cause else None,
            **context.additional_info,
        )

    def user_message(self, error: DocbatchError) -> str:
        """Get the user-facing message for an error."""
        message = _USER_MESSAGES.get(error.code)
        if message:
            return message
        return _CATEGORY_MESSAGES.get(error.category, _DEFAULT_MESSAGE)

    def recovery_suggestions(self, error: DocbatchError) -> list[str]:
        """Get remediation suggestions for an error."""
        return list(_SUGGESTIONS.get(error.code, _DEFAULT_SUGGESTIONS))

    def is_recoverable(self, error: DocbatchError) -> bool:
        """Whether retrying or degrading could possibly help."""
        return error.code not in TERMINAL_CODES

    def action_for(self, error: DocbatchError) -> RecoveryAction:
        """Map an error to the recovery action suggested for its category and code."""
        code = error.code
        if error.category == ErrorCategory.PARSING:
            if code in ("UNSUPPORTED_FORMAT", "CORRUPTED_FILE"):
                return RecoveryAction.SKIP
            if code == "DOCUMENT_PARSING_ERROR":
                return RecoveryAction.FALLBACK
            return RecoveryAction.RETRY
        if error.category == ErrorCategory.PROCESSING:
            if code in ("CONTENT_PROCESSING_ERROR", "FORMAT_CONVERSION_ERROR"):
                return RecoveryAction.FALLBACK
            return RecoveryAction.SKIP
        if error.category == ErrorCategory.FILE_ACCESS:
            if code == "FILE_NOT_FOUND":
                return RecoveryAction.SKIP
            if code == "FILE_PERMISSION_ERROR":
                return RecoveryAction.USER_INPUT
            return RecoveryAction.RETRY
        if error.category == ErrorCategory.SYSTEM:
            return RecoveryAction.RETRY
        return RecoveryAction.SKIP

    def classify_batch(
        self, errors: list[BaseException], context: ErrorContext
    ) -> BatchErrorReport:
        """Record a group of errors and decide whether the batch may continue.

        Every error is recorded and given an action. Any memory error among
        them tells the batch to halt.
        """
        actions: list[RecoveryAction] = []
        messages: list[str] = []
        should_continue = True

        for raw_error in errors:
            error = self.classify(raw_error)
            self.record(error, context)
            actions.append(self.action_for(error))
            messages.append(self.user_message(error))

            if error.category == ErrorCategory.SYSTEM and error.code == "MEMORY_ERROR":
                should_continue = False

        if not messages:
            summary = ""
        elif len(errors) == 1:
            summary = messages[0]
        else:
            summary = f"Multiple errors occurred: {'; '.join(messages[:3])}"
            if len(errors) > 3:
                summary += f" and {len(errors) - 3} more..."

        if not should_continue:
            log.error("Critical error, batch should halt", operation=context.operation)

        return BatchErrorReport(
            should_continue_batch=should_continue,
            per_error_action=actions,
            summary_message=summary,
        )

    def get_stats(self) -> ErrorStats:
        """Get a snapshot of the statistics."""
        with self._lock:
            return self._stats.copy()

    def clear(self) -> None:
        """Reset all statistics."""
        with self._lock:
            self._stats = ErrorStats()
        log.debug("Error statistics cleared")


@lru_cache
def get_error_reporter() -> ErrorReporter:
    """Get the process-wide reporter instance."""
    return ErrorReporter()
