"""Custom exceptions for docbatch.

Every failure the batch engine deals with is a ``DocbatchError`` carrying a
stable ``code`` and a ``category``. Codes are unique strings; categories group
them for statistics and log severity. Subclassing exists to give each code a
convenient constructor, not to encode meaning: callers dispatch on ``code``.
"""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Groups error codes for statistics and logging verbosity."""

    FILE_ACCESS = "FILE_ACCESS"
    PARSING = "PARSING"
    PROCESSING = "PROCESSING"
    OUTPUT = "OUTPUT"
    VALIDATION = "VALIDATION"
    SYSTEM = "SYSTEM"


class RecoveryAction(str, Enum):
    """What to do about a failure.

    USER_INPUT is only ever suggested by the error reporter; recovery
    strategies do not produce it.
    """

    RETRY = "RETRY"
    FALLBACK = "FALLBACK"
    SKIP = "SKIP"
    ABORT = "ABORT"
    USER_INPUT = "USER_INPUT"


# Codes that no amount of retrying or degrading will fix
TERMINAL_CODES = frozenset(
    {
        "FILE_NOT_FOUND",
        "UNSUPPORTED_FORMAT",
        "CORRUPTED_FILE",
        "DISK_SPACE_ERROR",
    }
)


class DocbatchError(Exception):
    """Base exception class for docbatch."""

    code: str = "SYSTEM_ERROR"
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        source_ref: str | None = None,
    ) -> None:
        self.message = message
        self.cause = cause
        self.source_ref = source_ref
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and reports."""
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "cause": str(self.cause) if self.cause else None,
            "source_ref": self.source_ref,
        }


ClassifiedError = DocbatchError


# File access


class FileAccessError(DocbatchError):
    """Source could not be read."""

    code = "FILE_ACCESS_ERROR"
    category = ErrorCategory.FILE_ACCESS


class SourceNotFoundError(FileAccessError):
    """Source does not exist."""

    code = "FILE_NOT_FOUND"

    def __init__(self, source_ref: str) -> None:
        super().__init__(f"File not found: {source_ref}", source_ref=source_ref)


class FilePermissionError(FileAccessError):
    """Access to the source was denied."""

    code = "FILE_PERMISSION_ERROR"

    def __init__(self, source_ref: str, operation: str = "read") -> None:
        super().__init__(
            f"Permission denied for {operation} operation on: {source_ref}",
            source_ref=source_ref,
        )
        self.operation = operation


# Parsing


class ParsingError(DocbatchError):
    """Source could not be parsed into a document."""

    code = "PARSING_ERROR"
    category = ErrorCategory.PARSING


class UnsupportedFormatError(ParsingError):
    """Source format is not supported by the parser."""

    code = "UNSUPPORTED_FORMAT"

    def __init__(self, source_ref: str, file_format: str) -> None:
        super().__init__(
            f"Unsupported file format: {file_format} for file: {source_ref}",
            source_ref=source_ref,
        )
        self.file_format = file_format


class CorruptedFileError(ParsingError):
    """Source is damaged beyond parsing."""

    code = "CORRUPTED_FILE"

    def __init__(self, source_ref: str) -> None:
        super().__init__(f"File appears to be corrupted: {source_ref}", source_ref=source_ref)


class DocumentParsingError(ParsingError):
    """Parser failed on the document structure."""

    code = "DOCUMENT_PARSING_ERROR"


# Processing


class ProcessingError(DocbatchError):
    """Cleanup or structuring of parsed content failed."""

    code = "PROCESSING_ERROR"
    category = ErrorCategory.PROCESSING

    def __init__(
        self,
        message: str,
        stage: str = "processing",
        cause: BaseException | None = None,
        source_ref: str | None = None,
    ) -> None:
        super().__init__(message, cause=cause, source_ref=source_ref)
        self.stage = stage


class ContentProcessingError(ProcessingError):
    """A content cleanup stage failed."""

    code = "CONTENT_PROCESSING_ERROR"

    def __init__(self, stage: str, details: str) -> None:
        super().__init__(f"Content processing failed at stage: {stage}. {details}", stage=stage)


class FormatConversionError(ProcessingError):
    """Conversion into the requested output format failed."""

    code = "FORMAT_CONVERSION_ERROR"

    def __init__(self, target_format: str, details: str) -> None:
        super().__init__(
            f"Failed to convert to {target_format}: {details}", stage="format_conversion"
        )
        self.target_format = target_format


class BatchStateError(ProcessingError):
    """Operation not allowed in the coordinator's current state."""

    code = "BATCH_STATE_ERROR"


# Output


class OutputError(DocbatchError):
    """Output could not be written."""

    code = "OUTPUT_ERROR"
    category = ErrorCategory.OUTPUT


class DiskSpaceError(OutputError):
    """Not enough disk space for the output."""

    code = "DISK_SPACE_ERROR"

    def __init__(self, output_path: str) -> None:
        super().__init__(f"Insufficient disk space for output: {output_path}")
        self.output_path = output_path


# Validation


class ValidationError(DocbatchError):
    """Invalid input or settings."""

    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


# System


class InternalError(DocbatchError):
    """Unexpected failure, including unclassified exceptions."""

    code = "SYSTEM_ERROR"
    category = ErrorCategory.SYSTEM


class MemoryPressureError(InternalError):
    """Not enough memory to continue."""

    code = "MEMORY_ERROR"


# Recovery outcome


class JobSkippedError(DocbatchError):
    """Recovery gave up on a job gracefully instead of failing it hard."""

    code = "JOB_SKIPPED"

    def __init__(self, original: DocbatchError, reason: str) -> None:
        super().__init__(reason, cause=original, source_ref=original.source_ref)
        self.original = original
        self.category = original.category
