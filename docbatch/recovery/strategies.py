"""Recovery strategies consulted when a job fails.

Each strategy declares which errors it handles and, for those, produces a
decision: retry as-is, retry with a degraded config, skip the job, or
abort. Strategies hold no state beyond their construction parameters.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

from docbatch.config.constants import (
    DEFAULT_RETRY_BASE_DELAY,
    FORMAT_FALLBACKS,
)
from docbatch.core.job import CleanupLevel, OutputFormat, ProcessingConfig
from docbatch.exceptions import TERMINAL_CODES, DocbatchError, RecoveryAction
from docbatch.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class RecoveryContext:
    """Per-job recovery state.

    Owned by exactly one job's execution path. The engine advances
    ``attempt_number`` and swaps in modified configs between attempts.
    """

    operation_name: str
    source_ref: str | None = None
    config: ProcessingConfig | None = None
    attempt_number: int = 1
    max_attempts: int = 3
    additional_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RecoveryDecision:
    """A strategy's answer to one failure."""

    accepted: bool
    action: RecoveryAction
    message: str
    modified_config: ProcessingConfig | None = None
    should_retry: bool = False


class RecoveryStrategy(Protocol):
    """Protocol for recovery strategies.

    Strategies are consulted in order; the first whose ``can_handle``
    returns True decides.
    """

    name: str

    def can_handle(self, error: DocbatchError) -> bool:
        """Whether this strategy applies to ``error``."""
        ...

    async def execute(self, error: DocbatchError, context: RecoveryContext) -> RecoveryDecision:
        """Decide how to react to ``error``."""
        ...


class SkipStrategy:
    """Skip jobs that failed with a terminal error."""

    name = "skip_non_recoverable"

    def can_handle(self, error: DocbatchError) -> bool:
        return error.code in TERMINAL_CODES

    async def execute(self, error: DocbatchError, context: RecoveryContext) -> RecoveryDecision:
        log.info(
            "Skipping non-recoverable error",
            code=error.code,
            error=error.message,
            source_ref=context.source_ref,
        )
        return RecoveryDecision(
            accepted=True,
            action=RecoveryAction.SKIP,
            message=f"Skipping due to non-recoverable error: {error.message}",
            should_retry=False,
        )


class RetryStrategy:
    """Retry transient failures with a linearly increasing delay."""

    name = "bounded_retry"

    RETRYABLE_CODES = frozenset(
        {
            "SYSTEM_ERROR",
            "PROCESSING_ERROR",
            "CONTENT_PROCESSING_ERROR",
            "FILE_ACCESS_ERROR",
        }
    )

    def __init__(self, base_delay: float = DEFAULT_RETRY_BASE_DELAY) -> None:
        """Initialize the retry strategy.

        Args:
            base_delay: Seconds to wait, multiplied by the attempt number.
                The number of attempts comes from the context.
        """
        self.base_delay = base_delay

    def can_handle(self, error: DocbatchError) -> bool:
        return error.code in self.RETRYABLE_CODES and error.code != "FILE_NOT_FOUND"

    async def execute(self, error: DocbatchError, context: RecoveryContext) -> RecoveryDecision:
        limit = context.max_attempts
        if context.attempt_number >= limit:
            log.warning(
                "Max retry attempts reached",
                code=error.code,
                error=error.message,
                attempts=context.attempt_number,
            )
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.ABORT,
                message=f"Failed after {context.attempt_number} attempts: {error.message}",
                should_retry=False,
            )

        delay = self.base_delay * context.attempt_number
        if delay > 0:
            await asyncio.sleep(delay)

        log.info(
            "Retrying operation",
            code=error.code,
            attempt=context.attempt_number,
            max_attempts=limit,
            delay=delay,
        )
        return RecoveryDecision(
            accepted=True,
            action=RecoveryAction.RETRY,
            message=f"Retrying operation (attempt {context.attempt_number}/{limit})",
            should_retry=True,
        )


class FormatFallbackStrategy:
    """Switch to the next output format when format conversion fails."""

    name = "format_fallback"

    def can_handle(self, error: DocbatchError) -> bool:
        return error.code == "FORMAT_CONVERSION_ERROR"

    async def execute(self, error: DocbatchError, context: RecoveryContext) -> RecoveryDecision:
        config = context.config
        if config is None:
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.SKIP,
                message="No original config available for fallback",
                should_retry=False,
            )

        current = config.output_format.value
        attempted = [*config.custom_settings.get("attempted_formats", ()), current]
        candidates = FORMAT_FALLBACKS.get(current, [OutputFormat.PLAINTEXT.value])
        next_format = next((fmt for fmt in candidates if fmt not in attempted), None)

        if next_format is None:
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.SKIP,
                message="No fallback format available",
                should_retry=False,
            )

        modified = config.derive(output_format=OutputFormat(next_format)).with_custom_settings(
            attempted_formats=attempted
        )
        log.info("Using fallback format", original_format=current, fallback_format=next_format)
        return RecoveryDecision(
            accepted=True,
            action=RecoveryAction.FALLBACK,
            message=f"Trying fallback format: {next_format}",
            modified_config=modified,
            should_retry=True,
        )


class MemoryOptimizationStrategy:
    """Retry with a lighter config when memory runs short."""

    name = "memory_optimization"

    def can_handle(self, error: DocbatchError) -> bool:
        return error.code == "MEMORY_ERROR"

    async def execute(self, error: DocbatchError, context: RecoveryContext) -> RecoveryDecision:
        config = context.config
        if config is None:
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.ABORT,
                message="Cannot optimize memory without original config",
                should_retry=False,
            )

        modified = config.derive(
            preserve_images=False,
            cleanup_level=CleanupLevel.AGGRESSIVE,
        ).with_custom_settings(batch_size=1, enable_memory_optimization=True)

        log.info(
            "Applying memory optimization",
            modifications="disabled images, aggressive cleanup, batch size 1",
        )
        return RecoveryDecision(
            accepted=True,
            action=RecoveryAction.FALLBACK,
            message="Retrying with memory optimization",
            modified_config=modified,
            should_retry=True,
        )


class GracefulDegradationStrategy:
    """Retry a document that failed to parse using text-only extraction."""

    name = "graceful_degradation"

    def can_handle(self, error: DocbatchError) -> bool:
        return error.code == "DOCUMENT_PARSING_ERROR"

    async def execute(self, error: DocbatchError, context: RecoveryContext) -> RecoveryDecision:
        config = context.config
        if config is None:
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.SKIP,
                message="Cannot apply graceful degradation without original config",
                should_retry=False,
            )

        modified = config.derive(cleanup_level=CleanupLevel.MINIMAL).with_custom_settings(
            ignore_complex_structures=True,
            skip_images=True,
            skip_tables=True,
            extract_text_only=True,
        )

        log.info(
            "Applying graceful degradation",
            modifications="minimal cleanup, text-only extraction",
        )
        return RecoveryDecision(
            accepted=True,
            action=RecoveryAction.FALLBACK,
            message="Retrying with simplified parsing (text-only)",
            modified_config=modified,
            should_retry=True,
        )


def default_strategies(
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
) -> list[RecoveryStrategy]:
    """Build the default strategies, highest priority first."""
    return [
        SkipStrategy(),
        RetryStrategy(base_delay=retry_base_delay),
        FormatFallbackStrategy(),
        MemoryOptimizationStrategy(),
        GracefulDegradationStrategy(),
    ]
