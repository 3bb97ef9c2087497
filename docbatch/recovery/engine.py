"""Execute fallible operations with bounded, strategy-driven recovery."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from docbatch.config.constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
)
from docbatch.core.cancellation import CancellationToken
from docbatch.core.job import ProcessingConfig
from docbatch.exceptions import DocbatchError, InternalError, JobSkippedError, RecoveryAction
from docbatch.recovery.strategies import (
    RecoveryContext,
    RecoveryDecision,
    RecoveryStrategy,
    default_strategies,
)
from docbatch.services.error_reporter import ErrorReporter, get_error_reporter
from docbatch.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[RecoveryContext], Awaitable[T]]
FailureCallback = Callable[[DocbatchError, RecoveryDecision], None]


class RecoveryEngine:
    """Runs an operation, consulting recovery strategies after each failure.

    Strategies are kept in priority order. Custom strategies are prepended,
    so they take precedence over the defaults and over earlier custom ones.
    """

    def __init__(
        self,
        strategies: list[RecoveryStrategy] | None = None,
        reporter: ErrorReporter | None = None,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    ) -> None:
        """Initialize the recovery engine.

        Args:
            strategies: Strategies in priority order (defaults if omitted)
            reporter: Reporter used to classify raw exceptions
            retry_base_delay: Base backoff delay for the default retry strategy
        """
        if strategies is None:
            strategies = default_strategies(retry_base_delay=retry_base_delay)
        self._strategies: list[RecoveryStrategy] = list(strategies)
        self.reporter = reporter or get_error_reporter()

    def register_strategy(self, strategy: RecoveryStrategy) -> None:
        """Register a custom strategy ahead of all existing ones."""
        self._strategies.insert(0, strategy)
        log.debug("Recovery strategy registered", strategy=_strategy_name(strategy))

    @property
    def strategy_names(self) -> list[str]:
        """Names of the registered strategies in priority order."""
        return [_strategy_name(s) for s in self._strategies]

    def create_context(
        self,
        operation_name: str,
        source_ref: str | None = None,
        config: ProcessingConfig | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        **additional_data: Any,
    ) -> RecoveryContext:
        """Create a fresh recovery context for one job."""
        return RecoveryContext(
            operation_name=operation_name,
            source_ref=source_ref,
            config=config,
            attempt_number=1,
            max_attempts=max(1, max_attempts),
            additional_data=additional_data,
        )

    async def attempt_recovery(
        self, error: DocbatchError, context: RecoveryContext
    ) -> RecoveryDecision:
        """Ask the first matching strategy how to handle ``error``."""
        strategy = next((s for s in self._strategies if s.can_handle(error)), None)

        if strategy is None:
            log.warning("No recovery strategy found", code=error.code, error=error.message)
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.ABORT,
                message=f"No recovery strategy available for: {error.message}",
                should_retry=False,
            )

        name = _strategy_name(strategy)
        try:
            decision = await strategy.execute(error, context)
        except Exception as e:
            log.error(
                "Recovery strategy failed",
                strategy=name,
                original_error=error.message,
                error=str(e),
                exc_info=True,
            )
            return RecoveryDecision(
                accepted=False,
                action=RecoveryAction.ABORT,
                message=f"Recovery failed: {e}",
                should_retry=False,
            )

        log.debug(
            "Recovery strategy executed",
            strategy=name,
            accepted=decision.accepted,
            action=decision.action.value,
            message=decision.message,
        )
        return decision

    async def run_with_recovery(
        self,
        operation: Operation[T],
        context: RecoveryContext,
        on_failure: FailureCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or recovery gives up.

        The operation receives the context, whose ``config`` reflects any
        modification applied by an earlier fallback.

        Raises:
            JobSkippedError: A strategy chose to skip the job.
            DocbatchError: The last classified error, when a strategy aborts,
                no strategy matches, attempts run out, or cancellation was
                requested before a retry.
        """
        last_error: DocbatchError | None = None

        for attempt in range(1, context.max_attempts + 1):
            context.attempt_number = attempt

            try:
                return await operation(context)
            except Exception as e:
                last_error = self.reporter.classify(e)

            log.warning(
                "Operation failed",
                operation=context.operation_name,
                attempt=attempt,
                max_attempts=context.max_attempts,
                code=last_error.code,
                error=last_error.message,
            )

            decision = await self.attempt_recovery(last_error, context)

            if decision.action == RecoveryAction.ABORT:
                raise last_error

            if not decision.should_retry:
                raise JobSkippedError(last_error, decision.message)

            if decision.modified_config is not None:
                context.config = decision.modified_config

            if on_failure is not None:
                on_failure(last_error, decision)

            if cancel_token is not None and cancel_token.cancelled:
                log.info("Cancellation requested, not retrying", operation=context.operation_name)
                raise last_error

        raise last_error or InternalError("Operation failed after all recovery attempts")


def _strategy_name(strategy: RecoveryStrategy) -> str:
    return getattr(strategy, "name", type(strategy).__name__)
