"""Batch coordinator: runs jobs in concurrency groups with recovery and progress."""

import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

from docbatch.config.constants import (
    CANCELLED_MESSAGE,
    HALTED_MESSAGE,
    MAX_CONCURRENCY_LIMIT,
    MIN_CONCURRENCY_LIMIT,
    MIN_RESOURCE_CEILING_MB,
)
from docbatch.config.settings import DocbatchSettings, get_settings
from docbatch.core.cancellation import CancellationToken
from docbatch.core.job import Job
from docbatch.core.pipeline import DocumentPipeline, run_pipeline
from docbatch.core.state import BatchProgress, BatchResult, JobOutcome, ProgressTracker
from docbatch.exceptions import (
    BatchStateError,
    DocbatchError,
    JobSkippedError,
    MemoryPressureError,
)
from docbatch.recovery.engine import RecoveryEngine
from docbatch.recovery.strategies import RecoveryContext, RecoveryDecision
from docbatch.services.error_reporter import ErrorReporter, get_error_reporter
from docbatch.utils.concurrency import partition, run_group
from docbatch.utils.logging import get_logger, job_context
from docbatch.utils.resources import get_memory_mb

log = get_logger(__name__)

ProgressObserver = Callable[[BatchProgress], None]
MemoryProbe = Callable[[], float | None]


def clamp_concurrency_limit(value: int) -> int:
    """Clamp a concurrency limit into the supported range."""
    return max(MIN_CONCURRENCY_LIMIT, min(MAX_CONCURRENCY_LIMIT, int(value)))


def clamp_resource_ceiling(value: float) -> float:
    """Raise a resource ceiling to the supported minimum."""
    return max(MIN_RESOURCE_CEILING_MB, float(value))


class BatchCoordinator:
    """Runs a batch of jobs group by group.

    Jobs are split into consecutive groups of ``concurrency_limit``. Jobs of
    a group run concurrently; groups run strictly one after another. Before
    each group the process's memory use is checked against the resource
    ceiling. Each job goes through the recovery engine, so job failures end
    up as failed outcomes and never escape ``run_batch``.

    Only one batch may run on a coordinator at a time.
    """

    def __init__(
        self,
        pipeline: DocumentPipeline,
        concurrency_limit: int | None = None,
        resource_ceiling: float | None = None,
        max_attempts: int | None = None,
        engine: RecoveryEngine | None = None,
        reporter: ErrorReporter | None = None,
        memory_probe: MemoryProbe | None = None,
        on_progress: ProgressObserver | None = None,
        settings: DocbatchSettings | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            pipeline: Parse and clean collaborator
            concurrency_limit: Jobs per group (clamped to 1-10)
            resource_ceiling: Memory ceiling in MB (at least 100)
            max_attempts: Attempts per job before it is recorded as failed
            engine: Recovery engine (built from settings if omitted)
            reporter: Error reporter (process-wide instance if omitted)
            memory_probe: Returns current memory use in MB, or None if unknown
            on_progress: Called with a progress snapshot after each finished job
            settings: Settings supplying defaults for omitted values
        """
        settings = settings or get_settings()

        self.pipeline = pipeline
        self.reporter = reporter or get_error_reporter()
        self.engine = engine or RecoveryEngine(
            reporter=self.reporter,
            retry_base_delay=settings.recovery.retry_base_delay,
        )

        self._concurrency_limit = clamp_concurrency_limit(
            concurrency_limit if concurrency_limit is not None else settings.batch.concurrency_limit
        )
        self._resource_ceiling = clamp_resource_ceiling(
            resource_ceiling if resource_ceiling is not None else settings.batch.resource_ceiling_mb
        )
        self._max_attempts = max(1, max_attempts or settings.recovery.max_attempts)
        self._memory_probe = memory_probe or get_memory_mb
        self._on_progress = on_progress

        self._progress = ProgressTracker()
        self._cancel_token = CancellationToken()
        self._running = False
        self._state_lock = threading.Lock()

    @property
    def concurrency_limit(self) -> int:
        """Stored number of jobs per group."""
        return self._concurrency_limit

    @property
    def resource_ceiling(self) -> float:
        """Stored memory ceiling in MB."""
        return self._resource_ceiling

    async def run_batch(
        self,
        jobs: Sequence[Job],
        concurrency_limit: int | None = None,
        resource_ceiling: float | None = None,
    ) -> BatchResult:
        """Run all jobs and aggregate their outcomes.

        Explicit limits apply to this call only and are clamped the same way
        as in ``update_configuration``.

        Raises:
            BatchStateError: If a batch is already running on this coordinator.
            MemoryPressureError: If memory use exceeds the ceiling before a
                group starts. The whole batch is aborted.
        """
        with self._state_lock:
            if self._running:
                log.warning("Batch rejected, another batch is running")
                raise BatchStateError(
                    "Batch processing already in progress", stage="batch_processing"
                )
            self._running = True
            self._cancel_token.reset()

        try:
            return await self._run(list(jobs), concurrency_limit, resource_ceiling)
        finally:
            with self._state_lock:
                self._running = False
                self._cancel_token.reset()

    async def _run(
        self,
        jobs: list[Job],
        concurrency_limit: int | None,
        resource_ceiling: float | None,
    ) -> BatchResult:
        limit = (
            clamp_concurrency_limit(concurrency_limit)
            if concurrency_limit is not None
            else self._concurrency_limit
        )
        ceiling = (
            clamp_resource_ceiling(resource_ceiling)
            if resource_ceiling is not None
            else self._resource_ceiling
        )

        started = time.perf_counter()
        self._progress.reset(len(jobs))
        groups = partition(jobs, limit)
        outcomes: list[JobOutcome] = []
        halt_message: str | None = None

        log.info(
            "Batch started",
            jobs=len(jobs),
            groups=len(groups),
            concurrency_limit=limit,
            resource_ceiling_mb=ceiling,
        )

        for index, group in enumerate(groups, start=1):
            if halt_message is not None or self._cancel_token.cancelled:
                message = halt_message or CANCELLED_MESSAGE
                log.info("Group not started", group=index, jobs=len(group), reason=message)
                outcomes.extend(
                    JobOutcome.cancelled_before_start(j.source_ref, message) for j in group
                )
                continue

            self._check_resources(ceiling, index)
            log.debug("Processing group", group=index, total_groups=len(groups), jobs=len(group))

            results = await run_group(group, self._run_job)

            errors = [error for _, error in results if error is not None]
            if errors:
                report = self.reporter.classify_batch(
                    errors,
                    self.reporter.create_context("batch_processing", group=index),
                )
                if not report.should_continue_batch:
                    halt_message = f"{HALTED_MESSAGE}: {report.summary_message}"
                    log.error("Batch halted", group=index, reason=report.summary_message)

            outcomes.extend(outcome for outcome, _ in results)

        total_elapsed_ms = (time.perf_counter() - started) * 1000
        result = BatchResult.from_outcomes(len(jobs), outcomes, total_elapsed_ms)

        log.info(
            "Batch completed",
            total_jobs=result.total_jobs,
            succeeded=result.succeeded,
            failed=result.failed,
            skipped=result.skipped,
            cancelled=result.cancelled,
            total_elapsed_ms=round(total_elapsed_ms),
        )
        return result

    async def _run_job(self, job: Job) -> tuple[JobOutcome, DocbatchError | None]:
        """Run one job through the recovery engine.

        Returns the outcome plus the error to report, if the job failed.
        """
        if self._cancel_token.cancelled:
            log.info("Skipping job, batch cancelled", source_ref=job.source_ref)
            return JobOutcome.cancelled_before_start(job.source_ref), None

        started = time.perf_counter()
        with job_context(job.source_ref):
            context = self.engine.create_context(
                "single_file_processing",
                source_ref=job.source_ref,
                config=job.config,
                max_attempts=self._max_attempts,
            )

            async def operation(ctx: RecoveryContext) -> Any:
                return await run_pipeline(self.pipeline, job.source_ref, ctx.config or job.config)

            error: DocbatchError | None = None
            try:
                output = await self.engine.run_with_recovery(
                    operation,
                    context,
                    on_failure=self._log_recovery,
                    cancel_token=self._cancel_token,
                )
            except Exception as e:
                classified = self.reporter.classify(e)
                skipped = isinstance(classified, JobSkippedError)
                error = classified.original if skipped else classified
                elapsed_ms = (time.perf_counter() - started) * 1000
                outcome = JobOutcome.failed(
                    job.source_ref,
                    self.reporter.user_message(error),
                    elapsed_ms,
                    error_code=error.code,
                    skipped=skipped,
                )
                log.warning(
                    "Job failed",
                    code=error.code,
                    skipped=skipped,
                    attempts=context.attempt_number,
                    elapsed_ms=round(elapsed_ms),
                )
            else:
                elapsed_ms = (time.perf_counter() - started) * 1000
                outcome = JobOutcome.succeeded(job.source_ref, output, elapsed_ms)
                log.info(
                    "Job succeeded",
                    attempts=context.attempt_number,
                    elapsed_ms=round(elapsed_ms),
                )

        self._notify_progress(self._progress.job_finished(job.source_ref))
        return outcome, error

    def _check_resources(self, ceiling: float, group: int) -> None:
        usage = self._memory_probe()
        if usage is None:
            log.warning("Memory usage unknown, continuing", group=group)
            return

        log.debug("Memory usage", group=group, memory_mb=round(usage, 1), ceiling_mb=ceiling)
        if usage > ceiling:
            error = MemoryPressureError(
                f"Memory usage ({round(usage)}MB) exceeded threshold ({round(ceiling)}MB)"
            )
            self.reporter.record(
                error,
                self.reporter.create_context("batch_processing", group=group, memory_mb=usage),
            )
            raise error

    def _log_recovery(self, error: DocbatchError, decision: RecoveryDecision) -> None:
        log.warning(
            "Recovery attempted",
            code=error.code,
            action=decision.action.value,
            message=decision.message,
        )

    def _notify_progress(self, progress: BatchProgress) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(progress)
        except Exception as e:
            log.warning("Progress observer failed", error=str(e))

    def cancel_batch(self) -> None:
        """Stop starting new jobs; running jobs finish normally."""
        with self._state_lock:
            if not self._running:
                return
            self._cancel_token.cancel()
        log.info("Batch cancellation requested")

    def is_running(self) -> bool:
        """Whether a batch is currently running."""
        return self._running

    def get_progress(self) -> BatchProgress:
        """Get a copy of the current progress."""
        return self._progress.snapshot()

    def update_configuration(
        self,
        concurrency_limit: int | None = None,
        resource_ceiling: float | None = None,
    ) -> None:
        """Change the stored limits.

        Raises:
            BatchStateError: If a batch is running. Nothing is changed.
        """
        with self._state_lock:
            if self._running:
                raise BatchStateError(
                    "Cannot update configuration while processing is active",
                    stage="configuration_update",
                )
            if concurrency_limit is not None:
                self._concurrency_limit = clamp_concurrency_limit(concurrency_limit)
            if resource_ceiling is not None:
                self._resource_ceiling = clamp_resource_ceiling(resource_ceiling)

        log.info(
            "Configuration updated",
            concurrency_limit=self._concurrency_limit,
            resource_ceiling_mb=self._resource_ceiling,
        )

    def get_processing_stats(self) -> dict[str, Any]:
        """Get the coordinator's limits and state."""
        return {
            "concurrency_limit": self._concurrency_limit,
            "resource_ceiling_mb": self._resource_ceiling,
            "max_attempts": self._max_attempts,
            "is_running": self._running,
            "progress": self.get_progress(),
        }
