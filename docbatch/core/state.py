"""Job outcomes, batch results, and live progress tracking."""

import threading
import time
from dataclasses import dataclass, replace
from typing import Any

from docbatch.config.constants import CANCELLED_MESSAGE


@dataclass(frozen=True)
class JobOutcome:
    """Result of one job in a batch.

    Exactly one of ``output`` and ``error_message`` is set, gated by
    ``success``.
    """

    source_ref: str
    success: bool
    output: Any | None = None
    error_message: str | None = None
    elapsed_ms: float = 0.0
    error_code: str | None = None
    skipped: bool = False
    cancelled: bool = False

    def __post_init__(self) -> None:
        if self.success and self.error_message is not None:
            raise ValueError("Successful outcome cannot carry an error message")
        if self.success and self.output is None:
            raise ValueError("Successful outcome requires output")
        if not self.success and self.error_message is None:
            raise ValueError("Failed outcome requires an error message")
        if not self.success and self.output is not None:
            raise ValueError("Failed outcome cannot carry output")

    @classmethod
    def succeeded(cls, source_ref: str, output: Any, elapsed_ms: float) -> "JobOutcome":
        """Create a successful outcome."""
        return cls(source_ref=source_ref, success=True, output=output, elapsed_ms=elapsed_ms)

    @classmethod
    def failed(
        cls,
        source_ref: str,
        error_message: str,
        elapsed_ms: float,
        error_code: str | None = None,
        skipped: bool = False,
    ) -> "JobOutcome":
        """Create a failed outcome."""
        return cls(
            source_ref=source_ref,
            success=False,
            error_message=error_message,
            elapsed_ms=elapsed_ms,
            error_code=error_code,
            skipped=skipped,
        )

    @classmethod
    def cancelled_before_start(
        cls, source_ref: str, message: str = CANCELLED_MESSAGE
    ) -> "JobOutcome":
        """Create the failed outcome recorded for a job that never started."""
        return cls(
            source_ref=source_ref,
            success=False,
            error_message=message,
            cancelled=True,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (output omitted, it belongs to the renderer)."""
        return {
            "source_ref": self.source_ref,
            "success": self.success,
            "error_message": self.error_message,
            "elapsed_ms": self.elapsed_ms,
            "error_code": self.error_code,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class BatchResult:
    """Aggregated result of one batch run.

    ``outcomes`` is ordered by original job index, not completion order.
    """

    total_jobs: int
    succeeded: int
    failed: int
    outcomes: tuple[JobOutcome, ...]
    total_elapsed_ms: float

    @classmethod
    def from_outcomes(
        cls, total_jobs: int, outcomes: list[JobOutcome], total_elapsed_ms: float
    ) -> "BatchResult":
        """Build a result, counting successes and failures."""
        succeeded = sum(1 for o in outcomes if o.success)
        return cls(
            total_jobs=total_jobs,
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            outcomes=tuple(outcomes),
            total_elapsed_ms=total_elapsed_ms,
        )

    @property
    def skipped(self) -> int:
        """Failed jobs that recovery gave up on gracefully."""
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def cancelled(self) -> int:
        """Failed jobs that were never started."""
        return sum(1 for o in self.outcomes if o.cancelled)

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage of recorded outcomes."""
        if not self.outcomes:
            return 0.0
        return (self.succeeded / len(self.outcomes)) * 100

    def format_summary(self) -> str:
        """Format the result as a short human-readable summary."""
        line = f"Complete: {self.succeeded} success, {self.failed} failed"
        if self.skipped:
            line += f", {self.skipped} skipped"
        if self.cancelled:
            line += f", {self.cancelled} cancelled"
        return f"{line}\nTotal: {self.total_elapsed_ms / 1000:.1f}s"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_jobs": self.total_jobs,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "success_rate": self.success_rate,
            "total_elapsed_ms": self.total_elapsed_ms,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class BatchProgress:
    """Live progress of the running batch."""

    current_job: str = ""
    completed: int = 0
    total: int = 0
    percent_complete: int = 0
    eta_ms: int | None = None


class ProgressTracker:
    """Owns the single mutable progress record of a coordinator.

    Writes come from concurrently finishing jobs and reads from observers,
    possibly on other threads, so both go through one lock. Readers only
    ever receive copies.
    """

    def __init__(self) -> None:
        self._progress = BatchProgress()
        self._started_at = time.monotonic()
        self._lock = threading.Lock()

    def reset(self, total: int) -> None:
        """Start tracking a new batch of ``total`` jobs."""
        with self._lock:
            self._progress = BatchProgress(total=total)
            self._started_at = time.monotonic()

    def job_finished(self, source_ref: str) -> BatchProgress:
        """Record one finished job and return the updated snapshot."""
        with self._lock:
            progress = self._progress
            progress.current_job = source_ref
            progress.completed += 1
            if progress.total > 0:
                progress.percent_complete = int(100 * progress.completed / progress.total + 0.5)

            elapsed_ms = (time.monotonic() - self._started_at) * 1000
            remaining = max(progress.total - progress.completed, 0)
            progress.eta_ms = round(elapsed_ms / progress.completed * remaining)
            return replace(progress)

    def snapshot(self) -> BatchProgress:
        """Get a defensive copy of the current progress."""
        with self._lock:
            return replace(self._progress)
