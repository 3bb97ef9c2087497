"""Error statistics collection and reporting."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from docbatch.config.constants import MAX_RECENT_ERRORS
from docbatch.exceptions import ErrorCategory

if TYPE_CHECKING:
    from docbatch.exceptions import DocbatchError
    from docbatch.services.error_reporter import ErrorContext


@dataclass(frozen=True)
class RecentError:
    """One entry of the recent-errors buffer."""

    error: "DocbatchError"
    context: "ErrorContext"
    timestamp: datetime


def _empty_categories() -> dict[ErrorCategory, int]:
    return {category: 0 for category in ErrorCategory}


@dataclass
class ErrorStats:
    """Aggregate error statistics.

    ``recent`` is a ring buffer: once it holds ``MAX_RECENT_ERRORS`` entries
    the oldest is evicted for every new one.
    """

    total_errors: int = 0
    by_category: dict[ErrorCategory, int] = field(default_factory=_empty_categories)
    by_code: dict[str, int] = field(default_factory=dict)
    recent: deque[RecentError] = field(
        default_factory=lambda: deque(maxlen=MAX_RECENT_ERRORS)
    )

    def add(self, error: "DocbatchError", context: "ErrorContext") -> None:
        """Count one error and push it into the recent buffer."""
        self.total_errors += 1
        self.by_category[error.category] = self.by_category.get(error.category, 0) + 1
        self.by_code[error.code] = self.by_code.get(error.code, 0) + 1
        self.recent.append(RecentError(error=error, context=context, timestamp=datetime.now()))

    def copy(self) -> "ErrorStats":
        """Get an independent snapshot."""
        return ErrorStats(
            total_errors=self.total_errors,
            by_category=dict(self.by_category),
            by_code=dict(self.by_code),
            recent=deque(self.recent, maxlen=self.recent.maxlen),
        )

    @property
    def most_common_code(self) -> str | None:
        """Code recorded most often, if any."""
        if not self.by_code:
            return None
        return max(self.by_code.items(), key=lambda item: item[1])[0]

    def format_summary(self) -> str:
        """Format statistics as a human-readable summary.

        Returns:
            Multi-line summary string
        """
        lines = [f"Errors: {self.total_errors}"]

        categories = [f"{c.value}({n})" for c, n in self.by_category.items() if n > 0]
        if categories:
            lines.append(f"By category: {', '.join(categories)}")

        if self.by_code:
            codes = sorted(self.by_code.items(), key=lambda item: item[1], reverse=True)
            lines.append(f"By code: {', '.join(f'{code}({n})' for code, n in codes)}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_errors": self.total_errors,
            "by_category": {c.value: n for c, n in self.by_category.items()},
            "by_code": dict(self.by_code),
            "recent": [
                {
                    **entry.error.to_dict(),
                    "operation": entry.context.operation,
                    "timestamp": entry.timestamp.isoformat(),
                }
                for entry in self.recent
            ],
        }
