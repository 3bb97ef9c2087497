"""Failure recovery for docbatch.

Strategies (highest priority first):
    - SkipStrategy: terminal errors are skipped without retrying
    - RetryStrategy: transient errors are retried with linear backoff
    - FormatFallbackStrategy: format conversion failures switch output format
    - MemoryOptimizationStrategy: memory errors retry with a lighter config
    - GracefulDegradationStrategy: parse failures retry with text-only extraction
"""

from docbatch.recovery.strategies import (
    FormatFallbackStrategy,
    GracefulDegradationStrategy,
    MemoryOptimizationStrategy,
    RecoveryContext,
    RecoveryDecision,
    RecoveryStrategy,
    RetryStrategy,
    SkipStrategy,
    default_strategies,
)
from docbatch.recovery.engine import RecoveryEngine  # noqa: I001

__all__ = [
    "RecoveryEngine",
    "RecoveryContext",
    "RecoveryDecision",
    "RecoveryStrategy",
    "SkipStrategy",
    "RetryStrategy",
    "FormatFallbackStrategy",
    "MemoryOptimizationStrategy",
    "GracefulDegradationStrategy",
    "default_strategies",
]
