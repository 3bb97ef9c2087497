"""Utility module for docbatch."""

from docbatch.utils.concurrency import partition, run_group
from docbatch.utils.resources import get_available_memory_mb, get_memory_mb
from docbatch.utils.stats import ErrorStats, RecentError

__all__ = [
    # Concurrency
    "partition",
    "run_group",
    # Resources
    "get_memory_mb",
    "get_available_memory_mb",
    # Statistics
    "ErrorStats",
    "RecentError",
]
