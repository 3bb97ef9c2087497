"""Process resource probes used for resource-ceiling checks between batch groups."""

import psutil

from docbatch.utils.logging import get_logger

log = get_logger(__name__)

_BYTES_PER_MB = 1024 * 1024


def get_memory_mb() -> float | None:
    """Get resident memory of the current process in megabytes.

    Returns:
        RSS in megabytes, or None when the probe fails.
    """
    try:
        return psutil.Process().memory_info().rss / _BYTES_PER_MB
    except psutil.Error as e:
        log.debug("Memory probe failed", error=str(e))
        return None


def get_available_memory_mb() -> float | None:
    """Get system-wide available memory in megabytes."""
    try:
        return psutil.virtual_memory().available / _BYTES_PER_MB
    except psutil.Error as e:
        log.debug("Available memory probe failed", error=str(e))
        return None
