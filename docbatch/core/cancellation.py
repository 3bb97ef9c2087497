"""Cooperative cancellation shared between a coordinator and its jobs."""

import threading


class CancellationToken:
    """Polled cancellation flag.

    Setting it never interrupts running work; jobs check it at their
    checkpoints (before starting, before each retry). Backed by a
    ``threading.Event`` so signal handlers and other threads may set it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def reset(self) -> None:
        """Clear a previous cancellation request."""
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()
