"""Cooperative cancellation shared across pipeline stages."""

import threading

from .errors import JobCancelled


class CancellationToken:
    """Set once by the caller; checked by stages at their boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "Job cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelled(self.reason or "Job cancelled")
