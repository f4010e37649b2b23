"""
Cancellation token for apply requests.

A token is cancelled either explicitly (``cancel()``, usually from
another thread) or by passing its deadline.  The engine checks it once,
immediately before the conditional write; after that point an apply
always runs to completion.
"""

from __future__ import annotations

import threading
import time


class CancellationToken:
    """Thread-safe cancel flag with an optional monotonic deadline."""

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._reason = ""
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )

    @classmethod
    def with_deadline(cls, seconds: float) -> CancellationToken:
        return cls(timeout=seconds)

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return self._reason
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return "deadline exceeded"
        return ""

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())
