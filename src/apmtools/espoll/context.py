# src/apmtools/espoll/context.py
"""Cancellation context for polls.

A PollContext is the caller's handle for aborting a poll: it can be
cancelled explicitly (from another thread or a signal handler) and may carry
a deadline. Polls sleep through PollContext.wait, so a cancellation during
backoff wakes the sleeper immediately instead of waiting out the interval.

Thread safety:
    cancel() may be called from any thread. A context may be shared by
    several polls; the request it polls for may not.
"""

from __future__ import annotations

import signal
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

DEADLINE_EXCEEDED = "deadline exceeded"


class PollContext:
    """Cancellable context with an optional monotonic deadline."""

    def __init__(self, deadline: float | None = None) -> None:
        """Initialize context.

        Args:
            deadline: Absolute time.monotonic() deadline, None for no deadline
        """
        self._deadline = deadline
        self._event = threading.Event()
        self._cause: str | None = None
        self._lock = threading.RLock()  # cancel() may re-enter from a signal handler

    @classmethod
    def background(cls) -> PollContext:
        """Context that is never cancelled unless cancel() is called."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> PollContext:
        """Context whose deadline is `seconds` from now."""
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def cancel(self, cause: str = "cancelled") -> None:
        """Cancel the context. Only the first cause is kept."""
        with self._lock:
            if self._cause is None:
                self._cause = cause
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(DEADLINE_EXCEEDED)
            return True
        return False

    @property
    def cause(self) -> str | None:
        """Why the context was cancelled, None while still live."""
        if not self.cancelled:
            return None
        return self._cause

    def remaining(self) -> float | None:
        """Seconds until the deadline (never negative), None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, returning early if the context is cancelled.

        The sleep is also cut short at the deadline.

        Returns:
            True if the context is cancelled when the wait ends
        """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(max(0.0, seconds))
        return self.cancelled

    @contextmanager
    def cancel_on_signals(self, *signals: signal.Signals) -> Iterator[PollContext]:
        """Cancel this context when one of `signals` arrives while inside the block.

        Defaults to SIGINT and SIGTERM. Previous handlers are restored on
        exit. Must be used from the main thread.
        """

        def handler(signum: int, frame: FrameType | None) -> None:
            self.cancel(f"received {signal.Signals(signum).name}")

        previous = {sig: signal.signal(sig, handler) for sig in signals or (signal.SIGINT, signal.SIGTERM)}
        try:
            yield self
        finally:
            for sig, old_handler in previous.items():
                signal.signal(sig, old_handler)
