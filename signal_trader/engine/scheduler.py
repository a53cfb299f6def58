"""Cancellable fixed-interval scheduler backed by a daemon thread."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from signal_trader.core.errors import SchedulerError

logger = logging.getLogger(__name__)


class TickScheduler:
    """Calls ``callback`` every ``interval_sec`` seconds until cancelled.

    Each scheduler owns exactly one thread. Firings are sequential: if a
    callback overruns the interval, the next firing happens as soon as it
    returns and missed firings are dropped rather than queued.

    The cancelled flag is checked under the scheduler's lock right before each
    callback, so once ``cancel()`` returns no new callback will begin. A
    callback that already began is not interrupted.

    Attributes:
        interval_sec: Seconds between firings
        name: Thread name
        fired: Number of callbacks started so far
    """

    def __init__(
        self,
        interval_sec: float,
        callback: Callable[[], None],
        name: str = "tick-scheduler",
    ) -> None:
        if interval_sec <= 0:
            raise SchedulerError(f"interval must be positive, got {interval_sec}")
        self.interval_sec = interval_sec
        self.name = name
        self.fired = 0
        self._callback = callback
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        """True once started and until cancelled."""
        with self._lock:
            return self._thread is not None and not self._cancelled.is_set()

    def start(self) -> None:
        """Start the scheduling thread.

        Raises:
            SchedulerError: If already started, cancelled, or the thread
                cannot be created
        """
        with self._lock:
            if self._thread is not None:
                raise SchedulerError(f"{self.name} already started")
            if self._cancelled.is_set():
                raise SchedulerError(f"{self.name} was cancelled")
            thread = threading.Thread(target=self._run, daemon=True, name=self.name)
            try:
                thread.start()
            except RuntimeError as exc:
                raise SchedulerError(f"Failed to start {self.name}: {exc}") from exc
            self._thread = thread
        logger.debug("%s started: interval=%.3fs", self.name, self.interval_sec)

    def cancel(self) -> None:
        """Cancel future firings. Safe to call more than once."""
        with self._lock:
            already = self._cancelled.is_set()
            self._cancelled.set()
        if not already:
            logger.debug("%s cancelled after %d firings", self.name, self.fired)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the scheduling thread to exit (after ``cancel()``)."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        next_fire = time.monotonic() + self.interval_sec
        while True:
            remaining = next_fire - time.monotonic()
            if self._cancelled.wait(max(0.0, remaining)):
                return

            with self._lock:
                if self._cancelled.is_set():
                    return
                self.fired += 1

            try:
                self._callback()
            except Exception:
                logger.exception("Unhandled error in %s callback", self.name)

            next_fire += self.interval_sec
            now = time.monotonic()
            if next_fire < now:
                next_fire = now


__all__ = ["TickScheduler"]
