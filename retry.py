"""Countdown that re-issues a rate-limited request when it reaches zero.

There is no retry cap and no backoff: if the retried request is rate limited
again the view simply starts another countdown.
"""

import logging
import threading
from typing import Callable, Optional

from scheduler import Handle, Scheduler

log = logging.getLogger(__name__)

TICK_SECONDS = 1


class RetryCountdown:
    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self.seconds_remaining = 0
        self._operation: Optional[Callable[[], None]] = None
        self._handle: Optional[Handle] = None
        self._lock = threading.Lock()

    @property
    def is_counting_down(self) -> bool:
        return self.seconds_remaining > 0

    @property
    def state(self) -> str:
        return "counting_down" if self.is_counting_down else "idle"

    def start(self, wait_seconds: int, operation: Callable[[], None]) -> None:
        """Idle -> CountingDown(wait_seconds); replaces any running countdown."""
        wait_seconds = max(int(wait_seconds), 1)
        with self._lock:
            self._cancel_job()
            self.seconds_remaining = wait_seconds
            self._operation = operation
            self._handle = self.scheduler.schedule_periodic(TICK_SECONDS, self.tick)
        log.info("retrying in %ss", wait_seconds)

    def tick(self) -> None:
        with self._lock:
            if self.seconds_remaining <= 0:
                return
            self.seconds_remaining -= 1
            if self.seconds_remaining > 0:
                return
            operation = self._operation
            self._operation = None
            self._cancel_job()
        # outside the lock: the operation may start a fresh countdown
        if operation is not None:
            operation()

    def cancel(self) -> None:
        with self._lock:
            self._cancel_job()
            self.seconds_remaining = 0
            self._operation = None

    def _cancel_job(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
