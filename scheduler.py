"""Periodic callbacks behind a small interface.

Views never touch APScheduler directly: they ask a ``Scheduler`` for a
periodic job and keep the returned handle so the job can be cancelled when
the view is torn down. Tests substitute a manually driven scheduler.
"""

import atexit
import logging
import threading
from typing import Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

log = logging.getLogger(__name__)


class Handle:
    def cancel(self) -> None:
        raise NotImplementedError


class Scheduler:
    def schedule_periodic(self, interval_seconds: float, callback: Callable[[], None]) -> Handle:
        raise NotImplementedError


class JobHandle(Handle):
    def __init__(self, job):
        self.job = job

    def cancel(self) -> None:
        try:
            self.job.remove()
        except JobLookupError:
            # already gone (cancelled twice or scheduler shut down)
            pass


class BackgroundJobScheduler(Scheduler):
    """APScheduler ``BackgroundScheduler`` with interval jobs, started on first use."""

    def __init__(self):
        self.scheduler = BackgroundScheduler(daemon=True)
        self._lock = threading.Lock()

    def _ensure_started(self) -> None:
        with self._lock:
            if not self.scheduler.running:
                self.scheduler.start()
                atexit.register(self.shutdown)

    def schedule_periodic(self, interval_seconds: float, callback: Callable[[], None]) -> Handle:
        self._ensure_started()
        job = self.scheduler.add_job(
            callback,
            "interval",
            seconds=interval_seconds,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=max(1, int(interval_seconds)),
        )
        return JobHandle(job)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            log.info("background scheduler stopped")
