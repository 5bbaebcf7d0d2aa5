"""View controllers: the state behind the live usage and daily report pages.

A view owns one in-flight target at a time. Every load bumps a generation
counter; a result that comes back for an older generation is dropped, so a
slow request can never overwrite what a newer navigation asked for.
"""

import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from config import settings as default_settings
from errors import AmberError, RateLimited
from fetcher import fetch_detail, fetch_live, fetch_overview
from retry import RetryCountdown
from scheduler import Handle, Scheduler

log = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to fetch data"


class BaseView:
    name = "view"

    def __init__(
        self,
        client,
        store,
        scheduler: Scheduler,
        tz,
        settings=None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.store = store
        self.scheduler = scheduler
        self.tz = tz
        self.settings = settings or default_settings
        self.now = now or (lambda: datetime.now(tz))
        self.countdown = RetryCountdown(scheduler)

        self.target: Any = None
        self.generation = 0
        self.loading = False
        self.loaded = False
        self.report = None
        self.error: Optional[str] = None
        self._lock = threading.Lock()

    def _fetch(self, target):
        raise NotImplementedError

    def navigate(self, target) -> None:
        """Load ``target`` unless a countdown is already going to retry it."""
        with self._lock:
            waiting = self.loaded and target == self.target and self.countdown.is_counting_down
        if waiting:
            return
        self.load(target)

    def load(self, target) -> None:
        with self._lock:
            self.generation += 1
            generation = self.generation
            self.target = target
            self.loading = True
            self.loaded = True
            self.error = None
            # a new request supersedes any pending retry; cancelled under the
            # lock so an older load cannot cancel a newer load's countdown
            self.countdown.cancel()

        try:
            report = self._fetch(target)
        except RateLimited as e:
            self._fail(generation, e.message, retry_in=e.wait_seconds)
        except AmberError as e:
            self._fail(generation, e.message)
        except Exception:
            log.exception("%s fetch failed", self.name)
            self._fail(generation, GENERIC_FAILURE)
        else:
            with self._lock:
                if generation != self.generation:
                    log.warning("discarding stale %s result", self.name)
                    return
                self.report = report
                self.loading = False

    def refresh(self) -> None:
        """Reload the current target, unless a countdown already owns the retry."""
        with self._lock:
            if self.countdown.is_counting_down:
                log.info("%s refresh skipped, retry in %ss", self.name, self.countdown.seconds_remaining)
                return
            target = self.target
        self.load(target)

    def _fail(self, generation: int, message: str, retry_in: Optional[int] = None) -> None:
        with self._lock:
            if generation != self.generation:
                log.warning("discarding stale %s failure: %s", self.name, message)
                return
            self.error = message
            self.report = None
            self.loading = False
            target = self.target
            if retry_in is not None:
                self.countdown.start(retry_in, lambda: self.load(target))

    def close(self) -> None:
        with self._lock:
            # anything still in flight is now stale
            self.generation += 1
            self.loading = False
            self.loaded = False
            self.report = None
            self.error = None
            self.countdown.cancel()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "target": self.target,
                "loading": self.loading,
                "error": self.error,
                "retry_in": self.countdown.seconds_remaining,
                "report": self.report,
            }


class ReportView(BaseView):
    """Daily report: the trailing overview when the target is None, one day otherwise."""

    name = "daily report"

    def _fetch(self, target: Optional[date]):
        site_id = self.store.get_site_id()
        if target is None:
            return fetch_overview(
                self.client,
                site_id,
                self.now().astimezone(self.tz).date(),
                self.tz,
                days=self.settings.OVERVIEW_DAYS,
                chunk_days=self.settings.CHUNK_DAYS,
                resolution=self.settings.PRICE_RESOLUTION,
                max_workers=self.settings.FETCH_WORKERS,
            )
        return fetch_detail(
            self.client, site_id, target, self.tz, resolution=self.settings.PRICE_RESOLUTION
        )


class LiveView(BaseView):
    """Live usage for a recent window, refreshed in the background while open."""

    name = "live usage"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._refresh_handle: Optional[Handle] = None

    def _fetch(self, target: str):
        return fetch_live(
            self.client,
            self.store.get_site_id(),
            target,
            self.now(),
            self.tz,
            resolution=self.settings.PRICE_RESOLUTION,
        )

    def navigate(self, target) -> None:
        if self._refresh_handle is None:
            self._refresh_handle = self.scheduler.schedule_periodic(
                self.settings.AUTO_REFRESH_MINUTES * 60, self.refresh
            )
        super().navigate(target)

    def close(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None
        super().close()
