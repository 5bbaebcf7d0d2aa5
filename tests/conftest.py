"""Shared test fixtures."""

import json
from dataclasses import dataclass, field
from datetime import datetime

import pytest
import pytz
import requests
from requests.structures import CaseInsensitiveDict

from models import PriceInterval, Site, UsageInterval
from scheduler import Handle, Scheduler
from storage import MemorySessionStore, Session

SYDNEY = pytz.timezone("Australia/Sydney")


def usage(ts, kwh, cost=0.0, channel="general"):
    return UsageInterval(start_time=ts, channel_type=channel, kwh=kwh, cost=cost)


def price(ts, per_kwh=20.0, renewables=50.0, channel="general", descriptor="neutral", interval_type=None):
    return PriceInterval(
        start_time=ts,
        channel_type=channel,
        per_kwh=per_kwh,
        spot_per_kwh=per_kwh / 2,
        renewables=renewables,
        descriptor=descriptor,
        interval_type=interval_type,
    )


def local(year, month, day, hour=0, minute=0, tz=SYDNEY):
    return tz.localize(datetime(year, month, day, hour, minute))


def make_response(status=200, payload=None, headers=None, reason=""):
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp._content = json.dumps(payload if payload is not None else []).encode()
    resp.headers = CaseInsensitiveDict(headers or {})
    return resp


@dataclass
class FakeHttpSession:
    """Stands in for ``requests.Session``; replays queued responses."""

    responses: list = field(default_factory=list)
    calls: list = field(default_factory=list)

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


@dataclass
class ManualJob(Handle):
    interval: float
    callback: object
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler(Scheduler):
    """Scheduler driven by the test instead of a clock."""

    jobs: list = field(default_factory=list)

    def schedule_periodic(self, interval_seconds, callback):
        job = ManualJob(interval_seconds, callback)
        self.jobs.append(job)
        return job

    def active(self, interval=None):
        return [
            j for j in self.jobs
            if not j.cancelled and (interval is None or j.interval == interval)
        ]

    def fire(self, interval):
        """Run every active job with the given interval once."""
        for job in self.active(interval):
            if not job.cancelled:
                job.callback()


@dataclass
class FakeAmberClient:
    """In-memory Amber client; filters rows by local date like the real API."""

    usage_rows: list = field(default_factory=list)
    price_rows: list = field(default_factory=list)
    current_rows: list = field(default_factory=list)
    sites: list = field(default_factory=lambda: [Site(id="site-1", status="active")])
    errors: list = field(default_factory=list)
    tz: object = SYDNEY
    calls: list = field(default_factory=list)

    def _maybe_fail(self):
        if self.errors:
            err = self.errors.pop(0)
            if err is not None:
                raise err

    def _in_range(self, rows, start, end):
        return [r for r in rows if start <= r.start_time.astimezone(self.tz).date() <= end]

    def get_sites(self):
        self.calls.append(("sites",))
        self._maybe_fail()
        return list(self.sites)

    def get_usage(self, site_id, start_date, end_date):
        self.calls.append(("usage", site_id, start_date, end_date))
        self._maybe_fail()
        return self._in_range(self.usage_rows, start_date, end_date)

    def get_prices(self, site_id, start_date=None, end_date=None, resolution=None):
        self.calls.append(("prices", site_id, start_date, end_date, resolution))
        self._maybe_fail()
        return self._in_range(self.price_rows, start_date, end_date)

    def get_current_prices(self, site_id, previous=None, next=None, resolution=None):
        self.calls.append(("current", site_id, resolution))
        self._maybe_fail()
        return list(self.current_rows)


@pytest.fixture
def tz():
    return SYDNEY


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore(Session(api_key="psk_test", site_id="site-1", auth_token="token"))


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def fake_client() -> FakeAmberClient:
    return FakeAmberClient()
