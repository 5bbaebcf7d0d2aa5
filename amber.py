import logging
import math
import time
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, Any, List, Mapping, Union
from urllib.parse import urljoin

import requests

from errors import ApiError, InvalidCredential, MissingCredential, RateLimited
from models import PriceInterval, Site, UsageInterval

log = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_WAIT = 60

DateLike = Union[date, str]


def _fmt_date(val: DateLike) -> str:
    if isinstance(val, (date, datetime)):
        return val.strftime("%Y-%m-%d")
    return val


def rate_limit_wait(headers: Mapping[str, str], now: Optional[float] = None) -> int:
    """
    Seconds to wait after a 429.

    Retry-After wins (delta seconds, truncated when fractional, or an HTTP
    date), then X-RateLimit-Reset (absolute Unix time), then a 60 second
    default. A Retry-After that parses as neither falls through to
    X-RateLimit-Reset. Never less than 1.
    """
    if now is None:
        now = time.time()
    wait = None

    retry_after = headers.get("Retry-After")
    reset = headers.get("X-RateLimit-Reset")
    if retry_after:
        try:
            wait = int(float(retry_after.strip()))
        except (ValueError, OverflowError):
            try:
                retry_at = parsedate_to_datetime(retry_after)
                if retry_at.tzinfo is None:
                    retry_at = retry_at.replace(tzinfo=timezone.utc)
                wait = math.ceil(retry_at.timestamp() - now)
            except (TypeError, ValueError):
                wait = None
    if wait is None and reset:
        try:
            wait = math.ceil(float(reset) - now)
        except (ValueError, OverflowError):
            wait = None

    if wait is None:
        wait = DEFAULT_RATE_LIMIT_WAIT
    return max(wait, 1)


class AmberClient:
    def __init__(self, base_url: str, store, timeout: float = 30, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.store = store
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        # read per call so a logout takes effect immediately
        api_key = self.store.get_api_key()
        if not api_key:
            raise MissingCredential()

        url = urljoin(self.base_url, path.lstrip('/'))
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        try:
            r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("GET %s failed: %s", path, e)
            raise ApiError(None, str(e)) from e

        if r.status_code == 401:
            raise InvalidCredential()
        if r.status_code == 429:
            wait = rate_limit_wait(r.headers)
            log.warning("rate limited on %s, retry in %ss", path, wait)
            raise RateLimited(wait)
        if not r.ok:
            raise ApiError(r.status_code, r.reason or "")
        return r.json()

    def get_sites(self) -> List[Site]:
        return [Site.from_api(row) for row in self._get("sites") or []]

    def get_usage(self, site_id: str, start_date: DateLike, end_date: DateLike) -> List[UsageInterval]:
        params = {"startDate": _fmt_date(start_date), "endDate": _fmt_date(end_date)}
        rows = self._get(f"sites/{site_id}/usage", params=params) or []
        return [UsageInterval.from_api(row) for row in rows]

    def get_prices(
        self,
        site_id: str,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        resolution: Optional[int] = None,
    ) -> List[PriceInterval]:
        params: Dict[str, Any] = {}
        if start_date:
            params["startDate"] = _fmt_date(start_date)
        if end_date:
            params["endDate"] = _fmt_date(end_date)
        if resolution:
            params["resolution"] = resolution
        rows = self._get(f"sites/{site_id}/prices", params=params) or []
        return [PriceInterval.from_api(row) for row in rows]

    def get_current_prices(
        self,
        site_id: str,
        previous: Optional[int] = None,
        next: Optional[int] = None,
        resolution: Optional[int] = None,
    ) -> List[PriceInterval]:
        params: Dict[str, Any] = {}
        if next:
            params["next"] = next
        if previous:
            params["previous"] = previous
        if resolution:
            params["resolution"] = resolution
        rows = self._get(f"sites/{site_id}/prices/current", params=params) or []
        return [PriceInterval.from_api(row) for row in rows]
