from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Callable, Dict, List, Optional, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed

from errors import NoSiteId
from models import FEED_IN, GENERAL, DailyStat, DateChunk, DetailPoint, PriceInterval, RangeTotals
from utils import (
    build_daily_stats,
    build_detail_points,
    daily_stat,
    live_stats,
    range_totals,
    usage_frame,
)

log = logging.getLogger(__name__)

DEFAULT_DAYS = 30
MAX_CHUNK_DAYS = 7
DEFAULT_RESOLUTION = 30

LIVE_RANGES: Dict[str, Tuple[str, Optional[int]]] = {
    "6h": ("Last 6 Hours", 6),
    "12h": ("Last 12 Hours", 12),
    "24h": ("Last 24 Hours", 24),
    "today": ("Today", None),
}


@dataclass
class OverviewReport:
    days: List[DailyStat]
    totals: RangeTotals


@dataclass
class DetailReport:
    date: date
    points: List[DetailPoint]
    day: DailyStat


@dataclass
class LiveReport:
    range_key: str
    label: str
    points: List[dict]
    stats: Dict[str, float]
    current_price: Optional[PriceInterval] = None
    updated_at: Optional[datetime] = None


# -------------------------------
# Date windows
# -------------------------------

def chunk_date_range(end_date: date, days: int = DEFAULT_DAYS, chunk_days: int = MAX_CHUNK_DAYS) -> List[DateChunk]:
    """
    Split the ``days`` dates ending on ``end_date`` (inclusive) into
    consecutive chunks of at most ``chunk_days`` dates, oldest first.
    The newest chunk always ends on ``end_date``.
    """
    if days <= 0:
        return []
    if chunk_days <= 0:
        raise ValueError("chunk_days must be positive")
    chunks = []
    offset = 0
    while offset < days:
        chunk_end = end_date - timedelta(days=offset)
        chunk_start = end_date - timedelta(days=min(offset + chunk_days - 1, days - 1))
        chunks.append(DateChunk(start_date=chunk_start, end_date=chunk_end))
        offset += chunk_days
    chunks.reverse()
    return chunks


def window_dates(end_date: date, days: int = DEFAULT_DAYS) -> List[date]:
    return [end_date - timedelta(days=i) for i in range(days - 1, -1, -1)]


# -------------------------------
# Parallel pulls
# -------------------------------

def _run_all(calls: List[Callable[[], list]], max_workers: int) -> List[list]:
    """
    Run independent API calls concurrently and return their results in call
    order. The first failure propagates and the whole batch is abandoned.
    """
    results: List[Optional[list]] = [None] * len(calls)
    with ThreadPoolExecutor(max_workers=min(max_workers, len(calls)) or 1) as ex:
        futs = {ex.submit(call): i for i, call in enumerate(calls)}
        try:
            for fut in as_completed(futs):
                results[futs[fut]] = fut.result()
        except Exception:
            for fut in futs:
                fut.cancel()
            raise
    return results


def fetch_overview(
    client,
    site_id: Optional[str],
    today: date,
    tz,
    days: int = DEFAULT_DAYS,
    chunk_days: int = MAX_CHUNK_DAYS,
    resolution: int = DEFAULT_RESOLUTION,
    max_workers: int = 8,
) -> OverviewReport:
    """Daily stats for the ``days`` dates ending today, plus range totals."""
    if not site_id:
        raise NoSiteId()

    chunks = chunk_date_range(today, days, chunk_days)
    calls: List[Callable[[], list]] = []
    for chunk in chunks:
        calls.append(lambda c=chunk: client.get_usage(site_id, c.start_date, c.end_date))
        calls.append(lambda c=chunk: client.get_prices(site_id, c.start_date, c.end_date, resolution))

    log.info("fetching %d-day overview in %d chunks", days, len(chunks))
    results = _run_all(calls, max_workers)

    usage = [row for res in results[0::2] for row in res]
    prices = [row for res in results[1::2] for row in res]

    stats = build_daily_stats(usage, prices, window_dates(today, days), tz)
    return OverviewReport(days=stats, totals=range_totals(stats))


def fetch_detail(
    client,
    site_id: Optional[str],
    day: date,
    tz,
    resolution: int = DEFAULT_RESOLUTION,
) -> DetailReport:
    """Per-interval usage joined to price for a single date."""
    if not site_id:
        raise NoSiteId()

    log.info("fetching detail for %s", day.isoformat())
    usage, prices = _run_all(
        [
            lambda: client.get_usage(site_id, day, day),
            lambda: client.get_prices(site_id, day, day, resolution),
        ],
        max_workers=2,
    )

    points = build_detail_points(usage, prices, tz)
    # day totals use every returned row, whatever local date it falls on
    general = [u for u in usage if u.channel_type == GENERAL]
    feed_in = [u for u in usage if u.channel_type == FEED_IN]
    general_prices = [p for p in prices if p.channel_type == GENERAL]
    return DetailReport(date=day, points=points, day=daily_stat(day, general, feed_in, general_prices))


def live_window(range_key: str, now: datetime, tz) -> Tuple[datetime, datetime]:
    if range_key not in LIVE_RANGES:
        raise ValueError(f"unknown time range: {range_key}")
    now = now.astimezone(tz)
    hours = LIVE_RANGES[range_key][1]
    if hours is None:
        start = tz.localize(datetime(now.year, now.month, now.day))
    else:
        start = now - timedelta(hours=hours)
    return start, now


def fetch_live(
    client,
    site_id: Optional[str],
    range_key: str,
    now: datetime,
    tz,
    resolution: int = DEFAULT_RESOLUTION,
) -> LiveReport:
    """General-channel usage over a recent window plus the current price."""
    if not site_id:
        raise NoSiteId()

    start, end = live_window(range_key, now, tz)
    log.info("fetching live usage for %s", range_key)
    usage, current = _run_all(
        [
            lambda: client.get_usage(site_id, start.date(), end.date()),
            lambda: client.get_current_prices(site_id, resolution=resolution),
        ],
        max_workers=2,
    )

    in_window = [u for u in usage if u.start_time is not None and start <= u.start_time <= end]
    frame = usage_frame(in_window, tz)
    points = [
        {
            "start_time": row.start_time.isoformat(),
            "time": row.time,
            "usage_kwh": float(row.usage_kwh),
            "cost_cents": float(row.cost_cents),
        }
        for row in frame.itertuples(index=False)
    ]

    general_prices = [p for p in current if p.channel_type == GENERAL]
    current_price = next(
        (p for p in general_prices if p.interval_type == "CurrentInterval"),
        general_prices[0] if general_prices else None,
    )
    return LiveReport(
        range_key=range_key,
        label=LIVE_RANGES[range_key][0],
        points=points,
        stats=live_stats(frame),
        current_price=current_price,
        updated_at=end,
    )
