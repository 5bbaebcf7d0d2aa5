from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from models import (
    FEED_IN,
    GENERAL,
    DailyStat,
    DetailPoint,
    PriceInterval,
    RangeTotals,
    UsageInterval,
)


def local_date(ts: datetime, tz) -> date:
    return ts.astimezone(tz).date()


def group_usage_by_date(usage: Iterable[UsageInterval], tz) -> Dict[date, Dict[str, List[UsageInterval]]]:
    """Bucket usage rows by local calendar date, then by channel (general / feedIn)."""
    buckets: Dict[date, Dict[str, List[UsageInterval]]] = defaultdict(lambda: {GENERAL: [], FEED_IN: []})
    for it in usage:
        if it.start_time is None or it.channel_type not in (GENERAL, FEED_IN):
            continue
        buckets[local_date(it.start_time, tz)][it.channel_type].append(it)
    return dict(buckets)


def group_prices_by_date(prices: Iterable[PriceInterval], tz) -> Dict[date, List[PriceInterval]]:
    """Bucket general-channel price rows by local calendar date."""
    buckets: Dict[date, List[PriceInterval]] = defaultdict(list)
    for p in prices:
        if p.start_time is None or p.channel_type != GENERAL:
            continue
        buckets[local_date(p.start_time, tz)].append(p)
    return dict(buckets)


def daily_stat(
    day: date,
    general: Sequence[UsageInterval],
    feed_in: Sequence[UsageInterval],
    prices: Sequence[PriceInterval],
) -> DailyStat:
    # feedIn never counts towards consumption or cost
    renewables = sum(p.renewables for p in prices) / len(prices) if prices else 0.0
    return DailyStat(
        date=day,
        total_usage_kwh=sum(u.kwh for u in general),
        solar_export_kwh=abs(sum(u.kwh for u in feed_in)),
        total_cost_cents=sum(u.cost for u in general),
        avg_renewables_pct=renewables,
    )


def build_daily_stats(
    usage: Iterable[UsageInterval],
    prices: Iterable[PriceInterval],
    dates: Sequence[date],
    tz,
) -> List[DailyStat]:
    """One entry per requested date, in the given order; empty dates are zero-filled."""
    usage_by_date = group_usage_by_date(usage, tz)
    prices_by_date = group_prices_by_date(prices, tz)
    stats = []
    for day in dates:
        day_usage = usage_by_date.get(day, {GENERAL: [], FEED_IN: []})
        stats.append(
            daily_stat(day, day_usage[GENERAL], day_usage[FEED_IN], prices_by_date.get(day, []))
        )
    return stats


def range_totals(stats: Sequence[DailyStat]) -> RangeTotals:
    if not stats:
        return RangeTotals()
    total_usage = sum(d.total_usage_kwh for d in stats)
    total_cost = sum(d.total_cost_cents for d in stats)
    return RangeTotals(
        total_usage_kwh=total_usage,
        total_cost_cents=total_cost,
        avg_price_cents=total_cost / total_usage if total_usage > 0 else 0.0,
        avg_renewables_pct=sum(d.avg_renewables_pct for d in stats) / len(stats),
    )


def build_detail_points(
    usage: Iterable[UsageInterval],
    prices: Sequence[PriceInterval],
    tz,
) -> List[DetailPoint]:
    """Join each general usage interval to the general price interval starting at the same time."""
    price_at: Dict[datetime, PriceInterval] = {}
    for p in prices:
        if p.channel_type == GENERAL and p.start_time is not None:
            # first match wins
            price_at.setdefault(p.start_time, p)

    points = []
    for u in usage:
        if u.channel_type != GENERAL or u.start_time is None:
            continue
        match = price_at.get(u.start_time)
        points.append(
            DetailPoint(
                start_time=u.start_time,
                time=u.start_time.astimezone(tz).strftime("%H:%M"),
                usage_kwh=u.kwh,
                cost_cents=u.cost,
                price_cents=match.per_kwh if match else 0.0,
                renewables_pct=match.renewables if match else 0.0,
            )
        )
    return points


def usage_frame(usage: Iterable[UsageInterval], tz) -> pd.DataFrame:
    """General-channel usage as a time-sorted frame with local ``time`` labels."""
    rows = [
        {"start_time": u.start_time, "usage_kwh": u.kwh, "cost_cents": u.cost}
        for u in usage
        if u.channel_type == GENERAL and u.start_time is not None
    ]
    if not rows:
        return pd.DataFrame(columns=["start_time", "time", "usage_kwh", "cost_cents"])
    df = pd.DataFrame(rows).sort_values("start_time", kind="stable").reset_index(drop=True)
    df["time"] = [ts.astimezone(tz).strftime("%H:%M") for ts in df["start_time"]]
    return df[["start_time", "time", "usage_kwh", "cost_cents"]]


def live_stats(frame: pd.DataFrame) -> Dict[str, float]:
    """Current/average/total usage and estimated cost (dollars) for a sorted usage frame."""
    if frame.empty:
        return {"current_kwh": 0.0, "avg_kwh": 0.0, "total_kwh": 0.0, "estimated_cost": 0.0}
    total = float(frame["usage_kwh"].sum())
    return {
        "current_kwh": float(frame["usage_kwh"].iloc[-1]),
        "avg_kwh": total / len(frame),
        "total_kwh": total,
        "estimated_cost": float(frame["cost_cents"].sum()) / 100,
    }
