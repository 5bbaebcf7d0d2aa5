"""Tests for the usage/price aggregation helpers."""

from datetime import date

import pytest

from models import DailyStat
from tests.conftest import local, price, usage
from utils import (
    build_daily_stats,
    build_detail_points,
    group_usage_by_date,
    live_stats,
    range_totals,
    usage_frame,
)

DAY = date(2024, 5, 10)


def test_feed_in_only_counts_as_export(tz) -> None:
    rows = [
        usage(local(2024, 5, 10, 9), 5.0, 100.0),
        usage(local(2024, 5, 10, 12), -2.0, 0.0, channel="feedIn"),
    ]

    [stat] = build_daily_stats(rows, [], [DAY], tz)

    assert stat.date == DAY
    assert stat.total_usage_kwh == 5.0
    assert stat.solar_export_kwh == 2.0
    assert stat.total_cost_cents == 100.0


def test_missing_dates_are_zero_filled(tz) -> None:
    rows = [usage(local(2024, 5, 10, 9), 1.5, 30.0)]
    dates = [date(2024, 5, 9), DAY, date(2024, 5, 11)]

    stats = build_daily_stats(rows, [], dates, tz)

    assert [s.date for s in stats] == dates
    assert stats[0] == DailyStat(date=date(2024, 5, 9))
    assert stats[2] == DailyStat(date=date(2024, 5, 11))
    assert stats[1].total_usage_kwh == 1.5


def test_renewables_average_uses_general_prices_only(tz) -> None:
    prices = [
        price(local(2024, 5, 10, 9), renewables=40.0),
        price(local(2024, 5, 10, 10), renewables=60.0),
        price(local(2024, 5, 10, 9), renewables=0.0, channel="feedIn"),
    ]

    [stat] = build_daily_stats([], prices, [DAY], tz)

    assert stat.avg_renewables_pct == pytest.approx(50.0)


def test_grouping_uses_local_date(tz) -> None:
    # 23:30 local on the 9th is still the 9th even though UTC says otherwise
    late = local(2024, 5, 9, 23, 30)
    early = local(2024, 5, 10, 0, 30)

    grouped = group_usage_by_date([usage(late, 1.0), usage(early, 2.0)], tz)

    assert [u.kwh for u in grouped[date(2024, 5, 9)]["general"]] == [1.0]
    assert [u.kwh for u in grouped[DAY]["general"]] == [2.0]


def test_unknown_channels_are_ignored(tz) -> None:
    rows = [usage(local(2024, 5, 10, 9), 3.0, 10.0, channel="controlledLoad")]

    [stat] = build_daily_stats(rows, [], [DAY], tz)

    assert stat.total_usage_kwh == 0.0


def test_range_totals() -> None:
    stats = [
        DailyStat(date=date(2024, 5, 9), total_usage_kwh=10.0, total_cost_cents=300.0, avg_renewables_pct=20.0),
        DailyStat(date=DAY, total_usage_kwh=5.0, total_cost_cents=150.0, avg_renewables_pct=40.0),
    ]

    totals = range_totals(stats)

    assert totals.total_usage_kwh == 15.0
    assert totals.total_cost_cents == 450.0
    assert totals.avg_price_cents == pytest.approx(30.0)
    assert totals.avg_renewables_pct == pytest.approx(30.0)


def test_avg_price_is_zero_without_usage() -> None:
    totals = range_totals([DailyStat(date=DAY, total_cost_cents=25.0)])

    assert totals.avg_price_cents == 0.0
    assert range_totals([]).avg_price_cents == 0.0


def test_detail_join_falls_back_to_zero(tz) -> None:
    matched = local(2024, 5, 10, 9)
    unmatched = local(2024, 5, 10, 9, 30)
    rows = [usage(matched, 0.4, 8.0), usage(unmatched, 0.6, 12.0), usage(matched, -0.1, channel="feedIn")]
    prices = [
        price(matched, per_kwh=99.0, channel="feedIn"),
        price(matched, per_kwh=20.0, renewables=35.0),
        price(matched, per_kwh=80.0, renewables=1.0),
        price(unmatched, per_kwh=30.0, channel="feedIn"),
    ]

    points = build_detail_points(rows, prices, tz)

    assert [p.time for p in points] == ["09:00", "09:30"]
    assert (points[0].price_cents, points[0].renewables_pct) == (20.0, 35.0)
    assert (points[1].price_cents, points[1].renewables_pct) == (0.0, 0.0)


def test_live_stats_from_sorted_frame(tz) -> None:
    rows = [
        usage(local(2024, 5, 10, 10), 0.3, 9.0),
        usage(local(2024, 5, 10, 9), 0.1, 3.0),
        usage(local(2024, 5, 10, 9, 30), 0.2, 6.0, channel="feedIn"),
    ]

    frame = usage_frame(rows, tz)
    stats = live_stats(frame)

    assert list(frame["time"]) == ["09:00", "10:00"]
    assert stats["current_kwh"] == pytest.approx(0.3)
    assert stats["total_kwh"] == pytest.approx(0.4)
    assert stats["avg_kwh"] == pytest.approx(0.2)
    assert stats["estimated_cost"] == pytest.approx(0.12)


def test_live_stats_empty(tz) -> None:
    assert live_stats(usage_frame([], tz)) == {
        "current_kwh": 0.0,
        "avg_kwh": 0.0,
        "total_kwh": 0.0,
        "estimated_cost": 0.0,
    }
