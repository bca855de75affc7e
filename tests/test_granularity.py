"""Tests for granularity keys, rollup views and lookback windows."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from finstore.granularity import (
    GRANULARITIES,
    INTERVAL_KEYS,
    derived_views,
    floor_timestamp,
    is_granularity,
    lookback_window,
    source_interval,
)


def test_granularity_keys() -> None:
    assert len(GRANULARITIES) == 19
    assert GRANULARITIES[0] == "1m"
    assert GRANULARITIES[-1] == "max"
    assert "3mo" in INTERVAL_KEYS
    assert "6mo" not in INTERVAL_KEYS
    assert is_granularity("1h")
    assert not is_granularity("1wk")


def test_range_keys_are_retrieved_daily() -> None:
    assert source_interval("15m") == "15m"
    assert source_interval("1y") == "1d"
    assert source_interval("max") == "1d"


def test_derived_views_start_with_native() -> None:
    assert derived_views("1d") == ("1d", "5d")
    assert derived_views("1m") == ("1m", "5m")
    assert derived_views("1wk") == ("1wk", "1mo")
    # Coarsest granularities have no rollup
    assert derived_views("6mo") == ("6mo",)
    assert derived_views("unknown") == ("unknown",)


def test_floor_timestamp_fixed_width() -> None:
    ts = 1_728_000_000 + 3 * 86_400 + 5_000
    assert floor_timestamp(ts, "5d") == 1_728_000_000
    assert floor_timestamp(ts, "1d") == 1_728_000_000 + 3 * 86_400
    assert floor_timestamp(125, "1m") == 120


def test_floor_timestamp_calendar() -> None:
    ts = int(datetime(2024, 8, 17, 15, 30, tzinfo=timezone.utc).timestamp())
    assert floor_timestamp(ts, "1mo") == int(datetime(2024, 8, 1, tzinfo=timezone.utc).timestamp())
    assert floor_timestamp(ts, "3mo") == int(datetime(2024, 7, 1, tzinfo=timezone.utc).timestamp())
    assert floor_timestamp(ts, "6mo") == int(datetime(2024, 7, 1, tzinfo=timezone.utc).timestamp())
    assert floor_timestamp(ts, "1y") == int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp())
    # No bucket definition: unchanged
    assert floor_timestamp(ts, "max") == ts


def test_lookback_window() -> None:
    now = datetime(2024, 8, 17, 12, 0, tzinfo=timezone.utc)
    start, end = lookback_window("15m", now)
    assert end == now
    assert end - start == timedelta(hours=100)
    start, _ = lookback_window("1d", now)
    assert now - start == timedelta(days=100)
    start, _ = lookback_window("ytd", now)
    assert start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    start, _ = lookback_window("max", now)
    assert start == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_lookback_window_naive_now_is_utc() -> None:
    start, end = lookback_window("1h", datetime(2024, 1, 5))
    assert end.tzinfo is timezone.utc
    assert start < end
