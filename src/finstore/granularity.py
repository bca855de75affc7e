"""Granularity keys, lookback windows and rollup views for price series.

A granularity key names the time bucket of a bar series.  Keys up to
``3mo`` are bar intervals understood by the quote source; the remaining
keys (``6mo`` through ``max``) are range keys whose bars are retrieved
at daily resolution over the corresponding range.

Each retrieved bar can contribute to coarser *rollup* views of the same
series.  :func:`derived_views` lists the views a bar of a given native
granularity produces and :func:`floor_timestamp` aligns a bar timestamp
to the start of a view's bucket.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Final, Optional, Tuple

# All requestable granularity keys, in CLI order.
GRANULARITIES: Final[Tuple[str, ...]] = (
    "1m",
    "2m",
    "5m",
    "15m",
    "30m",
    "60m",
    "90m",
    "1h",
    "1d",
    "5d",
    "1mo",
    "3mo",
    "6mo",
    "1y",
    "2y",
    "5y",
    "10y",
    "ytd",
    "max",
)

# Keys the quote source accepts as a bar interval.
INTERVAL_KEYS: Final[frozenset[str]] = frozenset(GRANULARITIES[:12])

# Interval used to retrieve bars for range keys.
RANGE_INTERVAL: Final[str] = "1d"

# Fixed-width buckets in seconds.  ``1wk`` is never requested but the
# source may report it as the native granularity of a series.
_BUCKET_SECONDS: Final[Dict[str, int]] = {
    "1m": 60,
    "2m": 2 * 60,
    "5m": 5 * 60,
    "15m": 15 * 60,
    "30m": 30 * 60,
    "60m": 60 * 60,
    "90m": 90 * 60,
    "1h": 60 * 60,
    "1d": 24 * 60 * 60,
    "5d": 5 * 24 * 60 * 60,
    "1wk": 7 * 24 * 60 * 60,
}

# Calendar buckets in months.
_BUCKET_MONTHS: Final[Dict[str, int]] = {
    "1mo": 1,
    "3mo": 3,
    "6mo": 6,
    "1y": 12,
}

# Next coarser view each native granularity rolls up into.
ROLLUPS: Final[Dict[str, str]] = {
    "1m": "5m",
    "2m": "30m",
    "5m": "15m",
    "15m": "30m",
    "30m": "60m",
    "60m": "1d",
    "90m": "1d",
    "1h": "1d",
    "1d": "5d",
    "5d": "1mo",
    "1wk": "1mo",
    "1mo": "3mo",
    "3mo": "6mo",
}

_INTRADAY_LOOKBACK: Final[timedelta] = timedelta(hours=100)

_LOOKBACKS: Final[Dict[str, timedelta]] = {
    "1d": timedelta(days=100),
    "5d": timedelta(days=500),
    "1mo": timedelta(days=100 * 30),
    "3mo": timedelta(days=100 * 91),
    "6mo": timedelta(days=183),
    "1y": timedelta(days=365),
    "2y": timedelta(days=730),
    "5y": timedelta(days=1826),
    "10y": timedelta(days=3652),
}


def is_granularity(key: str) -> bool:
    """Return True if ``key`` is a requestable granularity."""
    return key in GRANULARITIES


def source_interval(granularity: str) -> str:
    """Return the bar interval used to retrieve ``granularity``."""
    if granularity in INTERVAL_KEYS:
        return granularity
    return RANGE_INTERVAL


def derived_views(native: str) -> Tuple[str, ...]:
    """Return the granularity tags a bar of ``native`` granularity produces.

    The first entry is always the native granularity itself, followed by
    the rollup view (if any).  Unknown granularities produce only their
    native view.
    """
    rollup = ROLLUPS.get(native)
    if rollup is None:
        return (native,)
    return (native, rollup)


def floor_timestamp(timestamp: int, granularity: str) -> int:
    """Align an epoch timestamp to the start of its ``granularity`` bucket.

    Fixed-width buckets are aligned to the Unix epoch.  Calendar buckets
    (months, quarters, half-years, years) are aligned in UTC.  Timestamps
    for granularities without a bucket definition are returned unchanged.
    """
    width = _BUCKET_SECONDS.get(granularity)
    if width is not None:
        return timestamp - timestamp % width
    months = _BUCKET_MONTHS.get(granularity)
    if months is None:
        return timestamp
    dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    month = (dt.month - 1) // months * months + 1
    return int(datetime(dt.year, month, 1, tzinfo=timezone.utc).timestamp())


def lookback_window(
    granularity: str, now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """Return the ``(start, end)`` retrieval window for a granularity.

    Intraday granularities look back 100 hours, coarser ones a bounded
    number of buckets.  ``ytd`` starts at January 1st of the current UTC
    year and ``max`` at the Unix epoch.

    Args:
        granularity: A key from :data:`GRANULARITIES`.
        now: The end of the window.  Defaults to the current UTC time.

    Returns:
        A tuple of timezone-aware datetimes.
    """
    end = now or datetime.now(timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    if granularity == "ytd":
        start = datetime(end.year, 1, 1, tzinfo=timezone.utc)
    elif granularity == "max":
        start = datetime(1970, 1, 1, tzinfo=timezone.utc)
    else:
        start = end - _LOOKBACKS.get(granularity, _INTRADAY_LOOKBACK)
    return start, end


__all__ = [
    "GRANULARITIES",
    "INTERVAL_KEYS",
    "ROLLUPS",
    "is_granularity",
    "source_interval",
    "derived_views",
    "floor_timestamp",
    "lookback_window",
]
