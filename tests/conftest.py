"""Shared fakes for the finstore tests."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

import pytest

from finstore.providers.base import QuoteSource
from finstore.providers.models import Bar, BarSeries, ChartMeta, RawInstrument

# 1728000000 is a multiple of five days, so bars starting there share a 5d bucket.
T0 = 1_728_000_000
DAY = 86_400


def quote_payload(symbol: str, quote_type: str = "EQUITY", **extra: Any) -> Dict[str, Any]:
    """Return a minimal quote payload as the quote source would decode it."""
    payload: Dict[str, Any] = {
        "symbol": symbol,
        "quoteType": quote_type,
        "currency": "USD",
        "shortName": f"{symbol} Inc.",
        "regularMarketPrice": Decimal("101.25"),
        "bid": Decimal("101.20"),
        "bidSize": 8,
        "exchange": "NMS",
        "fullExchangeName": "NasdaqGS",
        "market": "us_market",
        "tradeable": False,
    }
    payload.update(extra)
    return payload


def raw(symbol: str, instrument_type: str = "equity", **extra: Any) -> RawInstrument:
    return RawInstrument(
        symbol=symbol,
        instrument_type=instrument_type,
        payload=quote_payload(symbol, instrument_type.upper(), **extra),
    )


def chart_meta(symbol: str, granularity: str = "1d") -> ChartMeta:
    return ChartMeta.model_validate(
        {
            "currency": "USD",
            "symbol": symbol,
            "instrumentType": "EQUITY",
            "exchangeName": "NMS",
            "exchangeTimezoneName": "America/New_York",
            "firstTradeDate": 345479400,
            "gmtoffset": -14400,
            "timezone": "EDT",
            "chartPreviousClose": Decimal("99.50"),
            "currentTradingPeriod": {
                "pre": {"timezone": "EDT", "start": 1, "end": 2, "gmtoffset": -14400},
                "regular": {"timezone": "EDT", "start": 2, "end": 3, "gmtoffset": -14400},
                "post": {"timezone": "EDT", "start": 3, "end": 4, "gmtoffset": -14400},
            },
            "dataGranularity": granularity,
        }
    )


def bar(timestamp: int, price: str = "100.00", volume: int = 1000) -> Bar:
    value = Decimal(price)
    return Bar(
        timestamp=timestamp,
        open=value,
        high=value + 1,
        low=value - 1,
        close=value,
        adj_close=value,
        volume=volume,
    )


InstrumentResult = Union[Optional[RawInstrument], Exception]
SeriesResult = Union[Tuple[ChartMeta, List[Bar]], Exception]


class FakeSource(QuoteSource):
    """In-memory quote source recording every call.

    ``instruments`` maps symbols to the raw instrument to return (or an
    exception to raise); ``series`` maps symbols to ``(meta, bars)`` (or
    an exception raised when the series is consumed).
    """

    def __init__(
        self,
        instruments: Optional[Dict[str, InstrumentResult]] = None,
        series: Optional[Dict[str, SeriesResult]] = None,
    ) -> None:
        self.instruments = dict(instruments or {})
        self.series = dict(series or {})
        self.instrument_calls: List[str] = []
        self.bar_calls: List[Tuple[str, str, datetime, datetime]] = []

    def get_instrument(self, symbol: str) -> Optional[RawInstrument]:
        self.instrument_calls.append(symbol)
        result = self.instruments.get(symbol)
        if isinstance(result, Exception):
            raise result
        return result

    def get_bars(self, symbol: str, granularity: str, start: datetime, end: datetime) -> BarSeries:
        self.bar_calls.append((symbol, granularity, start, end))
        result = self.series.get(symbol)

        def fetch() -> Tuple[ChartMeta, List[Bar]]:
            if isinstance(result, Exception):
                raise result
            if result is None:
                return chart_meta(symbol, granularity), []
            return result

        return BarSeries(fetch)


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()
