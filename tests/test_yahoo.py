"""Tests for the Yahoo Finance quote source.

These tests mock out HTTP requests to verify that the source parses
quote and chart responses, normalizes instrument types and maps every
failure onto :class:`TransportError`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple

import pytest
import requests

from finstore.errors import TransportError
from finstore.providers.yahoo import YahooQuoteSource, canonical_type


class DummyResponse:
    """A simple stand-in for ``requests.Response``."""

    def __init__(self, body: str, status_code: int = 200) -> None:
        self.text = body
        self.status_code = status_code

    def json(self, **kwargs: Any) -> Any:
        return json.loads(self.text, **kwargs)


class DummySession:
    """Records requests and replays canned responses in order."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.headers: Dict[str, str] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def get(self, url: str, params: Dict[str, Any], timeout: float) -> DummyResponse:
        self.calls.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_source(monkeypatch, responses: List[Tuple[str, Dict[str, Any]]]) -> YahooQuoteSource:
    """Create a source whose ``_get`` returns canned JSON per path."""
    source = YahooQuoteSource(base_url="http://yahoo.test")
    calls = list(responses)

    def fake_get(path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        resp_path, data = calls.pop(0)
        assert path == resp_path
        return data

    monkeypatch.setattr(source, "_get", fake_get)
    return source


CHART = {
    "chart": {
        "result": [
            {
                "meta": {
                    "currency": "USD",
                    "symbol": "XYZ",
                    "instrumentType": "EQUITY",
                    "exchangeName": "NMS",
                    "chartPreviousClose": Decimal("99.5"),
                    "dataGranularity": "1d",
                    "currentTradingPeriod": {
                        "regular": {"timezone": "EDT", "start": 10, "end": 20, "gmtoffset": -14400}
                    },
                },
                "timestamp": [100, 200, 300],
                "indicators": {
                    "quote": [
                        {
                            "open": [Decimal("1.1"), None, Decimal("3.3")],
                            "high": [Decimal("1.2"), Decimal("2.2"), Decimal("3.4")],
                            "low": [Decimal("1.0"), Decimal("2.0"), Decimal("3.2")],
                            "close": [Decimal("1.15"), Decimal("2.1"), Decimal("3.35")],
                            "volume": [10, 20, None],
                        }
                    ],
                    "adjclose": [{"adjclose": [Decimal("1.14")]}],
                },
            }
        ],
        "error": None,
    }
}


def test_canonical_type() -> None:
    assert canonical_type("EQUITY") == "equity"
    assert canonical_type("CRYPTOCURRENCY") == "crypto"
    assert canonical_type("CURRENCY") == "forex"
    assert canonical_type("ECNQUOTE") == "ecnquote"
    assert canonical_type(None) == ""


def test_get_instrument(monkeypatch) -> None:
    payload = {"symbol": "SPY", "quoteType": "ETF", "regularMarketPrice": Decimal("550.12")}
    source = make_source(
        monkeypatch,
        [("/v7/finance/quote", {"quoteResponse": {"result": [payload], "error": None}})],
    )
    instrument = source.get_instrument("SPY")
    assert instrument is not None
    assert instrument.symbol == "SPY"
    assert instrument.instrument_type == "etf"
    assert instrument.payload["regularMarketPrice"] == Decimal("550.12")


def test_get_instrument_empty_result(monkeypatch) -> None:
    source = make_source(
        monkeypatch, [("/v7/finance/quote", {"quoteResponse": {"result": [], "error": None}})]
    )
    assert source.get_instrument("NOPE") is None


def test_get_instrument_api_error(monkeypatch) -> None:
    source = make_source(
        monkeypatch,
        [("/v7/finance/quote", {"quoteResponse": {"result": None, "error": "Unauthorized"}})],
    )
    with pytest.raises(TransportError):
        source.get_instrument("AAA")


def test_get_bars_parses_chart(monkeypatch) -> None:
    source = make_source(monkeypatch, [("/v8/finance/chart/XYZ", CHART)])
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    end = datetime(2024, 2, 1, tzinfo=timezone.utc)
    series = source.get_bars("XYZ", "1d", start, end)
    bars = list(series)
    # The bar with a missing open is dropped
    assert [b.timestamp for b in bars] == [100, 300]
    assert bars[0].open == Decimal("1.1")
    assert bars[0].adj_close == Decimal("1.14")
    # No adjusted close: falls back to close
    assert bars[1].adj_close == Decimal("3.35")
    assert bars[1].volume == 0
    assert series.meta is not None
    assert series.meta.data_granularity == "1d"
    assert series.meta.current_trading_period.regular.start == 10


def test_bar_series_is_lazy_and_single_use(monkeypatch) -> None:
    source = make_source(monkeypatch, [("/v8/finance/chart/XYZ", CHART)])
    now = datetime(2024, 2, 1, tzinfo=timezone.utc)
    series = source.get_bars("XYZ", "1d", now, now)
    assert series.meta is None
    list(series)
    with pytest.raises(RuntimeError):
        list(series)


def test_get_bars_chart_error(monkeypatch) -> None:
    error = {"chart": {"result": None, "error": {"code": "Not Found", "description": "No data found"}}}
    source = make_source(monkeypatch, [("/v8/finance/chart/NOPE", error)])
    now = datetime(2024, 2, 1, tzinfo=timezone.utc)
    with pytest.raises(TransportError) as excinfo:
        list(source.get_bars("NOPE", "1d", now, now))
    assert "No data found" in str(excinfo.value)


def test_get_bars_request_params() -> None:
    session = DummySession([DummyResponse(json.dumps(CHART, default=str))])
    source = YahooQuoteSource(base_url="http://yahoo.test/", session=session)
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    end = datetime(2024, 1, 2, tzinfo=timezone.utc)
    list(source.get_bars("XYZ", "1y", start, end))
    url, params = session.calls[0]
    assert url == "http://yahoo.test/v8/finance/chart/XYZ"
    assert params["interval"] == "1d"
    assert params["period1"] == int(start.timestamp())
    assert params["period2"] == int(end.timestamp())
    assert "User-Agent" in session.headers


def test_get_decodes_floats_as_decimal() -> None:
    body = '{"quoteResponse": {"result": [{"symbol": "AAA", "quoteType": "EQUITY", "bid": 0.1}]}}'
    source = YahooQuoteSource(base_url="http://yahoo.test", session=DummySession([DummyResponse(body)]))
    instrument = source.get_instrument("AAA")
    assert instrument.payload["bid"] == Decimal("0.1")


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("boom"),
        DummyResponse("rate limited", status_code=429),
        DummyResponse("<html>", status_code=200),
    ],
)
def test_get_failures_raise_transport_error(response) -> None:
    source = YahooQuoteSource(base_url="http://yahoo.test", session=DummySession([response]))
    with pytest.raises(TransportError):
        source.get_instrument("AAA")


def test_timeout_from_env(monkeypatch) -> None:
    monkeypatch.setenv("YAHOO_TIMEOUT", "3.5")
    monkeypatch.setenv("YAHOO_BASE_URL", "http://env.test")
    source = YahooQuoteSource(session=DummySession([]))
    assert source.timeout == 3.5
    assert source.base_url == "http://env.test"
