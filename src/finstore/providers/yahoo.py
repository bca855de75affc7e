"""Yahoo Finance quote source implementation.

This module implements the :class:`QuoteSource` interface for the
public Yahoo Finance JSON endpoints.  It supports fetching instrument
metadata (``/v7/finance/quote``) and price bars
(``/v8/finance/chart``).  Responses are normalized into the models
defined in :mod:`finstore.providers.models`.

Environment variables:
    YAHOO_BASE_URL: Base URL for the API (defaults to
        ``https://query1.finance.yahoo.com``).
    YAHOO_TIMEOUT: Request timeout in seconds (defaults to ``10``).

JSON floats are decoded as :class:`~decimal.Decimal`.  Any HTTP,
decoding or API-level error raises
:class:`~finstore.errors.TransportError`; the client never retries.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError

from ..config import DEFAULT_YAHOO_BASE_URL, SOURCE_TYPE_ALIASES
from ..errors import TransportError
from ..granularity import source_interval
from .base import QuoteSource
from .models import Bar, BarSeries, ChartMeta, RawInstrument

logger = logging.getLogger(__name__)

# Yahoo rejects requests without a browser-like user agent.
_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) finstore"


def canonical_type(quote_type: Optional[str]) -> str:
    """Map a raw Yahoo quote type to its canonical instrument type key.

    ``"EQUITY"`` becomes ``"equity"``, ``"CRYPTOCURRENCY"`` becomes
    ``"crypto"`` and ``"CURRENCY"`` becomes ``"forex"``.  Types without a
    canonical key are returned lowercased.
    """
    lowered = (quote_type or "").strip().lower()
    return SOURCE_TYPE_ALIASES.get(lowered, lowered)


class YahooQuoteSource(QuoteSource):
    """Concrete quote source backed by Yahoo Finance."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the source.

        Args:
            base_url: Base URL for the API.  Defaults to the value of
                ``YAHOO_BASE_URL`` or the public endpoint.
            timeout: Request timeout in seconds.  Defaults to the value of
                ``YAHOO_TIMEOUT`` or 10 seconds.
            session: An optional pre-configured ``requests.Session``.
        """
        self.base_url = (
            base_url or os.getenv("YAHOO_BASE_URL") or DEFAULT_YAHOO_BASE_URL
        ).rstrip("/")
        if timeout is None:
            try:
                timeout = float(os.getenv("YAHOO_TIMEOUT", "10"))
            except ValueError:
                timeout = 10.0
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", _USER_AGENT)

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Perform an HTTP GET request and return the decoded JSON.

        Args:
            path: API path relative to the base URL.
            params: Query string parameters.

        Returns:
            A dictionary parsed from the JSON response, floats as decimals.

        Raises:
            TransportError: If the request fails or the response cannot be decoded.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Yahoo request to {path} failed: {exc}") from exc
        # Chart errors come back with a 404 and a JSON body describing them
        if response.status_code >= 400 and response.status_code != 404:
            raise TransportError(
                f"Yahoo request to {path} failed: {response.status_code} {response.text[:200]}"
            )
        try:
            return response.json(parse_float=Decimal)
        except (ValueError, json.JSONDecodeError) as exc:
            raise TransportError(f"Failed to decode Yahoo response from {path}: {exc}") from exc

    def get_instrument(self, symbol: str) -> Optional[RawInstrument]:
        data = self._get("/v7/finance/quote", {"symbols": symbol})
        body = data.get("quoteResponse") or {}
        if body.get("error"):
            raise TransportError(f"Yahoo quote error for {symbol}: {body['error']}")
        results = body.get("result") or []
        if not results:
            logger.debug("Yahoo returned no quote for %s", symbol)
            return None
        payload = results[0]
        return RawInstrument(
            symbol=symbol,
            instrument_type=canonical_type(payload.get("quoteType")),
            payload=payload,
        )

    def get_bars(
        self,
        symbol: str,
        granularity: str,
        start: datetime,
        end: datetime,
    ) -> BarSeries:
        params = {
            "period1": int(start.timestamp()),
            "period2": int(end.timestamp()),
            "interval": source_interval(granularity),
            "includePrePost": "false",
        }

        def fetch() -> Tuple[ChartMeta, List[Bar]]:
            data = self._get(f"/v8/finance/chart/{symbol}", params)
            return self._parse_chart(symbol, data)

        return BarSeries(fetch)

    @staticmethod
    def _parse_chart(symbol: str, data: Dict[str, Any]) -> Tuple[ChartMeta, List[Bar]]:
        """Normalize a chart response into series metadata and bars.

        Bars with a missing open, high, low or close are dropped; Yahoo
        reports trading halts and the still-forming bar that way.
        """
        chart = data.get("chart") or {}
        error = chart.get("error")
        if error:
            description = error.get("description") if isinstance(error, dict) else error
            raise TransportError(f"Yahoo chart error for {symbol}: {description}")
        results = chart.get("result") or []
        if not results:
            raise TransportError(f"Yahoo returned an empty chart for {symbol}")
        result = results[0]
        try:
            meta = ChartMeta.model_validate(result.get("meta") or {})
        except ValidationError as exc:
            raise TransportError(f"Malformed chart metadata for {symbol}: {exc}") from exc

        timestamps = result.get("timestamp") or []
        indicators = result.get("indicators") or {}
        quote = (indicators.get("quote") or [{}])[0]
        adjclose = ((indicators.get("adjclose") or [{}])[0]).get("adjclose") or []

        def column(name: str) -> List[Any]:
            return quote.get(name) or []

        opens, highs, lows, closes, volumes = (
            column("open"),
            column("high"),
            column("low"),
            column("close"),
            column("volume"),
        )
        bars: List[Bar] = []
        for i, ts in enumerate(timestamps):
            values = [_at(col, i) for col in (opens, highs, lows, closes)]
            if any(v is None for v in values):
                continue
            open_, high, low, close = values
            adj = _at(adjclose, i)
            bars.append(
                Bar(
                    timestamp=int(ts),
                    open=open_,
                    high=high,
                    low=low,
                    close=close,
                    adj_close=adj if adj is not None else close,
                    volume=int(_at(volumes, i) or 0),
                )
            )
        return meta, bars


def _at(values: List[Any], index: int) -> Any:
    return values[index] if index < len(values) else None
