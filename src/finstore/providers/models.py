"""Pydantic models for normalized quote source outputs.

These classes define the canonical representation of retrieved
instruments, price bars and bar series metadata.  Prices are carried as
:class:`~decimal.Decimal` values end to end; the quote source client
parses JSON floats directly into decimals so no binary rounding is
introduced between the wire and the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..errors import TransportError


@dataclass(frozen=True)
class RawInstrument:
    """An instrument payload as returned by the quote source.

    Attributes:
        symbol: The symbol that was requested.
        instrument_type: The canonical lowercase type reported by the
            source (e.g. ``"equity"``, ``"etf"``).  Types without a
            canonical key are passed through lowercased.
        payload: The decoded JSON object with floats parsed as decimals.
    """

    symbol: str
    instrument_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


class TradingPeriod(BaseModel):
    """Boundaries of one trading session (pre, regular or post market)."""

    model_config = ConfigDict(populate_by_name=True)

    timezone: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    gmtoffset: Optional[int] = None


class CurrentTradingPeriod(BaseModel):
    pre: TradingPeriod = Field(default_factory=TradingPeriod)
    regular: TradingPeriod = Field(default_factory=TradingPeriod)
    post: TradingPeriod = Field(default_factory=TradingPeriod)


class ChartMeta(BaseModel):
    """Series-level metadata shared by every bar of a chart response.

    Attributes:
        currency: Currency the prices are quoted in.
        symbol: The instrument symbol.
        instrument_type: The raw instrument type reported by the source.
        exchange_name: Short exchange name.
        exchange_timezone_name: IANA timezone of the exchange.
        first_trade_date: Epoch seconds of the first available trade.
        gmtoffset: Exchange offset from GMT in seconds.
        timezone: Exchange timezone abbreviation.
        chart_previous_close: Close preceding the first bar of the series.
        current_trading_period: Pre, regular and post session boundaries.
        data_granularity: The native granularity of the returned bars.
        valid_ranges: Ranges the source supports for this symbol.
    """

    model_config = ConfigDict(populate_by_name=True)

    currency: Optional[str] = None
    symbol: str
    instrument_type: Optional[str] = Field(default=None, alias="instrumentType")
    exchange_name: Optional[str] = Field(default=None, alias="exchangeName")
    exchange_timezone_name: Optional[str] = Field(
        default=None, alias="exchangeTimezoneName"
    )
    first_trade_date: Optional[int] = Field(default=None, alias="firstTradeDate")
    gmtoffset: Optional[int] = None
    timezone: Optional[str] = None
    chart_previous_close: Optional[Decimal] = Field(
        default=None, alias="chartPreviousClose"
    )
    current_trading_period: CurrentTradingPeriod = Field(
        default_factory=CurrentTradingPeriod, alias="currentTradingPeriod"
    )
    data_granularity: str = Field(alias="dataGranularity")
    valid_ranges: List[str] = Field(default_factory=list, alias="validRanges")


class Bar(BaseModel):
    """A single OHLCV price bar.

    Attributes:
        timestamp: Start of the bar as integer epoch seconds.
        open: The opening price.
        high: The highest price.
        low: The lowest price.
        close: The closing price.
        adj_close: The close adjusted for splits and dividends.  Equal to
            ``close`` when the source does not provide adjustments.
        volume: The traded volume.
    """

    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    adj_close: Decimal
    volume: int = 0


class BarSeries:
    """A lazy, finite, non-restartable sequence of bars.

    Nothing is retrieved until iteration starts.  The ``fetch`` callable
    is invoked once and must return the series metadata together with
    the bars; a :class:`~finstore.errors.TransportError` raised by it is
    the series' terminal error and propagates out of the iteration.
    :attr:`meta` becomes available once the first bar has been produced.
    """

    def __init__(self, fetch: Callable[[], Tuple[ChartMeta, List[Bar]]]) -> None:
        self._fetch = fetch
        self._consumed = False
        self.meta: Optional[ChartMeta] = None

    def __iter__(self) -> Iterator[Bar]:
        if self._consumed:
            raise RuntimeError("Bar series can only be iterated once")
        self._consumed = True
        return self._iterate()

    def _iterate(self) -> Iterator[Bar]:
        meta, bars = self._fetch()
        self.meta = meta
        for bar in bars:
            yield bar

    @classmethod
    def failed(cls, error: TransportError) -> "BarSeries":
        """Return a series whose iteration raises ``error`` immediately."""

        def _raise() -> Tuple[ChartMeta, List[Bar]]:
            raise error

        return cls(_raise)
