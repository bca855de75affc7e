"""Storage records and converters.

Each instrument type has a pydantic record model whose field names are
the column names of its destination table.  Field aliases match the
keys used by the quote source so that a raw payload can be validated
directly into a record.  :class:`TickRecord` flattens one price bar and
its series metadata.

Records are serialized with :func:`serialize`; the resulting JSON text
is both the value handed to the insertion sink and the fingerprint used
for tick deduplication.
"""

from __future__ import annotations

import typing
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConversionError
from .granularity import floor_timestamp
from .providers.models import Bar, ChartMeta, RawInstrument


class QuoteRecord(BaseModel):
    """Quote-level fields shared by every instrument record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    market_id: Optional[str] = Field(default=None, alias="market")
    market_state: Optional[str] = Field(default=None, alias="marketState")

    symbol: str = Field(alias="symbol")
    type: str = Field(alias="quoteType")
    short_name: Optional[str] = Field(default=None, alias="shortName")
    currency: Optional[str] = Field(default=None, alias="currency")
    is_tradeable: Optional[bool] = Field(default=None, alias="tradeable")

    bid: Optional[Decimal] = Field(default=None, alias="bid")
    bid_size: Optional[int] = Field(default=None, alias="bidSize")
    ask: Optional[Decimal] = Field(default=None, alias="ask")
    ask_size: Optional[int] = Field(default=None, alias="askSize")

    pre_market_price: Optional[Decimal] = Field(default=None, alias="preMarketPrice")
    pre_market_change: Optional[Decimal] = Field(default=None, alias="preMarketChange")
    pre_market_change_percent: Optional[Decimal] = Field(
        default=None, alias="preMarketChangePercent"
    )
    pre_market_time: Optional[int] = Field(default=None, alias="preMarketTime")

    regular_market_change_percent: Optional[Decimal] = Field(
        default=None, alias="regularMarketChangePercent"
    )
    regular_market_previous_close: Optional[Decimal] = Field(
        default=None, alias="regularMarketPreviousClose"
    )
    regular_market_price: Optional[Decimal] = Field(
        default=None, alias="regularMarketPrice"
    )
    regular_market_time: Optional[int] = Field(default=None, alias="regularMarketTime")
    regular_market_change: Optional[Decimal] = Field(
        default=None, alias="regularMarketChange"
    )
    regular_market_day_high: Optional[Decimal] = Field(
        default=None, alias="regularMarketDayHigh"
    )
    regular_market_day_low: Optional[Decimal] = Field(
        default=None, alias="regularMarketDayLow"
    )
    regular_market_volume: Optional[int] = Field(
        default=None, alias="regularMarketVolume"
    )

    post_market_price: Optional[Decimal] = Field(default=None, alias="postMarketPrice")
    post_market_change: Optional[Decimal] = Field(
        default=None, alias="postMarketChange"
    )
    post_market_change_percent: Optional[Decimal] = Field(
        default=None, alias="postMarketChangePercent"
    )
    post_market_time: Optional[int] = Field(default=None, alias="postMarketTime")

    fifty_two_week_low_change: Optional[Decimal] = Field(
        default=None, alias="fiftyTwoWeekLowChange"
    )
    fifty_two_week_low_change_percent: Optional[Decimal] = Field(
        default=None, alias="fiftyTwoWeekLowChangePercent"
    )
    fifty_two_week_high_change: Optional[Decimal] = Field(
        default=None, alias="fiftyTwoWeekHighChange"
    )
    fifty_two_week_high_change_percent: Optional[Decimal] = Field(
        default=None, alias="fiftyTwoWeekHighChangePercent"
    )
    fifty_two_week_low: Optional[Decimal] = Field(default=None, alias="fiftyTwoWeekLow")
    fifty_two_week_high: Optional[Decimal] = Field(
        default=None, alias="fiftyTwoWeekHigh"
    )

    fifty_day_average: Optional[Decimal] = Field(default=None, alias="fiftyDayAverage")
    fifty_day_average_change: Optional[Decimal] = Field(
        default=None, alias="fiftyDayAverageChange"
    )
    fifty_day_average_change_percent: Optional[Decimal] = Field(
        default=None, alias="fiftyDayAverageChangePercent"
    )

    two_hundred_day_average: Optional[Decimal] = Field(
        default=None, alias="twoHundredDayAverage"
    )
    two_hundred_day_average_change: Optional[Decimal] = Field(
        default=None, alias="twoHundredDayAverageChange"
    )
    two_hundred_day_average_change_percent: Optional[Decimal] = Field(
        default=None, alias="twoHundredDayAverageChangePercent"
    )

    average_daily_volume_three_month: Optional[int] = Field(
        default=None, alias="averageDailyVolume3Month"
    )
    average_daily_volume_ten_day: Optional[int] = Field(
        default=None, alias="averageDailyVolume10Day"
    )

    source_name: Optional[str] = Field(default=None, alias="quoteSourceName")
    source_delay: Optional[int] = Field(default=None, alias="exchangeDataDelayedBy")
    source_interval: Optional[int] = Field(default=None, alias="sourceInterval")

    exchange_id: Optional[str] = Field(default=None, alias="exchange")
    exchange_name: Optional[str] = Field(default=None, alias="fullExchangeName")
    exchange_timezone_name: Optional[str] = Field(
        default=None, alias="exchangeTimezoneName"
    )
    exchange_timezone_code: Optional[str] = Field(
        default=None, alias="exchangeTimezoneShortName"
    )

    gmt_offset_millisecond: Optional[int] = Field(
        default=None, alias="gmtOffSetMilliseconds"
    )


class EquityRecord(QuoteRecord):
    long_name: Optional[str] = Field(default=None, alias="longName")
    market_cap: Optional[int] = Field(default=None, alias="marketCap")

    earnings_timestamp: Optional[int] = Field(default=None, alias="earningsTimestamp")
    earnings_timestamp_start: Optional[int] = Field(
        default=None, alias="earningsTimestampStart"
    )
    earnings_timestamp_end: Optional[int] = Field(
        default=None, alias="earningsTimestampEnd"
    )

    trailing_twelve_months_earnings_per_share: Optional[Decimal] = Field(
        default=None, alias="epsTrailingTwelveMonths"
    )
    trailing_annual_dividend_rate: Optional[Decimal] = Field(
        default=None, alias="trailingAnnualDividendRate"
    )
    trailing_annual_dividend_yield: Optional[Decimal] = Field(
        default=None, alias="trailingAnnualDividendYield"
    )
    trailing_price_to_earnings: Optional[Decimal] = Field(
        default=None, alias="trailingPE"
    )

    forward_earnings_per_share: Optional[Decimal] = Field(
        default=None, alias="epsForward"
    )
    forward_price_to_earnings: Optional[Decimal] = Field(
        default=None, alias="forwardPE"
    )

    dividend_date: Optional[int] = Field(default=None, alias="dividendDate")
    book_value: Optional[Decimal] = Field(default=None, alias="bookValue")
    price_to_book: Optional[Decimal] = Field(default=None, alias="priceToBook")

    shares_outstanding: Optional[int] = Field(default=None, alias="sharesOutstanding")


class ETFRecord(QuoteRecord):
    ytd_return: Optional[Decimal] = Field(default=None, alias="ytdReturn")
    trailing_three_month_returns: Optional[Decimal] = Field(
        default=None, alias="trailingThreeMonthReturns"
    )
    trailing_three_month_nav_returns: Optional[Decimal] = Field(
        default=None, alias="trailingThreeMonthNavReturns"
    )


class MutualFundRecord(ETFRecord):
    """Mutual funds report the same return fields as ETFs."""


class CryptoRecord(QuoteRecord):
    algorithm: Optional[str] = Field(default=None, alias="algorithm")
    start_date: Optional[int] = Field(default=None, alias="startDate")
    max_supply: Optional[Decimal] = Field(default=None, alias="maxSupply")
    circulating_supply: Optional[Decimal] = Field(
        default=None, alias="circulatingSupply"
    )
    volume_last_day: Optional[Decimal] = Field(default=None, alias="volume24Hr")
    volume_all_currencies: Optional[Decimal] = Field(
        default=None, alias="volumeAllCurrencies"
    )


class ForexRecord(QuoteRecord):
    pass


class IndexRecord(QuoteRecord):
    pass


class FutureRecord(QuoteRecord):
    underlying_symbol: Optional[str] = Field(default=None, alias="underlyingSymbol")
    open_interest: Optional[int] = Field(default=None, alias="openInterest")
    expire_date: Optional[int] = Field(default=None, alias="expireDate")
    strike: Optional[Decimal] = Field(default=None, alias="strike")
    underlying_exchange_symbol: Optional[str] = Field(
        default=None, alias="underlyingExchangeSymbol"
    )
    head_symbol_as_string: Optional[str] = Field(
        default=None, alias="headSymbolAsString"
    )
    is_contract_symbol: Optional[bool] = Field(default=None, alias="contractSymbol")


class OptionRecord(QuoteRecord):
    underlying_symbol: Optional[str] = Field(default=None, alias="underlyingSymbol")
    underlying_exchange_symbol: Optional[str] = Field(
        default=None, alias="underlyingExchangeSymbol"
    )
    open_interest: Optional[int] = Field(default=None, alias="openInterest")
    expire_date: Optional[int] = Field(default=None, alias="expireDate")
    strike: Optional[Decimal] = Field(default=None, alias="strike")


# Record model per canonical instrument type key.
INSTRUMENT_RECORDS: Dict[str, Type[QuoteRecord]] = {
    "crypto": CryptoRecord,
    "equity": EquityRecord,
    "etf": ETFRecord,
    "forex": ForexRecord,
    "future": FutureRecord,
    "index": IndexRecord,
    "mutualfund": MutualFundRecord,
    "option": OptionRecord,
}

Converter = Callable[[RawInstrument], QuoteRecord]


def converter_for(model: Type[QuoteRecord]) -> Converter:
    """Return a converter validating raw payloads into ``model``.

    The converter raises :class:`~finstore.errors.ConversionError` when
    the payload is missing required fields or carries values of the
    wrong type.
    """

    def convert(raw: RawInstrument) -> QuoteRecord:
        try:
            return model.model_validate(raw.payload)
        except ValidationError as exc:
            raise ConversionError(
                f"Cannot convert {raw.symbol} into {model.__name__}: "
                f"{exc.error_count()} invalid field(s)"
            ) from exc

    return convert


class TickRecord(BaseModel):
    """Storage representation of one bar at one granularity view.

    The ``granularity`` tag names the view this record belongs to; it
    equals the series' native granularity for the bar itself and the
    rollup granularity for derived views.
    """

    inserted_at: datetime

    open: Decimal
    low: Decimal
    high: Decimal
    close: Decimal
    adj_close: Decimal
    prv_close: Optional[Decimal] = None
    volume: int
    timestamp: int
    currency: Optional[str] = None
    symbol: str
    type: Optional[str] = None

    first_trade_day: Optional[int] = None
    gmt_offset: Optional[int] = None
    timezone: Optional[str] = None
    exchange_name: Optional[str] = None
    exchange_timezone: Optional[str] = None

    pre_timezone: Optional[str] = None
    pre_start: Optional[int] = None
    pre_end: Optional[int] = None
    pre_gmt_offset: Optional[int] = None

    regular_timezone: Optional[str] = None
    regular_start: Optional[int] = None
    regular_end: Optional[int] = None
    regular_gmt_offset: Optional[int] = None

    post_timezone: Optional[str] = None
    post_start: Optional[int] = None
    post_end: Optional[int] = None
    post_gmt_offset: Optional[int] = None

    granularity: str

    @classmethod
    def from_bar(cls, bar: Bar, meta: ChartMeta, inserted_at: datetime) -> "TickRecord":
        """Flatten a bar and its series metadata at the native granularity."""
        period = meta.current_trading_period
        return cls(
            inserted_at=inserted_at,
            open=bar.open,
            low=bar.low,
            high=bar.high,
            close=bar.close,
            adj_close=bar.adj_close,
            prv_close=meta.chart_previous_close,
            volume=bar.volume,
            timestamp=bar.timestamp,
            currency=meta.currency,
            symbol=meta.symbol,
            type=meta.instrument_type,
            first_trade_day=meta.first_trade_date,
            gmt_offset=meta.gmtoffset,
            timezone=meta.timezone,
            exchange_name=meta.exchange_name,
            exchange_timezone=meta.exchange_timezone_name,
            pre_timezone=period.pre.timezone,
            pre_start=period.pre.start,
            pre_end=period.pre.end,
            pre_gmt_offset=period.pre.gmtoffset,
            regular_timezone=period.regular.timezone,
            regular_start=period.regular.start,
            regular_end=period.regular.end,
            regular_gmt_offset=period.regular.gmtoffset,
            post_timezone=period.post.timezone,
            post_start=period.post.start,
            post_end=period.post.end,
            post_gmt_offset=period.post.gmtoffset,
            granularity=meta.data_granularity,
        )

    def as_view(self, granularity: str) -> "TickRecord":
        """Return this bar tagged with ``granularity`` and aligned to its bucket."""
        if granularity == self.granularity:
            return self
        return self.model_copy(
            update={
                "granularity": granularity,
                "timestamp": floor_timestamp(self.timestamp, granularity),
            }
        )


def serialize(record: BaseModel) -> str:
    """Serialize a record to the JSON text handed to the insertion sink."""
    return record.model_dump_json()


def _python_type(annotation: object) -> Optional[type]:
    # Optional[X] -> X
    args = [a for a in typing.get_args(annotation) if a is not type(None)]
    if args:
        annotation = args[0]
    return annotation if isinstance(annotation, type) else None


def column_python_types() -> Dict[str, type]:
    """Return the Python type of every column across all record models.

    Column names are shared between models (``bid`` is a decimal in every
    instrument table), so a single mapping serves all destinations.
    """
    types: Dict[str, type] = {}
    for model in (*INSTRUMENT_RECORDS.values(), TickRecord):
        for name, info in model.model_fields.items():
            py_type = _python_type(info.annotation)
            if py_type is not None:
                types.setdefault(name, py_type)
    return types


__all__ = [
    "QuoteRecord",
    "EquityRecord",
    "ETFRecord",
    "MutualFundRecord",
    "CryptoRecord",
    "ForexRecord",
    "IndexRecord",
    "FutureRecord",
    "OptionRecord",
    "INSTRUMENT_RECORDS",
    "converter_for",
    "TickRecord",
    "serialize",
    "column_python_types",
]
