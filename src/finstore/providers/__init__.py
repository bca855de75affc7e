"""Quote sources.

Sources implement :class:`~finstore.providers.base.QuoteSource` and
return the normalized models defined in :mod:`finstore.providers.models`.
"""

from .base import QuoteSource  # noqa: F401
from .models import Bar, BarSeries, ChartMeta, RawInstrument  # noqa: F401
from .yahoo import YahooQuoteSource  # noqa: F401
