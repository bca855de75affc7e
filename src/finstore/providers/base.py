"""Abstract base class for quote sources.

This module defines the interface that all quote sources must implement.
Sources return normalized data structures defined in
:mod:`finstore.providers.models`.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Optional

from .models import BarSeries, RawInstrument


class QuoteSource(abc.ABC):
    """Interface for instrument metadata and price history sources."""

    @abc.abstractmethod
    def get_instrument(self, symbol: str) -> Optional[RawInstrument]:
        """Fetch the instrument metadata for a single symbol.

        Args:
            symbol: The ticker symbol as known to the source.

        Returns:
            The raw instrument, or ``None`` if the source returned no
            data for the symbol.

        Raises:
            TransportError: If the source could not be reached or its
                response could not be decoded.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_bars(
        self,
        symbol: str,
        granularity: str,
        start: datetime,
        end: datetime,
    ) -> BarSeries:
        """Return the price bars of a symbol over a time window.

        Args:
            symbol: The ticker symbol.
            granularity: A granularity key such as ``"1d"`` or ``"ytd"``.
            start: Start of the window (inclusive).
            end: End of the window.

        Returns:
            A lazy :class:`BarSeries`.  Retrieval happens on iteration and
            a :class:`~finstore.errors.TransportError` is raised from the
            iteration if it fails.
        """
        raise NotImplementedError
