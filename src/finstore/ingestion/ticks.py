"""Tick ingestion with permutation and deduplication.

For each requested granularity and symbol the engine retrieves the bar
series over that granularity's lookback window, expands every bar into
one :class:`~finstore.records.TickRecord` per derived view and writes
the records for the pair as a single group into the granularity's
destination table (``ticks_<granularity>`` by default).

Records are deduplicated by their serialized form.  The fingerprint set
lives as long as the engine, which is one run.  Because ``inserted_at``
is fixed for the engine, retrieving the same bars twice in a run writes
them only once.  Fingerprints of a group become part of the set only
after the group has been written, so an aborted symbol does not suppress
its bars on a later attempt.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Set

from ..config import TICK_DESTINATION_PREFIX
from ..db.sink import Sink
from ..errors import SinkError, TransportError
from ..granularity import derived_views, is_granularity, lookback_window
from ..providers.base import QuoteSource
from ..records import TickRecord, serialize
from ..reporting import BatchReporter
from .results import BatchResult, BatchStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickRequest:
    """One bar series to retrieve."""

    symbol: str
    granularity: str
    window_start: datetime
    window_end: datetime


class TickEngine:
    """Retrieve, permute, deduplicate and store bar series."""

    def __init__(
        self,
        source: QuoteSource,
        sink: Sink,
        reporter: BatchReporter,
        inserted_at: datetime,
        prefix: str = TICK_DESTINATION_PREFIX,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.reporter = reporter
        self.inserted_at = inserted_at
        self.prefix = prefix
        self.cancel = cancel
        self._seen: Set[str] = set()

    def destination(self, granularity: str) -> str:
        return f"{self.prefix}{granularity}"

    def permute(self, record: TickRecord) -> List[TickRecord]:
        """Expand a native-granularity record into all of its views."""
        return [record.as_view(view) for view in derived_views(record.granularity)]

    @property
    def fingerprints(self) -> int:
        """Number of distinct records written so far."""
        return len(self._seen)

    def ingest(
        self,
        granularity: str,
        symbols: Sequence[str],
        now: Optional[datetime] = None,
    ) -> BatchResult:
        """Ingest ``symbols`` at ``granularity``.

        Args:
            granularity: A requestable granularity key.
            symbols: Symbols to retrieve, in order.
            now: End of the lookback window; defaults to the current time.

        Returns:
            The batch result.  ``inserted`` counts written records, which
            includes derived views.  A terminal transport error or a sink
            failure aborts the remaining symbols and is returned as the
            cause rather than raised.
        """
        result = BatchResult(key=granularity)
        if not is_granularity(granularity):
            self.reporter.warn(
                f"Requested unknown granularity {granularity}, "
                f"skipping {len(symbols)} symbol(s)"
            )
            result.status = BatchStatus.SKIPPED
            return result
        if not symbols:
            result.status = BatchStatus.SKIPPED
            return result

        start, end = lookback_window(granularity, now)
        destination = self.destination(granularity)
        for symbol in symbols:
            if self.cancel is not None and self.cancel.is_set():
                result.status = BatchStatus.CANCELLED
                break
            result.attempted += 1
            try:
                group = self._collect(TickRequest(symbol, granularity, start, end))
                if group:
                    result.inserted += self.sink.insert_many(destination, group)
                    self._seen.update(group)
            except (TransportError, SinkError) as exc:
                logger.error(
                    "Aborting %s ticks at symbol %s: %s", granularity, symbol, exc
                )
                result.abort(exc)
                break
        logger.info(
            "Tick batch %s %s: %d attempted, %d inserted",
            result.key,
            result.status.value,
            result.attempted,
            result.inserted,
        )
        return result

    def _collect(self, request: TickRequest) -> List[str]:
        """Consume one series and return the serialized records not yet seen."""
        series = self.source.get_bars(
            request.symbol, request.granularity, request.window_start, request.window_end
        )
        group: List[str] = []
        pending: Set[str] = set()
        for bar in series:
            # meta is available once the first bar has been produced
            record = TickRecord.from_bar(bar, series.meta, self.inserted_at)
            for view in self.permute(record):
                fingerprint = serialize(view)
                if fingerprint in self._seen or fingerprint in pending:
                    continue
                pending.add(fingerprint)
                group.append(fingerprint)
        logger.debug(
            "Collected %d new tick record(s) for %s at %s",
            len(group),
            request.symbol,
            request.granularity,
        )
        return group


__all__ = ["TickRequest", "TickEngine"]
