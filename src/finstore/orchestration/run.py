"""Run orchestration.

A run ingests instrument metadata for every requested instrument type
and then ticks for every requested granularity.  Both phases share one
:class:`~finstore.reporting.BatchReporter`, which is drained once at the
end of the run into the :class:`RunSummary`.

:func:`run_ingestion` executes a run synchronously.  The CLI executes it
on a worker thread through :class:`RunHandle` so that an interrupt in
the main thread can cancel it cooperatively: the worker finishes the
symbol in flight and starts no further symbols or batches.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import INSTRUMENT_TYPES, TICK_DESTINATION_PREFIX
from ..db.sink import Sink
from ..errors import BatchAborted
from ..granularity import GRANULARITIES
from ..ingestion.instruments import IngestionRequest, ingest_request
from ..ingestion.results import BatchResult, BatchStatus
from ..ingestion.ticks import TickEngine
from ..providers.base import QuoteSource
from ..registry import TypeRegistry, build_registry
from ..reporting import BatchReporter, WarningEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunPlan:
    """Everything a run has been asked to ingest.

    Attributes:
        requests: One instrument request per declared type, in order.
        tick_symbols: Symbols whose ticks are ingested.
        granularities: Granularities to ingest ticks at, in order.
        strict: Raise :class:`~finstore.errors.BatchAborted` on the first
            aborted batch instead of continuing with the next one.
    """

    requests: Tuple[IngestionRequest, ...] = ()
    tick_symbols: Tuple[str, ...] = ()
    granularities: Tuple[str, ...] = ()
    strict: bool = False

    @classmethod
    def from_options(
        cls,
        instrument_symbols: Mapping[str, Optional[str]],
        tick_symbols: Optional[str] = None,
        granularities: Sequence[str] = (),
        use_all: bool = False,
        strict: bool = False,
    ) -> "RunPlan":
        """Build a plan from raw command line values.

        Args:
            instrument_symbols: Comma-separated symbol list per declared
                instrument type.  Types are visited in the order of
                :data:`~finstore.config.INSTRUMENT_TYPES`, followed by any
                other keys in mapping order.
            tick_symbols: Comma-separated symbols to ingest ticks for.
            granularities: Requested granularity keys.  Duplicates are
                dropped.
            use_all: Ingest ticks at every granularity, ignoring
                ``granularities``.
            strict: See :attr:`strict`.
        """
        order = [t for t in INSTRUMENT_TYPES if t in instrument_symbols]
        order += [t for t in instrument_symbols if t not in INSTRUMENT_TYPES]
        requests = tuple(
            IngestionRequest.parse(key, instrument_symbols[key]) for key in order
        )
        requests = tuple(r for r in requests if r.symbols)
        ticks = IngestionRequest.parse("ticks", tick_symbols).symbols
        if use_all:
            selected: Tuple[str, ...] = GRANULARITIES
        else:
            selected = tuple(dict.fromkeys(granularities))
        return cls(
            requests=requests,
            tick_symbols=ticks,
            granularities=selected,
            strict=strict,
        )

    @property
    def wants_ticks(self) -> bool:
        return bool(self.tick_symbols and self.granularities)

    @property
    def is_empty(self) -> bool:
        return not self.requests and not self.wants_ticks


@dataclass
class RunSummary:
    """Outcome of a run."""

    instrument_results: List[BatchResult] = field(default_factory=list)
    tick_results: List[BatchResult] = field(default_factory=list)
    warnings: List[WarningEntry] = field(default_factory=list)
    cancelled: bool = False

    @property
    def results(self) -> List[BatchResult]:
        return self.instrument_results + self.tick_results

    @property
    def aborted(self) -> List[BatchResult]:
        return [r for r in self.results if r.aborted]

    def inserted_by_key(self) -> Dict[str, int]:
        return {r.key: r.inserted for r in self.results}


class Progress:
    """Receives batch start and finish notifications.

    The base implementation does nothing; the CLI prints progress lines.
    """

    def start(self, label: str) -> None:
        pass

    def finish(self, result: BatchResult) -> None:
        pass


def run_ingestion(
    plan: RunPlan,
    source: QuoteSource,
    sink: Sink,
    registry: Optional[TypeRegistry] = None,
    reporter: Optional[BatchReporter] = None,
    progress: Optional[Progress] = None,
    cancel: Optional[threading.Event] = None,
    now: Optional[datetime] = None,
    tick_prefix: str = TICK_DESTINATION_PREFIX,
) -> RunSummary:
    """Execute ``plan`` against ``source`` and ``sink``.

    Args:
        plan: What to ingest.
        source: Quote source used for retrieval.
        sink: Destination for serialized records.
        registry: Type registry; built from ``source`` when omitted.
        reporter: Warning collector; a fresh one is used when omitted.
        progress: Progress listener.
        cancel: Cooperative cancellation flag.
        now: Run start time.  Used as ``inserted_at`` for every tick and
            as the end of every lookback window.  Defaults to the current
            UTC time.
        tick_prefix: Prefix of tick destination names.

    Returns:
        The run summary including all drained warnings.

    Raises:
        BatchAborted: In strict mode, when a batch is aborted by a
            transport or sink error.  The warnings reported up to the
            abort are attached as ``warnings``.
    """
    registry = registry or build_registry(source)
    reporter = reporter if reporter is not None else BatchReporter()
    progress = progress or Progress()
    started = now or datetime.now(timezone.utc)
    summary = RunSummary()

    def _cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    def _record(results: List[BatchResult], result: BatchResult) -> None:
        results.append(result)
        progress.finish(result)
        if result.aborted and plan.strict:
            raise BatchAborted(result)

    try:
        for request in plan.requests:
            if _cancelled():
                break
            progress.start(
                f"Downloading metadata for {request.declared_type}: "
                f"{len(request.symbols)} download(s) required"
            )
            result = ingest_request(request, registry, sink, reporter, cancel)
            _record(summary.instrument_results, result)

        if plan.wants_ticks:
            engine = TickEngine(
                source, sink, reporter, inserted_at=started, prefix=tick_prefix, cancel=cancel
            )
            for granularity in plan.granularities:
                if _cancelled():
                    break
                progress.start(
                    f"Downloading {granularity} ticks: "
                    f"{len(plan.tick_symbols)} download(s) required"
                )
                result = engine.ingest(granularity, plan.tick_symbols, now=started)
                _record(summary.tick_results, result)
    except BatchAborted as exc:
        summary.warnings = exc.warnings = reporter.drain()
        raise

    summary.cancelled = _cancelled() or any(
        r.status is BatchStatus.CANCELLED for r in summary.results
    )
    summary.warnings = reporter.drain()
    logger.info(
        "Run finished: %d batch(es), %d aborted, %d warning(s)%s",
        len(summary.results),
        len(summary.aborted),
        len(summary.warnings),
        " (cancelled)" if summary.cancelled else "",
    )
    return summary


class RunHandle:
    """A run executing on a worker thread.

    Use :meth:`start` with a callable taking the cancellation event and
    returning the :class:`RunSummary`.
    """

    def __init__(self) -> None:
        self._cancel = threading.Event()
        self._done = threading.Event()
        self._summary: Optional[RunSummary] = None
        self._error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def start(cls, target: Callable[[threading.Event], RunSummary]) -> "RunHandle":
        handle = cls()
        handle._thread = threading.Thread(
            target=handle._run, args=(target,), name="finstore-run", daemon=True
        )
        handle._thread.start()
        return handle

    def _run(self, target: Callable[[threading.Event], RunSummary]) -> None:
        try:
            self._summary = target(self._cancel)
        except BaseException as exc:  # re-raised in wait()
            self._error = exc
        finally:
            self._done.set()

    def cancel(self) -> None:
        """Ask the run to stop after the symbol in flight."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> Optional[RunSummary]:
        """Wait for the run to finish.

        Returns:
            The run summary, or ``None`` if ``timeout`` expired first.

        Raises:
            Exception: Whatever the run raised, such as
                :class:`~finstore.errors.BatchAborted`.
        """
        if not self._done.wait(timeout):
            return None
        if self._error is not None:
            raise self._error
        return self._summary


__all__ = [
    "RunPlan",
    "RunSummary",
    "Progress",
    "run_ingestion",
    "RunHandle",
]
