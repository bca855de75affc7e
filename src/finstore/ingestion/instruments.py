"""Instrument metadata ingestion.

This module routes each requested symbol to the retriever and converter
of its instrument type and writes the resulting record into the
matching destination table.

The type a symbol was requested under (the *declared* type) only seeds
the first retrieval.  The quote source reports the *observed* type of
every instrument, and the observed type decides both the converter and
the destination.  A symbol requested as ``equity`` that turns out to be
an ETF is therefore converted as an ETF and written into the ``etf``
table, with a warning naming both tables.

Failures are scoped as follows:

* transport and sink errors abort the remaining symbols of the current
  request; the caller moves on to the next request;
* empty responses and conversion failures skip only the symbol;
* an unregistered declared type skips the whole request.

All non-fatal problems are reported through the
:class:`~finstore.reporting.BatchReporter`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..db.sink import Sink
from ..errors import ConversionError, SinkError, TransportError
from ..records import serialize
from ..registry import TypeBinding, TypeRegistry, UnregisteredType
from ..reporting import BatchReporter
from .results import BatchResult, BatchStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionRequest:
    """A declared instrument type and the symbols requested under it."""

    declared_type: str
    symbols: Tuple[str, ...]

    @classmethod
    def parse(cls, declared_type: str, value: Optional[str]) -> "IngestionRequest":
        """Build a request from a comma-separated symbol list.

        Order and duplicates are preserved; blank entries are dropped.
        """
        symbols = tuple(s.strip() for s in (value or "").split(",") if s.strip())
        return cls(declared_type=declared_type.strip().lower(), symbols=symbols)


def ingest_request(
    request: IngestionRequest,
    registry: TypeRegistry,
    sink: Sink,
    reporter: BatchReporter,
    cancel: Optional[threading.Event] = None,
) -> BatchResult:
    """Retrieve, convert and store every symbol of one request.

    Args:
        request: The declared type and its symbols.
        registry: Registry used to resolve declared and observed types.
        sink: Destination for the serialized records.
        reporter: Collects warnings for skipped symbols and rerouted records.
        cancel: Optional event; when set, no further symbols are started.

    Returns:
        A :class:`BatchResult` for the request.  A transport or sink error
        is returned as an aborted result rather than raised.
    """
    result = BatchResult(key=request.declared_type)
    if not request.symbols:
        result.status = BatchStatus.SKIPPED
        return result

    declared = registry.lookup(request.declared_type)
    if declared is None:
        reporter.warn(
            f"Requested unregistered quote type {request.declared_type}, "
            f"skipping {len(request.symbols)} symbol(s)"
        )
        result.status = BatchStatus.SKIPPED
        return result

    for symbol in request.symbols:
        if cancel is not None and cancel.is_set():
            result.status = BatchStatus.CANCELLED
            break
        result.attempted += 1
        try:
            if _ingest_symbol(symbol, declared, registry, sink, reporter):
                result.inserted += 1
        except (TransportError, SinkError) as exc:
            logger.error(
                "Aborting %s batch at symbol %s: %s", request.declared_type, symbol, exc
            )
            result.abort(exc)
            break
    logger.info(
        "Instrument batch %s %s: %d attempted, %d inserted",
        result.key,
        result.status.value,
        result.attempted,
        result.inserted,
    )
    return result


def ingest_instruments(
    requests: Iterable[IngestionRequest],
    registry: TypeRegistry,
    sink: Sink,
    reporter: BatchReporter,
    cancel: Optional[threading.Event] = None,
) -> List[BatchResult]:
    """Run :func:`ingest_request` for each request in order.

    An aborted request does not stop the following ones.  Requests not
    started because ``cancel`` was set are reported as cancelled.
    """
    results = []
    for request in requests:
        if cancel is not None and cancel.is_set():
            results.append(
                BatchResult(key=request.declared_type, status=BatchStatus.CANCELLED)
            )
            continue
        results.append(ingest_request(request, registry, sink, reporter, cancel))
    return results


def _ingest_symbol(
    symbol: str,
    declared: TypeBinding,
    registry: TypeRegistry,
    sink: Sink,
    reporter: BatchReporter,
) -> bool:
    """Ingest one symbol.  Returns True if a record was written."""
    raw = declared.retrieve(symbol)
    if raw is None or not raw.instrument_type:
        reporter.warn(f"Parsing of response failed, skipping {symbol}")
        return False

    binding, destination = declared, declared.destination
    if raw.instrument_type != declared.key:
        resolved = registry.resolve(raw.instrument_type)
        if isinstance(resolved, UnregisteredType):
            if resolved.fallback is None:
                reporter.warn(
                    f"Could not find parsing methods for quote type {resolved.key}, "
                    f"skipping {symbol}"
                )
                return False
            reporter.warn(
                f"Found unregistered quote type {resolved.key}, will create rogue "
                f"table to accommodate symbol {symbol}"
            )
            binding, destination = resolved.fallback, resolved.destination
        else:
            binding, destination = resolved, resolved.destination
        # A shared retriever has already returned the full payload
        if binding.retrieve != declared.retrieve:
            raw = binding.retrieve(symbol)
            if raw is None:
                reporter.warn(f"Parsing of response failed, skipping {symbol}")
                return False

    try:
        record = binding.convert(raw)
    except ConversionError as exc:
        logger.debug("Conversion of %s failed: %s", symbol, exc)
        reporter.warn(f"Parsing of response failed, skipping {symbol}")
        return False

    if destination != declared.destination:
        reporter.warn(
            f"Writing {symbol} into table {destination} instead of {declared.destination}"
        )
    sink.insert(destination, serialize(record))
    return True
