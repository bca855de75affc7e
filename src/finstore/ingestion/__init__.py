"""Ingestion pipelines.

This package routes instrument metadata into per-type tables and
expands bar series into deduplicated tick records.  Both pipelines
report their outcome per batch as a :class:`BatchResult` and collect
non-fatal problems in a :class:`~finstore.reporting.BatchReporter`.
"""

from __future__ import annotations

from .instruments import IngestionRequest, ingest_instruments, ingest_request
from .results import BatchResult, BatchStatus
from .ticks import TickEngine, TickRequest

__all__ = [
    "IngestionRequest",
    "ingest_request",
    "ingest_instruments",
    "BatchResult",
    "BatchStatus",
    "TickEngine",
    "TickRequest",
]
