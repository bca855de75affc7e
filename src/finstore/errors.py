"""Exception types raised by the ingestion pipeline.

The pipeline distinguishes failures by how far they reach:

* :class:`TransportError` and :class:`SinkError` abort the remainder of
  the batch in which they occur.  The run then continues with the next
  batch.
* :class:`ConversionError` skips only the offending symbol.
* :class:`BatchAborted` is raised by the orchestrator in strict mode
  when a batch was aborted, ending the run.

Unregistered instrument types are not exceptions; they are reported as
warnings by :class:`~finstore.reporting.BatchReporter`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .ingestion.results import BatchResult
    from .reporting import WarningEntry


class FinstoreError(Exception):
    """Base class for all finstore errors."""


class TransportError(FinstoreError):
    """The quote source could not deliver data for a request."""


class ConversionError(FinstoreError):
    """A retrieved payload could not be converted into a storage record."""


class SinkError(FinstoreError):
    """The insertion sink rejected a record or could not be opened."""


class BatchAborted(FinstoreError):
    """A batch was aborted while the run was configured as strict."""

    def __init__(
        self,
        result: "BatchResult",
        warnings: Optional[List["WarningEntry"]] = None,
    ) -> None:
        self.result = result
        # Warnings drained from the run up to the abort
        self.warnings: List["WarningEntry"] = list(warnings or [])
        super().__init__(f"Batch {result.key} aborted: {result.cause}")
