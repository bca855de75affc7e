"""Per-batch outcome of an ingestion step."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class BatchResult:
    """Outcome of one instrument request or one tick granularity.

    Attributes:
        key: The instrument type or granularity the batch was for.
        status: How the batch ended.
        attempted: Number of symbols for which retrieval was attempted.
        inserted: Number of records written to the sink.
        cause: The transport or sink error that aborted the batch.
    """

    key: str
    status: BatchStatus = BatchStatus.COMPLETED
    attempted: int = 0
    inserted: int = 0
    cause: Optional[Exception] = None

    @property
    def aborted(self) -> bool:
        return self.status is BatchStatus.ABORTED

    def abort(self, cause: Exception) -> None:
        self.status = BatchStatus.ABORTED
        self.cause = cause
