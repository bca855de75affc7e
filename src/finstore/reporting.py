"""Accumulation of non-fatal warnings during a run.

A :class:`BatchReporter` is created at the start of a run, passed to the
instrument router and the tick engine, and drained exactly once by the
orchestrator after both phases have completed.  Only the worker running
the ingestion appends to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WarningEntry:
    message: str


class BatchReporter:
    """Append-only list of warnings, drained once per run."""

    def __init__(self) -> None:
        self._entries: List[WarningEntry] = []

    def warn(self, message: str) -> None:
        self._entries.append(WarningEntry(message))
        logger.debug("warning: %s", message)

    @property
    def entries(self) -> List[WarningEntry]:
        return list(self._entries)

    def drain(self) -> List[WarningEntry]:
        """Return all warnings in insertion order and empty the reporter."""
        entries, self._entries = self._entries, []
        return entries

    def __len__(self) -> int:
        return len(self._entries)
