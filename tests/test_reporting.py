"""Tests for the batch reporter."""

from __future__ import annotations

from finstore.reporting import BatchReporter


def test_drain_returns_entries_in_order_and_empties() -> None:
    reporter = BatchReporter()
    reporter.warn("first")
    reporter.warn("second")
    assert len(reporter) == 2
    assert [e.message for e in reporter.entries] == ["first", "second"]

    drained = reporter.drain()
    assert [e.message for e in drained] == ["first", "second"]
    assert len(reporter) == 0
    assert reporter.drain() == []


def test_entries_is_a_copy() -> None:
    reporter = BatchReporter()
    reporter.warn("only")
    reporter.entries.clear()
    assert len(reporter) == 1
