"""Orchestration helpers for finstore.

This package runs the instrument and tick pipelines in order and
exposes a cancellable handle for executing a run on a worker thread.
These helpers are used by the CLI commands defined in
:mod:`finstore.cli`.
"""

from .run import Progress, RunHandle, RunPlan, RunSummary, run_ingestion  # noqa: F401
