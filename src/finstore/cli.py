"""Command-line interface for finstore.

This module uses the :mod:`click` library to expose the ingestion run
and a listing of the supported granularities.

``finstore ingest`` accepts one comma-separated symbol list per
instrument type plus a symbol list for ticks and the granularities to
ingest them at.  Metadata is written into one table per instrument type
and ticks into one table per granularity.  Non-fatal problems are
collected during the run and printed at the end; they never change the
exit code.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Dict, Optional, Sequence, Tuple

import click

from .config import INSTRUMENT_TYPES, TICK_DESTINATION_PREFIX
from .db.session import get_engine
from .db.sink import RecordingSink, Sink, SqlSink
from .errors import BatchAborted, SinkError
from .granularity import GRANULARITIES, derived_views, lookback_window, source_interval
from .ingestion.results import BatchResult, BatchStatus
from .orchestration.run import Progress, RunHandle, RunPlan, RunSummary, run_ingestion
from .providers.base import QuoteSource
from .providers.yahoo import YahooQuoteSource
from .records import column_python_types
from .reporting import WarningEntry


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging.")
def cli(debug: bool) -> None:
    """finstore command-line interface."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_source() -> QuoteSource:
    """Construct the default quote source for the CLI.

    Factored out so tests can monkeypatch it easily.
    """
    return YahooQuoteSource()


def _build_sink(database_url: Optional[str]) -> SqlSink:
    """Construct and open the SQL sink.

    Raises:
        SinkError: If the database cannot be reached.
    """
    sink = SqlSink(get_engine(database_url), column_python_types())
    sink.open()
    return sink


class _EchoProgress(Progress):
    """Prints one line per batch: its label followed by the outcome."""

    def start(self, label: str) -> None:
        click.echo(f"{label} ... ", nl=False)

    def finish(self, result: BatchResult) -> None:
        if result.status is BatchStatus.ABORTED:
            click.echo(f"FAILED ({result.cause})")
        elif result.status is BatchStatus.COMPLETED:
            click.echo("DONE")
        else:
            click.echo(result.status.value.upper())


def _type_options(func):
    # One --<type> option per instrument type
    for key in reversed(INSTRUMENT_TYPES):
        func = click.option(
            f"--{key}",
            key,
            type=str,
            default=None,
            help=f"Comma-separated {key} symbols to ingest metadata for.",
        )(func)
    return func


def _echo_warnings(entries: Sequence[WarningEntry]) -> None:
    for entry in entries:
        click.echo(f"[warning] {entry.message}")


def _wait(handle: RunHandle) -> Optional[RunSummary]:
    """Wait for ``handle``; an interrupt cancels the run and keeps waiting."""
    try:
        while not handle.done:
            handle.wait(0.2)
    except KeyboardInterrupt:
        click.echo("\nInterrupted; finishing the symbol in flight ...", err=True)
        handle.cancel()
    return handle.wait()


@cli.command()
@_type_options
@click.option("--ticks", type=str, default=None, help="Comma-separated symbols to ingest ticks for.")
@click.option(
    "-i",
    "--interval",
    "intervals",
    type=click.Choice(GRANULARITIES),
    multiple=True,
    help="Tick granularity to ingest.  May be given more than once.",
)
@click.option("--all", "use_all", is_flag=True, default=False, help="Ingest ticks at every granularity.")
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Stop the run at the first batch aborted by a transport or database error.",
)
@click.option(
    "--database-url",
    type=str,
    default=None,
    help="SQLAlchemy database URL (default: DATABASE_URL env var or sqlite:///finance.sqlite3).",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Retrieve and convert but keep records in memory instead of writing them.",
)
@click.pass_context
def ingest(
    ctx: click.Context,
    ticks: Optional[str],
    intervals: Tuple[str, ...],
    use_all: bool,
    strict: bool,
    database_url: Optional[str],
    dry_run: bool,
    **instrument_symbols: Optional[str],
) -> None:
    """Fetch instrument metadata and ticks and write them into the database.

    Examples::

        finstore ingest --equity AAPL,MSFT --etf SPY
        finstore ingest --ticks AAPL -i 1d -i 1h

    A symbol whose reported type differs from the option it was given
    under is written into the table of its reported type, with a
    warning.  Without any symbols the help text is printed.
    """
    plan = RunPlan.from_options(
        instrument_symbols,
        tick_symbols=ticks,
        granularities=intervals,
        use_all=use_all,
        strict=strict,
    )
    if plan.is_empty:
        click.echo(ctx.get_help())
        return

    source = _build_source()
    sink: Sink
    if dry_run:
        sink = RecordingSink()
    else:
        try:
            sink = _build_sink(database_url)
        except SinkError as exc:
            raise click.ClickException(str(exc))
    prefix = os.getenv("FINSTORE_TICK_PREFIX") or TICK_DESTINATION_PREFIX

    def _target(cancel: threading.Event) -> RunSummary:
        return run_ingestion(
            plan,
            source,
            sink,
            progress=_EchoProgress(),
            cancel=cancel,
            tick_prefix=prefix,
        )

    handle = RunHandle.start(_target)
    try:
        summary = _wait(handle)
    except BatchAborted as exc:
        _echo_warnings(exc.warnings)
        raise click.ClickException(str(exc))

    _echo_warnings(summary.warnings)
    if isinstance(sink, RecordingSink):
        counts: Dict[str, int] = sink.counts()
        for destination in sorted(counts):
            click.echo(f"[dry-run] {destination}: {counts[destination]} record(s)")
    if summary.cancelled:
        click.echo("Run cancelled.")


@cli.command()
def granularities() -> None:
    """List tick granularities with their retrieval interval, lookback and views.

    Views are listed for the retrieval interval.  Ingestion derives them
    from the granularity the source reports for each series, which can
    differ when the source falls back to another interval.
    """
    for key in GRANULARITIES:
        start, end = lookback_window(key)
        days = (end - start).total_seconds() / 86400
        click.echo(
            f"{key:>4}  interval={source_interval(key):<4} "
            f"lookback={days:.1f}d  interval_views={','.join(derived_views(source_interval(key)))}"
        )


if __name__ == "__main__":  # pragma: no cover
    cli()
