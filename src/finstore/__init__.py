"""Top-level package for the finstore project.

This package provides a command-line interface via :mod:`finstore.cli`,
quote sources in :mod:`finstore.providers`, the instrument type registry
in :mod:`finstore.registry`, ingestion pipelines in
:mod:`finstore.ingestion` and database sinks in :mod:`finstore.db`.
"""

__all__ = [
    "cli",
    "providers",
    "registry",
    "db",
    "ingestion",
    "orchestration",
]
