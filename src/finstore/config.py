"""
Configuration constants for the finstore project.

This module centralises configuration values that are used across the
application.  New values should be added here deliberately.  Values
that vary between deployments (database URL, quote source endpoint)
are read from environment variables where they are used.
"""

from typing import Final

PROJECT_NAME: Final[str] = "finstore"

# Canonical instrument type keys.  The order is the order in which the
# CLI processes instrument requests.
INSTRUMENT_TYPES: Final[tuple[str, ...]] = (
    "crypto",
    "equity",
    "etf",
    "forex",
    "future",
    "index",
    "mutualfund",
    "option",
)

# Destination tables that differ from their instrument type key.  Every
# other key is written into a table of the same name.
DESTINATION_ALIASES: Final[dict[str, str]] = {
    "index": "indices",
}

# Observed quote types without a table of their own that can still be
# parsed by a registered converter.  Symbols of these types are written
# into a table named after the observed type.
CONVERTER_ALIASES: Final[dict[str, str]] = {
    "ecnquote": "equity",
}

# Raw quote types reported by the quote source whose canonical key is
# spelled differently.
SOURCE_TYPE_ALIASES: Final[dict[str, str]] = {
    "cryptocurrency": "crypto",
    "currency": "forex",
}

# Tick destinations are named by this prefix plus the granularity key,
# e.g. ``ticks_1d``.  Overridable with ``FINSTORE_TICK_PREFIX``.
TICK_DESTINATION_PREFIX: Final[str] = "ticks_"

# Used when neither ``--database-url`` nor ``DATABASE_URL`` is given.
DEFAULT_DATABASE_URL: Final[str] = "sqlite:///finance.sqlite3"

DEFAULT_YAHOO_BASE_URL: Final[str] = "https://query1.finance.yahoo.com"

__all__ = [
    "PROJECT_NAME",
    "INSTRUMENT_TYPES",
    "DESTINATION_ALIASES",
    "CONVERTER_ALIASES",
    "SOURCE_TYPE_ALIASES",
    "TICK_DESTINATION_PREFIX",
    "DEFAULT_DATABASE_URL",
    "DEFAULT_YAHOO_BASE_URL",
]
