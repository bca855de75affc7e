"""Database engine construction.

This module provides a helper for constructing SQLAlchemy engines based
on environment configuration.  It centralizes database connection
handling and avoids repeating boilerplate across modules.
"""

from __future__ import annotations

import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ..config import DEFAULT_DATABASE_URL


def get_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """Create a new SQLAlchemy engine.

    The database URL is taken from the ``DATABASE_URL`` environment
    variable if not provided explicitly, falling back to a SQLite file
    ``finance.sqlite3`` in the working directory.

    Args:
        url: A database URL.  If ``None``, the value of
            ``os.getenv('DATABASE_URL')`` is used.
        **kwargs: Additional keyword arguments passed to
            ``sqlalchemy.create_engine``.

    Returns:
        A SQLAlchemy :class:`Engine`.  No connection is opened until the
        engine is first used.
    """
    url = url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    return create_engine(url, **kwargs)
