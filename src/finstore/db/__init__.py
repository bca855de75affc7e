"""Database access: engine construction and the insertion sink."""

from .session import get_engine  # noqa: F401
from .sink import RecordingSink, Sink, SqlSink  # noqa: F401
