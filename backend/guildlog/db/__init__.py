"""Database utilities for the guild log."""

from .base import Base
from .monitoring import get_pool_snapshot, instrument_engine
from .session import Database, build_engine

__all__ = [
    "Base",
    "Database",
    "build_engine",
    "get_pool_snapshot",
    "instrument_engine",
]
