"""Hunter guild quest log: identity, realtime quest sync and rank progress."""

__version__ = "0.1.0"
