"""
DevTrack - personal developer-productivity tracker.

Records coding sessions, commits, tasks, goals, issues, breaks and daily
metrics in an in-memory store, rolls them up into dashboard views, and
backs the whole store up to JSON/CSV files on demand.
"""

__version__ = "2.0.0"

from devtrack.exceptions import (
    ConfigError,
    DevTrackError,
    NotFoundError,
    PersistenceError,
    StoreError,
    ValidationError,
)

__all__ = [
    "__version__",
    "DevTrackError",
    "ConfigError",
    "StoreError",
    "NotFoundError",
    "ValidationError",
    "PersistenceError",
]
