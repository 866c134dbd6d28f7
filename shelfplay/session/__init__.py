"""Session snapshot persistence and restoration."""

from .persistence import (
    ELAPSED_WRITE_INTERVAL_SECONDS,
    LIBRARY_ROOT_KEY,
    SESSION_KEY,
    ReconciledSession,
    SessionPersistence,
    reconcile,
)
from .snapshot import SNAPSHOT_VERSION, SessionSnapshot, SnapshotCorruptError
from .store import JsonFileSnapshotStore, MemorySnapshotStore, SnapshotStore

__all__ = [
    "ELAPSED_WRITE_INTERVAL_SECONDS",
    "LIBRARY_ROOT_KEY",
    "SESSION_KEY",
    "SNAPSHOT_VERSION",
    "JsonFileSnapshotStore",
    "MemorySnapshotStore",
    "ReconciledSession",
    "SessionPersistence",
    "SessionSnapshot",
    "SnapshotCorruptError",
    "SnapshotStore",
    "reconcile",
]
