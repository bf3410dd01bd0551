"""Snapshot stores.

Usage:
    from db_snapshot.store import DatabaseSnapshotStore, FileSnapshotStore
"""

from db_snapshot.store.base import SnapshotStore
from db_snapshot.store.database import DatabaseSnapshotStore
from db_snapshot.store.files import FileSnapshotStore
from db_snapshot.store.models import SnapshotDescriptor

__all__ = [
    "DatabaseSnapshotStore",
    "FileSnapshotStore",
    "SnapshotDescriptor",
    "SnapshotStore",
]
