"""Snapshot store protocol.

Usage:
    from db_snapshot.store.base import SnapshotStore

    async def keep(store: SnapshotStore, snapshot: Snapshot) -> str:
        descriptor = await store.save(snapshot)
        return descriptor.id
"""

from datetime import datetime
from typing import Protocol
from uuid import uuid4

from db_snapshot.snapshot.models import Snapshot
from db_snapshot.store.models import SnapshotDescriptor


def new_snapshot_id() -> str:
    return uuid4().hex


def snapshot_filename(created_at: datetime, snapshot_id: str | None = None) -> str:
    """``backup-<YYYY-MM-DD-HHMMSS>[-<id>].json``"""
    stamp = created_at.strftime("%Y-%m-%d-%H%M%S")
    if snapshot_id:
        return f"backup-{stamp}-{snapshot_id}.json"
    return f"backup-{stamp}.json"


class SnapshotStore(Protocol):
    """Durable storage for snapshots, addressed by id."""

    async def save(self, snapshot: Snapshot) -> SnapshotDescriptor:
        """Persist ``snapshot`` and return its descriptor."""
        ...

    async def get(self, snapshot_id: str) -> Snapshot:
        """Load a stored snapshot.

        Raises:
            SnapshotNotFound: If no snapshot has that id.
        """
        ...

    async def delete(self, snapshot_id: str) -> None:
        """Remove a stored snapshot.

        Raises:
            SnapshotNotFound: If no snapshot has that id.
        """
        ...

    async def prune(self, keep_last: int) -> list[str]:
        """Delete all but the newest ``keep_last`` snapshots; return removed ids."""
        ...

    # Defined last: the method name shadows the builtin in the class body
    async def list(self, limit: int | None = None) -> list[SnapshotDescriptor]:
        """Descriptors of stored snapshots, newest first (metadata only)."""
        ...
