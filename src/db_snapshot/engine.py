"""Snapshot engine facade: build, back up and restore the dataset.

Usage:
    from db_snapshot.engine import SnapshotEngine

    engine = SnapshotEngine(adapter, BUSINESS_REGISTRY, store)
    result = await engine.backup()
    restored = await engine.restore_by_id(result.descriptor.id)
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.errors import InvalidFormat, SnapshotError, StoreUnavailable
from db_snapshot.registry.models import EntityRegistry
from db_snapshot.snapshot.builder import SnapshotBuilder
from db_snapshot.snapshot.models import Snapshot
from db_snapshot.snapshot.restore import (
    DEFAULT_MAX_WAIT,
    DEFAULT_TIMEOUT,
    RestoreExecutor,
    RestoreResult,
)
from db_snapshot.store.base import SnapshotStore
from db_snapshot.store.models import SnapshotDescriptor

logger = logging.getLogger(__name__)


class BackupResult(BaseModel):
    """Outcome of a backup.

    Attributes:
        success: Whether a snapshot was built and stored.
        descriptor: The stored snapshot (``None`` on failure).
        pruned: Ids of older snapshots removed by ``keep_last``.
        error: Error message if the backup failed.
        error_code: Stable code of the error.
    """

    success: bool
    descriptor: SnapshotDescriptor | None = None
    pruned: list[str] = Field(default_factory=list)
    error: str | None = None
    error_code: str | None = None


class SnapshotEngine:
    """Builds snapshots, stores them and restores them.

    Args:
        adapter: Database client for the application dataset.
        registry: Entity registry describing the dataset.
        store: Where snapshots are kept.  Required by ``backup`` and
            ``restore_by_id`` only.
        timeout: Restore transaction timeout in seconds.
        max_wait: Seconds a restore waits for a running one to finish.
        keep_last: Snapshots retained after each backup (0 keeps all).

    Raises:
        CycleDetected: If the registry's dependencies contain a cycle.
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        registry: EntityRegistry,
        store: SnapshotStore | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_wait: float = DEFAULT_MAX_WAIT,
        keep_last: int = 0,
    ) -> None:
        self._adapter = adapter
        self._registry = registry
        self._store = store
        self._keep_last = keep_last
        self._builder = SnapshotBuilder(adapter, registry)
        self._executor = RestoreExecutor(adapter, registry, timeout=timeout, max_wait=max_wait)

    @property
    def adapter(self) -> DatabaseClient:
        return self._adapter

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def store(self) -> SnapshotStore | None:
        return self._store

    @property
    def executor(self) -> RestoreExecutor:
        return self._executor

    async def close(self) -> None:
        """Close the underlying database adapter."""
        await self._adapter.close()

    def _require_store(self) -> SnapshotStore:
        if self._store is None:
            raise StoreUnavailable("No snapshot store configured")
        return self._store

    async def build(self) -> Snapshot:
        """Capture the current dataset.

        Raises:
            StoreUnavailable: If the dataset could not be read.
        """
        return await self._builder.build()

    async def backup(self) -> BackupResult:
        """Build a snapshot and persist it.

        A failed build never creates a stored snapshot.
        """
        try:
            store = self._require_store()
            snapshot = await self.build()
            descriptor = await store.save(snapshot)
        except SnapshotError as e:
            logger.warning("Backup failed: %s", e)
            return BackupResult(success=False, error=str(e), error_code=e.code)

        pruned: list[str] = []
        if self._keep_last > 0:
            try:
                pruned = await store.prune(self._keep_last)
            except SnapshotError as e:
                # The new snapshot is stored; report the pruning failure only
                logger.warning("Pruning old snapshots failed: %s", e)
            else:
                if pruned:
                    logger.info("Pruned %d old snapshots", len(pruned))

        return BackupResult(success=True, descriptor=descriptor, pruned=pruned)

    async def restore(self, snapshot: Snapshot) -> RestoreResult:
        """Replace the dataset with ``snapshot``, atomically."""
        return await self._executor.restore(snapshot)

    async def restore_document(self, data: str | bytes | dict[str, Any]) -> RestoreResult:
        """Restore from an uploaded document (JSON text or parsed object)."""
        try:
            if isinstance(data, (str, bytes)):
                snapshot = Snapshot.from_json(data)
            else:
                snapshot = Snapshot.from_document(data)
        except InvalidFormat as e:
            logger.warning("Uploaded snapshot rejected: %s", e)
            return RestoreResult.failed(e)
        return await self.restore(snapshot)

    async def restore_by_id(self, snapshot_id: str) -> RestoreResult:
        """Restore a previously stored snapshot."""
        try:
            snapshot = await self._require_store().get(snapshot_id)
        except SnapshotError as e:
            logger.warning("Cannot load snapshot %s: %s", snapshot_id, e)
            return RestoreResult.failed(e)
        logger.info("Restoring stored snapshot %s", snapshot_id)
        return await self.restore(snapshot)
