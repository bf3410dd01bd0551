"""Snapshot store backed by a table in the application database.

One row per snapshot: ``id``, ``filename``, ``size``, ``createdAt`` and
the JSON payload in ``data``.

Usage:
    from db_snapshot.store.database import DatabaseSnapshotStore

    store = DatabaseSnapshotStore(adapter)
    await store.ensure_table()
    descriptor = await store.save(snapshot)
    snapshot = await store.get(descriptor.id)
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.adapters.postgres import quote_ident
from db_snapshot.errors import SnapshotNotFound, StoreUnavailable
from db_snapshot.snapshot.models import Snapshot
from db_snapshot.store.base import new_snapshot_id, snapshot_filename
from db_snapshot.store.models import SnapshotDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "SystemBackup"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    "id" TEXT PRIMARY KEY,
    "filename" TEXT NOT NULL,
    "size" INTEGER NOT NULL,
    "createdAt" TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "data" TEXT NOT NULL
)
"""


def _descriptor(row: dict[str, Any]) -> SnapshotDescriptor:
    return SnapshotDescriptor(
        id=row["id"],
        filename=row["filename"],
        size_bytes=row["size"],
        created_at=row["createdAt"],
    )


class DatabaseSnapshotStore:
    """``SnapshotStore`` persisting snapshots through a ``DatabaseClient``."""

    def __init__(self, adapter: DatabaseClient, table: str = DEFAULT_TABLE) -> None:
        self._adapter = adapter
        self._table = table

    @property
    def table(self) -> str:
        return self._table

    async def ensure_table(self) -> bool:
        """Create the snapshot table if missing.

        Returns:
            ``False`` when the adapter cannot run DDL (the table is then
            assumed to exist), ``True`` otherwise.
        """
        try:
            await self._adapter.execute(_CREATE_TABLE.format(table=quote_ident(self._table)))
        except NotImplementedError:
            logger.debug("Adapter does not run DDL; assuming %s exists", self._table)
            return False
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to create {self._table}: {e}") from e
        return True

    async def save(self, snapshot: Snapshot) -> SnapshotDescriptor:
        payload = snapshot.to_json(indent=None)
        # Naive UTC, matching a TIMESTAMP WITHOUT TIME ZONE column
        created_at = datetime.now(timezone.utc).replace(tzinfo=None)
        snapshot_id = new_snapshot_id()
        row = {
            "id": snapshot_id,
            "filename": snapshot_filename(created_at),
            "size": len(payload.encode("utf-8")),
            "createdAt": created_at,
            "data": payload,
        }
        try:
            await self._adapter.insert(self._table, row)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to save snapshot: {e}") from e

        logger.info("Saved snapshot %s (%d bytes)", snapshot_id, row["size"])
        return _descriptor(row)

    async def get(self, snapshot_id: str) -> Snapshot:
        rows = await self._select("*", {"id": snapshot_id})
        if not rows:
            raise SnapshotNotFound(f"Snapshot not found: {snapshot_id}")
        data = rows[0]["data"]
        if isinstance(data, (str, bytes)):
            return Snapshot.from_json(data)
        return Snapshot.from_document(data)

    async def delete(self, snapshot_id: str) -> None:
        if not await self._select("id", {"id": snapshot_id}):
            raise SnapshotNotFound(f"Snapshot not found: {snapshot_id}")
        try:
            await self._adapter.delete(self._table, {"id": snapshot_id})
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to delete snapshot {snapshot_id}: {e}") from e
        logger.info("Deleted snapshot %s", snapshot_id)

    async def prune(self, keep_last: int) -> list[str]:
        if keep_last <= 0:
            return []
        removed = [d.id for d in (await self.list())[keep_last:]]
        for snapshot_id in removed:
            await self.delete(snapshot_id)
        return removed

    async def _select(self, columns: str, filters: dict | None = None) -> list[dict]:
        try:
            return await self._adapter.select(
                self._table, columns, filters=filters, order_by="-createdAt"
            )
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Failed to read {self._table}: {e}") from e

    async def list(self, limit: int | None = None) -> list[SnapshotDescriptor]:
        rows = await self._select("id, filename, size, createdAt")
        descriptors = [_descriptor(row) for row in rows]
        return descriptors[:limit] if limit is not None else descriptors
