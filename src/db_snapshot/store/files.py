"""Snapshot store backed by JSON files in a directory.

Files are named ``backup-<YYYY-MM-DD-HHMMSS>-<id>.json``.

Usage:
    from db_snapshot.store.files import FileSnapshotStore

    store = FileSnapshotStore("backups")
    descriptor = await store.save(snapshot)
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from db_snapshot.errors import SnapshotNotFound, StoreUnavailable
from db_snapshot.snapshot.models import Snapshot
from db_snapshot.store.base import new_snapshot_id, snapshot_filename
from db_snapshot.store.models import SnapshotDescriptor

logger = logging.getLogger(__name__)

_FILENAME = re.compile(r"^backup-(\d{4}-\d{2}-\d{2}-\d{6})-([0-9A-Za-z_-]+)\.json$")


class FileSnapshotStore:
    """``SnapshotStore`` keeping one JSON file per snapshot."""

    def __init__(self, directory: str | Path = "backups") -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _describe(self, path: Path) -> SnapshotDescriptor | None:
        match = _FILENAME.match(path.name)
        if match is None:
            return None
        created_at = datetime.strptime(match.group(1), "%Y-%m-%d-%H%M%S")
        return SnapshotDescriptor(
            id=match.group(2),
            filename=path.name,
            size_bytes=path.stat().st_size,
            created_at=created_at.replace(tzinfo=timezone.utc),
        )

    def _scan(self) -> list[tuple[SnapshotDescriptor, Path]]:
        if not self._directory.exists():
            return []
        try:
            found = []
            for path in self._directory.glob("backup-*.json"):
                descriptor = self._describe(path)
                if descriptor is not None:
                    found.append((descriptor, path))
            # Newest first; files from the same second fall back to mtime
            found.sort(
                key=lambda item: (item[0].created_at, item[1].stat().st_mtime_ns),
                reverse=True,
            )
            return found
        except OSError as e:
            raise StoreUnavailable(f"Failed to read {self._directory}: {e}") from e

    def _path_of(self, snapshot_id: str) -> Path:
        for descriptor, path in self._scan():
            if descriptor.id == snapshot_id:
                return path
        raise SnapshotNotFound(f"Snapshot not found: {snapshot_id}")

    async def save(self, snapshot: Snapshot) -> SnapshotDescriptor:
        snapshot_id = new_snapshot_id()
        path = self._directory / snapshot_filename(datetime.now(timezone.utc), snapshot_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(snapshot.to_json(), encoding="utf-8")
        except OSError as e:
            raise StoreUnavailable(f"Failed to write {path}: {e}") from e

        logger.info("Saved snapshot %s to %s", snapshot_id, path)
        try:
            descriptor = self._describe(path)
        except OSError as e:
            raise StoreUnavailable(f"Failed to read {path}: {e}") from e
        if descriptor is None:
            raise StoreUnavailable(f"Saved snapshot has an unrecognised filename: {path.name}")
        return descriptor

    async def get(self, snapshot_id: str) -> Snapshot:
        path = self._path_of(snapshot_id)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreUnavailable(f"Failed to read {path}: {e}") from e
        return Snapshot.from_json(text)

    async def delete(self, snapshot_id: str) -> None:
        path = self._path_of(snapshot_id)
        try:
            path.unlink()
        except OSError as e:
            raise StoreUnavailable(f"Failed to delete {path}: {e}") from e
        logger.info("Deleted snapshot %s", snapshot_id)

    async def prune(self, keep_last: int) -> list[str]:
        if keep_last <= 0:
            return []
        removed = [d.id for d in (await self.list())[keep_last:]]
        for snapshot_id in removed:
            await self.delete(snapshot_id)
        return removed

    async def list(self, limit: int | None = None) -> list[SnapshotDescriptor]:
        descriptors = [descriptor for descriptor, _ in self._scan()]
        return descriptors[:limit] if limit is not None else descriptors
