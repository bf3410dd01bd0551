"""Snapshot document, builder, validation and restore.

Usage:
    from db_snapshot.snapshot import Snapshot, SnapshotBuilder, RestoreExecutor
"""

from db_snapshot.snapshot.builder import SnapshotBuilder
from db_snapshot.snapshot.models import CURRENT_VERSION, SUPPORTED_VERSIONS, Snapshot
from db_snapshot.snapshot.restore import RestoreExecutor, RestoreResult
from db_snapshot.snapshot.validation import check_snapshot, validate_snapshot

__all__ = [
    "CURRENT_VERSION",
    "RestoreExecutor",
    "RestoreResult",
    "SUPPORTED_VERSIONS",
    "Snapshot",
    "SnapshotBuilder",
    "check_snapshot",
    "validate_snapshot",
]
