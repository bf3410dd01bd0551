"""db-snapshot: full-dataset snapshot and atomic restore engine.

Captures every entity type of the application dataset into one versioned
JSON document, and restores such a document by wiping and re-inserting the
whole dataset inside a single transaction, in dependency order.

Usage:
    from db_snapshot import SnapshotEngine, BUSINESS_REGISTRY, get_engine
    from db_snapshot import AsyncPostgresAdapter, MemoryAdapter
    from db_snapshot import EntityRegistry, EntityDef, ForeignKey, ManyToMany
    from db_snapshot import DatabaseSnapshotStore, FileSnapshotStore
"""

__version__ = "0.1.0"

# Adapters
from db_snapshot.adapters.base import DatabaseClient, Transaction
from db_snapshot.adapters.memory import MemoryAdapter
from db_snapshot.adapters.postgres import AsyncPostgresAdapter

# Config
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings

# Engine
from db_snapshot.engine import BackupResult, SnapshotEngine

# Errors
from db_snapshot.errors import (
    ConstraintViolation,
    CycleDetected,
    InvalidFormat,
    RegistryError,
    SnapshotError,
    SnapshotNotFound,
    StoreUnavailable,
    TransactionTimeout,
    UnsupportedVersion,
)

# Factory
from db_snapshot.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    get_engine,
    resolve_url,
)

# Registry
from db_snapshot.registry.business import BUSINESS_REGISTRY
from db_snapshot.registry.models import EntityDef, EntityRegistry, ForeignKey, ManyToMany
from db_snapshot.registry.sequencer import DependencySequencer

# Snapshots
from db_snapshot.snapshot.builder import SnapshotBuilder
from db_snapshot.snapshot.models import Snapshot
from db_snapshot.snapshot.restore import RestoreExecutor, RestoreResult
from db_snapshot.snapshot.validation import validate_snapshot

# Stores
from db_snapshot.store.database import DatabaseSnapshotStore
from db_snapshot.store.files import FileSnapshotStore
from db_snapshot.store.models import SnapshotDescriptor

# Schema
from db_snapshot.schema.coverage import check_coverage

__all__ = [
    # Adapters
    "DatabaseClient",
    "Transaction",
    "AsyncPostgresAdapter",
    "MemoryAdapter",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "DatabaseConfig",
    "SnapshotSettings",
    # Engine
    "SnapshotEngine",
    "BackupResult",
    # Errors
    "SnapshotError",
    "InvalidFormat",
    "UnsupportedVersion",
    "ConstraintViolation",
    "StoreUnavailable",
    "TransactionTimeout",
    "SnapshotNotFound",
    "RegistryError",
    "CycleDetected",
    # Factory
    "get_adapter",
    "get_engine",
    "connect_and_validate",
    "ProfileNotFoundError",
    "resolve_url",
    # Registry
    "BUSINESS_REGISTRY",
    "EntityRegistry",
    "EntityDef",
    "ForeignKey",
    "ManyToMany",
    "DependencySequencer",
    # Snapshots
    "Snapshot",
    "SnapshotBuilder",
    "RestoreExecutor",
    "RestoreResult",
    "validate_snapshot",
    # Stores
    "DatabaseSnapshotStore",
    "FileSnapshotStore",
    "SnapshotDescriptor",
    # Schema
    "check_coverage",
]
