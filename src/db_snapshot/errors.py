"""Typed errors raised by the snapshot and restore engine.

Every error carries a stable ``code`` so result models and the CLI can
report failures without matching on message text.

Usage:
    from db_snapshot.errors import SnapshotError, UnsupportedVersion

    try:
        snapshot = Snapshot.from_document(data)
    except SnapshotError as e:
        print(e.code, e)
"""


class SnapshotError(Exception):
    """Base class for snapshot, restore and store failures."""

    code = "snapshot_error"


class InvalidFormat(SnapshotError):
    """Snapshot document is malformed or missing required data."""

    code = "invalid_format"


class UnsupportedVersion(SnapshotError):
    """Snapshot version tag is not one this engine can restore."""

    code = "unsupported_version"


class ConstraintViolation(SnapshotError):
    """A record references an id that does not exist, or repeats one."""

    code = "constraint_violation"


class StoreUnavailable(SnapshotError):
    """The backing store failed during I/O."""

    code = "store_unavailable"


class TransactionTimeout(SnapshotError):
    """The restore did not get, or did not finish, its transaction in time."""

    code = "transaction_timeout"


class SnapshotNotFound(SnapshotError):
    """No stored snapshot exists with the requested id."""

    code = "snapshot_not_found"


class RegistryError(SnapshotError):
    """The entity registry is inconsistent (configuration error)."""

    code = "registry_error"


class CycleDetected(RegistryError):
    """Entity dependencies (self-references excluded) contain a cycle."""

    code = "cycle_detected"

    def __init__(self, entities: list[str]) -> None:
        self.entities = entities
        super().__init__(
            f"Dependency cycle between entity types: {', '.join(entities)}"
        )
