"""Restore executor: replaces the whole dataset with a snapshot.

The restore is all-or-nothing.  Preconditions are checked before the store
is touched; the wipe and re-insert then run in a single transaction that
either commits completely or rolls back completely.

Phases inside the transaction:

1. Delete every entity and join type, dependents first.
2. Insert entity types, dependencies first.  Self-referential types are
   inserted with the self-reference cleared, then patched with one
   update per record that had a parent.
3. Insert the join records of every many-to-many relation, once all
   entities exist.

Usage:
    from db_snapshot.snapshot.restore import RestoreExecutor

    executor = RestoreExecutor(adapter, registry, timeout=20.0, max_wait=10.0)
    result = await executor.restore(snapshot)
    if not result.success:
        print(result.error_code, result.error)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.errors import (
    ConstraintViolation,
    SnapshotError,
    StoreUnavailable,
    TransactionTimeout,
)
from db_snapshot.registry.models import EntityRegistry
from db_snapshot.registry.sequencer import DependencySequencer
from db_snapshot.snapshot.codec import decode_record, peer_ids
from db_snapshot.snapshot.models import Snapshot
from db_snapshot.snapshot.validation import check_snapshot, unknown_keys

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
DEFAULT_MAX_WAIT = 10.0


class RestoreResult(BaseModel):
    """Outcome of a restore.

    Attributes:
        success: Whether the snapshot was fully restored.
        error: Error message if the restore failed.
        error_code: Stable code of the error (``SnapshotError.code``).
        deleted: Rows deleted per entity/join type.
        inserted: Rows inserted per entity type.
        linked: Join rows inserted per join table.
    """

    success: bool
    error: str | None = None
    error_code: str | None = None
    deleted: dict[str, int] = Field(default_factory=dict)
    inserted: dict[str, int] = Field(default_factory=dict)
    linked: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def failed(cls, error: SnapshotError) -> "RestoreResult":
        return cls(success=False, error=str(error), error_code=error.code)


@dataclass
class _RestorePlan:
    """Decoded rows ready for insertion."""

    rows: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    parents: dict[str, list[tuple[Any, Any]]] = field(default_factory=dict)
    links: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


def _link_sort_key(pair: tuple[Any, Any]) -> tuple[str, str, str, str]:
    # Ids may mix int and str within one type
    left, right = pair
    return (type(left).__name__, str(left), type(right).__name__, str(right))


def translate_store_error(error: Exception) -> SnapshotError:
    """Map a store exception onto the error taxonomy."""
    if isinstance(error, SnapshotError):
        return error
    if isinstance(error, TimeoutError):
        return TransactionTimeout("Restore transaction timed out and was rolled back")
    if isinstance(error, IntegrityError):
        return ConstraintViolation(f"Store rejected restore: {error.orig}")
    if isinstance(error, (OperationalError, InterfaceError, OSError)):
        return StoreUnavailable(f"Store unavailable during restore: {error}")
    return StoreUnavailable(f"Store failed during restore: {error}")


class RestoreExecutor:
    """Atomically replaces the dataset with a snapshot.

    Only one restore runs at a time per executor; a second caller waits up
    to ``max_wait`` seconds for the first to finish, then fails with
    ``TransactionTimeout``.  The transaction itself is cancelled and rolled
    back after ``timeout`` seconds.

    Raises:
        CycleDetected: At construction, if the registry's dependencies
            contain a cycle.
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        registry: EntityRegistry,
        timeout: float = DEFAULT_TIMEOUT,
        max_wait: float = DEFAULT_MAX_WAIT,
    ) -> None:
        self._adapter = adapter
        self._registry = registry
        self._sequencer = DependencySequencer(registry)
        self._timeout = timeout
        self._max_wait = max_wait
        self._lock = asyncio.Lock()

    @property
    def sequencer(self) -> DependencySequencer:
        return self._sequencer

    async def restore(self, snapshot: Snapshot) -> RestoreResult:
        """Replace the dataset with ``snapshot``.

        Failures are returned in the result, never raised.
        """
        try:
            check_snapshot(snapshot, self._registry)
            plan = self._prepare(snapshot)
        except SnapshotError as e:
            logger.warning("Snapshot rejected before restore: %s", e)
            return RestoreResult.failed(e)

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._max_wait)
        except TimeoutError:
            logger.warning("Another restore is still running after %.1fs", self._max_wait)
            return RestoreResult.failed(
                TransactionTimeout(
                    f"Could not start restore within {self._max_wait}s: "
                    f"another restore is in progress"
                )
            )

        try:
            async with asyncio.timeout(self._timeout):
                result = await self._apply(plan)
        except (SnapshotError, SQLAlchemyError, OSError, TimeoutError) as e:
            error = translate_store_error(e)
            logger.warning("Restore rolled back: %s", error)
            return RestoreResult.failed(error)
        finally:
            self._lock.release()

        logger.info(
            "Restore committed: %d records, %d links",
            sum(result.inserted.values()),
            sum(result.linked.values()),
        )
        return result

    def _prepare(self, snapshot: Snapshot) -> _RestorePlan:
        """Decode records, strip relation fields and capture self-references."""
        for key in unknown_keys(snapshot, self._registry):
            logger.warning("Ignoring unknown snapshot key: %s", key)

        joins = {j.table: j for j in self._sequencer.joins_in_insert_order()}
        pairs: dict[str, set[tuple[Any, Any]]] = {table: set() for table in joins}
        plan = _RestorePlan()

        for entity in self._sequencer.entities_in_insert_order():
            rows: list[dict[str, Any]] = []
            parents: list[tuple[Any, Any]] = []

            for record in snapshot.records(entity.name):
                row = decode_record(entity, record)
                record_id = row[entity.pk]

                for m2m in entity.many_to_many:
                    join = joins[m2m.join_table]
                    for peer_id in peer_ids(entity, m2m.export_field, row.pop(m2m.export_field, None)):
                        if join.left.entity == entity.name and join.left.field == m2m.column:
                            pairs[join.table].add((record_id, peer_id))
                        else:
                            pairs[join.table].add((peer_id, record_id))

                if entity.self_reference and row.get(entity.self_reference) is not None:
                    parents.append((record_id, row[entity.self_reference]))
                    row[entity.self_reference] = None

                rows.append(row)

            plan.rows[entity.name] = rows
            plan.parents[entity.name] = parents

        for table, join in joins.items():
            plan.links[table] = [
                {join.left.field: left, join.right.field: right}
                for left, right in sorted(pairs[table], key=_link_sort_key)
            ]

        return plan

    async def _apply(self, plan: _RestorePlan) -> RestoreResult:
        deleted: dict[str, int] = {}
        inserted: dict[str, int] = {}
        linked: dict[str, int] = {}

        async with self._adapter.transaction(exclusive=True) as tx:
            for name, table in zip(
                self._sequencer.delete_order, self._sequencer.tables_in_delete_order()
            ):
                deleted[name] = await tx.delete_many(table)
            logger.info("Cleared %d rows", sum(deleted.values()))

            for entity in self._sequencer.entities_in_insert_order():
                rows = plan.rows[entity.name]
                inserted[entity.name] = await tx.create_many(entity.table, rows) if rows else 0

                # Second pass: reconnect each record to its parent
                for record_id, parent_id in plan.parents[entity.name]:
                    await tx.update(
                        entity.table,
                        {entity.self_reference: parent_id},
                        {entity.pk: record_id},
                    )
                logger.debug(
                    "Inserted %d %s (%d parent links)",
                    inserted[entity.name],
                    entity.name,
                    len(plan.parents[entity.name]),
                )

            for join in self._sequencer.joins_in_insert_order():
                rows = plan.links[join.table]
                linked[join.table] = await tx.create_many(join.table, rows) if rows else 0
                logger.debug("Linked %d %s rows", linked[join.table], join.table)

        return RestoreResult(success=True, deleted=deleted, inserted=inserted, linked=linked)
