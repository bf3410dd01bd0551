"""In-memory database adapter.

Implements the ``DatabaseClient`` protocol over plain dicts for tests and
local development.  Primary keys and foreign keys are enforced the way a
relational store enforces them:

- inserting a duplicate primary key fails;
- inserting or updating a foreign key to a missing row fails;
- deleting a row that other rows still reference fails (restrict).

Transactions work on a private copy of every table and publish it only
when the ``async with`` block exits cleanly, so a failed transaction
leaves the store untouched.  One transaction runs at a time.

Usage:
    from db_snapshot.adapters.memory import MemoryAdapter

    adapter = MemoryAdapter.for_registry(BUSINESS_REGISTRY)
    async with adapter.transaction() as tx:
        await tx.create_many("User", [{"id": "u1", "name": "Alice"}])
    adapter.rows("User")
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from db_snapshot.errors import ConstraintViolation
from db_snapshot.registry.models import EntityRegistry


def _matches(row: dict, filters: dict[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(row.get(k) == v for k, v in filters.items())


def _sorted(rows: list[dict], order_by: str | None) -> list[dict]:
    if not order_by:
        return rows
    reverse = order_by.startswith("-")
    column = order_by.lstrip("-")
    # None sorts first, like NULLS FIRST
    return sorted(
        rows,
        key=lambda r: (r.get(column) is not None, r.get(column)),
        reverse=reverse,
    )


class _MemoryTransaction:
    """``Transaction`` over a working copy of the adapter's tables."""

    def __init__(
        self,
        tables: dict[str, list[dict]],
        foreign_keys: dict[str, dict[str, str]],
        primary_keys: dict[str, str],
    ) -> None:
        self._tables = tables
        self._foreign_keys = foreign_keys
        self._primary_keys = primary_keys

    def _pk(self, table: str) -> str | None:
        return self._primary_keys.get(table)

    def _exists(self, table: str, value: Any) -> bool:
        pk = self._primary_keys.get(table, "id")
        return any(r.get(pk) == value for r in self._tables.get(table, []))

    def _check_references(self, table: str, row: dict, columns: list[str] | None = None) -> None:
        for column, target in self._foreign_keys.get(table, {}).items():
            if columns is not None and column not in columns:
                continue
            value = row.get(column)
            if value is not None and not self._exists(target, value):
                raise ConstraintViolation(
                    f"{table}.{column}={value!r} references a missing {target} row"
                )

    async def find_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        rows = [dict(r) for r in self._tables.get(table, []) if _matches(r, filters)]
        return _sorted(rows, order_by)

    async def create_many(self, table: str, rows: list[dict]) -> int:
        existing = self._tables.setdefault(table, [])
        pk = self._pk(table)
        for row in rows:
            if pk is not None:
                if row.get(pk) is None:
                    raise ConstraintViolation(f"{table} row has no {pk}")
                if self._exists(table, row[pk]):
                    raise ConstraintViolation(f"{table}.{pk}={row[pk]!r} already exists")
            self._check_references(table, row)
            existing.append(copy.deepcopy(row))
        return len(rows)

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        count = 0
        for row in self._tables.get(table, []):
            if _matches(row, filters):
                row.update(copy.deepcopy(data))
                self._check_references(table, row, list(data.keys()))
                count += 1
        return count

    async def delete_many(self, table: str, filters: dict[str, Any] | None = None) -> int:
        rows = self._tables.get(table, [])
        doomed = [r for r in rows if _matches(r, filters)]
        if not doomed:
            return 0

        pk = self._primary_keys.get(table, "id")
        doomed_ids = {r.get(pk) for r in doomed}
        doomed_refs = {id(r) for r in doomed}

        # Restrict: no surviving row may still point at a deleted one
        for other_table, columns in self._foreign_keys.items():
            for column, target in columns.items():
                if target != table:
                    continue
                for other in self._tables.get(other_table, []):
                    if other_table == table and id(other) in doomed_refs:
                        continue
                    if other.get(column) in doomed_ids:
                        raise ConstraintViolation(
                            f"Cannot delete {table} row {other[column]!r}: "
                            f"still referenced by {other_table}.{column}"
                        )

        self._tables[table] = [r for r in rows if id(r) not in doomed_refs]
        return len(doomed)


class MemoryAdapter:
    """In-memory implementation of the ``DatabaseClient`` protocol.

    Args:
        tables: Initial rows per table name.
        foreign_keys: Map of table -> {FK column: referenced table}.
        primary_keys: Map of table -> primary key column.  Tables not
            listed accept rows without key checks.
    """

    def __init__(
        self,
        tables: dict[str, list[dict]] | None = None,
        foreign_keys: dict[str, dict[str, str]] | None = None,
        primary_keys: dict[str, str] | None = None,
    ) -> None:
        self._tables: dict[str, list[dict]] = copy.deepcopy(tables or {})
        self._foreign_keys = foreign_keys or {}
        self._primary_keys = primary_keys or {}
        self._lock = asyncio.Lock()
        self.closed = False

    @classmethod
    def for_registry(
        cls,
        registry: EntityRegistry,
        tables: dict[str, list[dict]] | None = None,
    ) -> "MemoryAdapter":
        """Adapter enforcing the keys a registry declares."""
        return cls(
            tables=tables,
            foreign_keys=registry.foreign_key_map(),
            primary_keys=registry.primary_keys(),
        )

    def rows(self, table: str) -> list[dict]:
        """Committed rows of ``table`` (copies)."""
        return copy.deepcopy(self._tables.get(table, []))

    def tables(self) -> dict[str, list[dict]]:
        """Committed rows of every table (copies)."""
        return copy.deepcopy(self._tables)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self, exclusive: bool = False) -> AsyncIterator[_MemoryTransaction]:
        async with self._lock:
            working = copy.deepcopy(self._tables)
            yield _MemoryTransaction(working, self._foreign_keys, self._primary_keys)
            # Only reached when the block exits without an exception
            self._tables = working

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        async with self.transaction() as tx:
            rows = await tx.find_many(table, filters, order_by)
        if columns.strip() == "*":
            return rows
        wanted = [c.strip() for c in columns.split(",") if c.strip()]
        return [{c: r.get(c) for c in wanted} for r in rows]

    async def insert(self, table: str, data: dict) -> dict:
        async with self.transaction() as tx:
            await tx.create_many(table, [data])
        return dict(data)

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        async with self.transaction() as tx:
            await tx.delete_many(table, filters)

    async def execute(self, sql: str, params: dict | None = None) -> None:
        raise NotImplementedError("MemoryAdapter does not execute raw SQL")

    async def close(self) -> None:
        self.closed = True
