"""Database client protocol definitions.

Defines the ``DatabaseClient`` Protocol that all adapters implement and
the ``Transaction`` Protocol the snapshot builder and restore executor
work against.  All methods are ``async def``.

Usage:
    from db_snapshot.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        async with client.transaction(exclusive=True) as tx:
            await tx.delete_many("Task")
            await tx.create_many("Task", [{"id": "t1", "title": "Plan"}])
        await client.close()
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol


class Transaction(Protocol):
    """Bulk operations bound to one open transaction.

    Every call made through the same ``Transaction`` commits together when
    the owning context manager exits cleanly, and rolls back together when
    it exits with an exception.
    """

    async def find_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select every row of ``table`` matching ``filters``.

        Args:
            table: Table name.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column to sort by; a leading ``-`` sorts
                descending.

        Returns:
            List of dicts, one per row.
        """
        ...

    async def create_many(self, table: str, rows: list[dict]) -> int:
        """Insert ``rows`` into ``table``.

        Returns:
            Number of rows inserted.

        Raises:
            Exception: On duplicate key or foreign key violation.
        """
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        """Set ``data`` on rows matching ``filters``.

        Returns:
            Number of rows updated.
        """
        ...

    async def delete_many(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Delete rows matching ``filters`` (every row when ``None``).

        Returns:
            Number of rows deleted.
        """
        ...


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    Single-row CRUD methods each run in their own short transaction.  Work
    that must be atomic goes through ``transaction()``.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column to sort by; a leading ``-`` sorts
                descending.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "SystemBackup",
                "id, filename, size",
                order_by="-createdAt",
            )
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row."""
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> None:
        """Delete rows from table."""
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations).

        Raises:
            NotImplementedError: If the adapter does not support raw SQL.
        """
        ...

    def transaction(self, exclusive: bool = False) -> AbstractAsyncContextManager[Transaction]:
        """Open a transaction.

        Args:
            exclusive: Serialize against other exclusive transactions on
                the same store (used by restore).

        Example:
            async with client.transaction() as tx:
                rows = await tx.find_many("User", order_by="id")
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
