"""Database adapters implementing the ``DatabaseClient`` protocol.

Usage:
    from db_snapshot.adapters import AsyncPostgresAdapter, DatabaseClient
    from db_snapshot.adapters import MemoryAdapter
"""

from db_snapshot.adapters.base import DatabaseClient, Transaction
from db_snapshot.adapters.memory import MemoryAdapter
from db_snapshot.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "AsyncPostgresAdapter",
    "DatabaseClient",
    "MemoryAdapter",
    "Transaction",
]
