"""Snapshot builder: reads the whole dataset into one ``Snapshot``.

Usage:
    from db_snapshot.snapshot.builder import SnapshotBuilder

    snapshot = await SnapshotBuilder(adapter, registry).build()
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient, Transaction
from db_snapshot.errors import StoreUnavailable
from db_snapshot.registry.models import EntityRegistry
from db_snapshot.snapshot.codec import encode_record
from db_snapshot.snapshot.models import Snapshot

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """Reads every registered entity type inside one read transaction.

    Many-to-many relations are written onto each record as a sorted list
    of peer ids under the relation's export field.
    """

    def __init__(self, adapter: DatabaseClient, registry: EntityRegistry) -> None:
        self._adapter = adapter
        self._registry = registry

    async def build(self) -> Snapshot:
        """Capture a snapshot of the current dataset.

        Raises:
            StoreUnavailable: If any read fails.  No partial snapshot is
                returned.
        """
        try:
            async with self._adapter.transaction() as tx:
                entities = await self._read_all(tx)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Snapshot build failed: %s", e)
            raise StoreUnavailable(f"Failed to read dataset: {e}") from e

        snapshot = Snapshot.capture(entities)
        logger.info(
            "Built snapshot with %d records across %d entity types",
            sum(len(rows) for rows in entities.values()),
            len(entities),
        )
        return snapshot

    async def _read_all(self, tx: Transaction) -> dict[str, list[dict[str, Any]]]:
        links = await self._read_links(tx)

        entities: dict[str, list[dict[str, Any]]] = {}
        for entity in self._registry.all_types():
            rows = await tx.find_many(entity.table, order_by=entity.pk)
            records = [encode_record(row) for row in rows]
            for m2m in entity.many_to_many:
                linked = links.get((entity.name, m2m.export_field), {})
                for record in records:
                    record[m2m.export_field] = sorted(linked.get(record[entity.pk], []))
            entities[entity.name] = records
            logger.debug("Read %d %s records", len(records), entity.name)
        return entities

    async def _read_links(self, tx: Transaction) -> dict[tuple[str, str], dict[Any, list]]:
        """Peer ids per (entity, export field), keyed by the owning record id."""
        links: dict[tuple[str, str], dict[Any, list]] = {}
        join_rows: dict[str, list[dict]] = {}

        for entity in self._registry.all_types():
            for m2m in entity.many_to_many:
                if m2m.join_table not in join_rows:
                    rows = await tx.find_many(m2m.join_table)
                    join_rows[m2m.join_table] = [encode_record(r) for r in rows]
                by_owner: dict[Any, list] = {}
                for row in join_rows[m2m.join_table]:
                    by_owner.setdefault(row[m2m.column], []).append(row[m2m.peer_column])
                links[(entity.name, m2m.export_field)] = by_owner

        return links
