"""Shared fixtures: a small registry and snapshots that exercise every feature."""

from datetime import datetime, timezone

import pytest

from db_snapshot.adapters.memory import MemoryAdapter
from db_snapshot.registry.models import EntityDef, EntityRegistry, ForeignKey, ManyToMany
from db_snapshot.snapshot.models import Snapshot


def make_registry() -> EntityRegistry:
    """users <- accounts <- opportunities <-> features -> products, tasks -> users (+ parent)."""
    return EntityRegistry(
        entities=[
            EntityDef(name="users", table="User", root=True, field_types={"createdAt": "datetime"}),
            EntityDef(
                name="accounts",
                table="Account",
                foreign_keys=[ForeignKey(entity="users", field="ownerId", nullable=True)],
            ),
            EntityDef(
                name="opportunities",
                table="Opportunity",
                foreign_keys=[ForeignKey(entity="accounts", field="accountId")],
                many_to_many=[
                    ManyToMany(
                        peer="features",
                        export_field="features",
                        join_table="_FeatureToOpportunity",
                        column="B",
                        peer_column="A",
                    )
                ],
                field_types={"estimatedValue": "decimal"},
            ),
            EntityDef(name="products", table="Product"),
            EntityDef(
                name="features",
                table="Feature",
                foreign_keys=[ForeignKey(entity="products", field="productId")],
                many_to_many=[
                    ManyToMany(
                        peer="opportunities",
                        export_field="opportunities",
                        join_table="_FeatureToOpportunity",
                        column="A",
                        peer_column="B",
                    )
                ],
            ),
            EntityDef(
                name="tasks",
                table="Task",
                foreign_keys=[ForeignKey(entity="users", field="assigneeId", nullable=True)],
                self_reference="parentId",
            ),
        ]
    )


def make_snapshot(**overrides) -> Snapshot:
    """A consistent snapshot of the small registry's dataset."""
    entities = {
        "users": [{"id": "u1", "name": "Alice", "createdAt": "2026-01-02T03:04:05"}],
        "accounts": [{"id": "a1", "name": "Acme", "ownerId": "u1"}],
        "opportunities": [
            {"id": "o1", "accountId": "a1", "estimatedValue": "1200.50", "features": ["f1", "f2"]},
            {"id": "o2", "accountId": "a1", "estimatedValue": None, "features": ["f1"]},
        ],
        "products": [{"id": "p1", "name": "Widget"}],
        "features": [
            {"id": "f1", "productId": "p1", "opportunities": ["o1", "o2"]},
            {"id": "f2", "productId": "p1", "opportunities": ["o1"]},
        ],
        "tasks": [
            {"id": "t1", "title": "Epic", "assigneeId": "u1", "parentId": None},
            {"id": "t2", "title": "Story", "assigneeId": None, "parentId": "t1"},
        ],
    }
    entities.update(overrides)
    return Snapshot(
        version="1.0",
        timestamp=datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc),
        entities=entities,
    )


@pytest.fixture
def registry() -> EntityRegistry:
    return make_registry()


@pytest.fixture
def snapshot() -> Snapshot:
    return make_snapshot()


@pytest.fixture
def adapter(registry: EntityRegistry) -> MemoryAdapter:
    """Empty in-memory store enforcing the small registry's keys."""
    return MemoryAdapter.for_registry(registry)
