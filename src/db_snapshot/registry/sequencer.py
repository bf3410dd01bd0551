"""Dependency sequencing for restore ordering.

Computes a deterministic topological order over every entity type and
join-record type of an ``EntityRegistry``: a type always comes after the
types it holds foreign keys toward.  Self-references are not edges -- they
are resolved by the executor's two-pass insert.

Usage:
    from db_snapshot.registry.sequencer import DependencySequencer

    sequencer = DependencySequencer(registry)   # raises CycleDetected
    sequencer.insert_order   # parents first
    sequencer.delete_order   # children first
"""

import logging

from db_snapshot.errors import CycleDetected
from db_snapshot.registry.models import EntityDef, EntityRegistry, JoinDef

logger = logging.getLogger(__name__)


def _build_graph(registry: EntityRegistry) -> tuple[list[str], dict[str, list[str]]]:
    """Nodes in declaration order and their dependency lists.

    Entities come first in registry order, then join types.  A join type
    depends on both peers it links.
    """
    nodes: list[str] = []
    dependencies: dict[str, list[str]] = {}

    for entity in registry.all_types():
        nodes.append(entity.name)
        dependencies[entity.name] = registry.dependencies_of(entity.name)

    for join in registry.join_tables():
        nodes.append(join.name)
        dependencies[join.name] = list(
            dict.fromkeys([join.left.entity, join.right.entity])
        )

    return nodes, dependencies


def topological_order(nodes: list[str], dependencies: dict[str, list[str]]) -> list[str]:
    """Order ``nodes`` so every node follows its dependencies.

    Repeatedly places the first node, in ``nodes`` order, whose
    dependencies are all placed.  Ties therefore resolve by declaration
    order and the result is identical across runs.

    Raises:
        CycleDetected: If some nodes can never become ready.
    """
    placed: list[str] = []
    placed_set: set[str] = set()
    remaining = list(nodes)

    while remaining:
        for node in remaining:
            if all(d == node or d in placed_set for d in dependencies.get(node, [])):
                placed.append(node)
                placed_set.add(node)
                remaining.remove(node)
                break
        else:
            raise CycleDetected(_cycle_members(remaining, dependencies))

    return placed


def _cycle_members(remaining: list[str], dependencies: dict[str, list[str]]) -> list[str]:
    """Nodes that sit on a cycle (not merely downstream of one)."""
    stuck = set(remaining)

    def reaches(start: str, target: str) -> bool:
        seen: set[str] = set()
        stack = [d for d in dependencies.get(start, []) if d in stuck and d != start]
        while stack:
            node = stack.pop()
            if node == target:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(d for d in dependencies.get(node, []) if d in stuck and d != node)
        return False

    members = [n for n in remaining if reaches(n, n)]
    return members or list(remaining)


class DependencySequencer:
    """Insert and delete order for a registry.

    Construction fails with ``CycleDetected`` when the registry's
    dependency graph is not acyclic, so a bad registry is caught before
    any destructive work begins.
    """

    def __init__(self, registry: EntityRegistry) -> None:
        self._registry = registry
        self._joins = {j.name: j for j in registry.join_tables()}
        nodes, dependencies = _build_graph(registry)
        self._insert_order = topological_order(nodes, dependencies)
        logger.debug("Insert order: %s", ", ".join(self._insert_order))

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def insert_order(self) -> list[str]:
        """Dependencies before dependents."""
        return list(self._insert_order)

    @property
    def delete_order(self) -> list[str]:
        """Dependents before dependencies (reverse of ``insert_order``)."""
        return list(reversed(self._insert_order))

    def index(self, name: str) -> int:
        return self._insert_order.index(name)

    def is_join(self, name: str) -> bool:
        return name in self._joins

    def entities_in_insert_order(self) -> list[EntityDef]:
        return [
            self._registry.get(n) for n in self._insert_order if n not in self._joins
        ]

    def joins_in_insert_order(self) -> list[JoinDef]:
        return [self._joins[n] for n in self._insert_order if n in self._joins]

    def tables_in_delete_order(self) -> list[str]:
        """Store tables to clear, children first."""
        tables: list[str] = []
        for name in self.delete_order:
            if name in self._joins:
                tables.append(self._joins[name].table)
            else:
                tables.append(self._registry.get(name).table)
        return tables
