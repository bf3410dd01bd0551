"""Entity registry models for declarative dataset structure.

The registry declares every entity type in the dataset, its foreign keys,
its self-reference and its many-to-many relations.  Snapshot, sequencing
and restore are all driven by it -- adding an entity type is a data change.

Usage:
    from db_snapshot.registry.models import (
        EntityDef, EntityRegistry, ForeignKey, ManyToMany,
    )

    registry = EntityRegistry(entities=[
        EntityDef(name="authors", table="Author", root=True),
        EntityDef(name="books", table="Book",
                  foreign_keys=[ForeignKey(entity="authors", field="authorId")],
                  self_reference="sequelId",
                  many_to_many=[ManyToMany(peer="tags", export_field="tags",
                                           join_table="_BookToTag",
                                           column="A", peer_column="B")]),
        EntityDef(name="tags", table="Tag"),
    ])
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from db_snapshot.errors import RegistryError

FieldType = Literal["datetime", "date", "decimal"]


class ForeignKey(BaseModel):
    """Foreign key reference to another entity type."""

    entity: str             # referenced entity name
    field: str              # FK column in this table
    nullable: bool = False


class ManyToMany(BaseModel):
    """Implicit many-to-many relation kept in a join table."""

    peer: str               # peer entity name
    export_field: str       # snapshot key holding the peer ids
    join_table: str         # join table name
    column: str             # join column holding this entity's id
    peer_column: str        # join column holding the peer's id


class JoinDef(BaseModel):
    """A join-record type: one row per linked peer-id pair."""

    table: str
    left: ForeignKey
    right: ForeignKey

    @property
    def name(self) -> str:
        return self.table


class EntityDef(BaseModel):
    """Definition of one entity type for snapshot/restore operations."""

    name: str                                           # snapshot key
    table: str                                          # store table name
    pk: str = "id"                                      # primary key column
    foreign_keys: list[ForeignKey] = Field(default_factory=list)
    self_reference: str | None = None                   # FK column to own type
    many_to_many: list[ManyToMany] = Field(default_factory=list)
    root: bool = False                                  # root identity type
    field_types: dict[str, FieldType] = Field(default_factory=dict)


class EntityRegistry(BaseModel):
    """Declarative registry of every entity type in the dataset.

    Entities are kept in declaration order, which the sequencer uses to
    break ties between equally eligible types.
    """

    entities: list[EntityDef]

    @model_validator(mode="after")
    def _check_consistency(self) -> "EntityRegistry":
        names = [e.name for e in self.entities]
        tables = [e.table for e in self.entities]
        duplicate_names = sorted({n for n in names if names.count(n) > 1})
        if duplicate_names:
            raise RegistryError(f"Duplicate entity names: {', '.join(duplicate_names)}")
        duplicate_tables = sorted({t for t in tables if tables.count(t) > 1})
        if duplicate_tables:
            raise RegistryError(f"Duplicate entity tables: {', '.join(duplicate_tables)}")

        roots = [e.name for e in self.entities if e.root]
        if len(roots) != 1:
            raise RegistryError(
                f"Registry needs exactly one root entity, found {len(roots)}"
            )

        known = set(names)
        for entity in self.entities:
            for fk in entity.foreign_keys:
                if fk.entity not in known:
                    raise RegistryError(
                        f"{entity.name}.{fk.field} references unknown entity '{fk.entity}'"
                    )
                if fk.entity == entity.name:
                    raise RegistryError(
                        f"{entity.name}.{fk.field} points at its own type; "
                        f"declare it as self_reference"
                    )
            for m2m in entity.many_to_many:
                if m2m.peer not in known:
                    raise RegistryError(
                        f"{entity.name}.{m2m.export_field} links unknown entity '{m2m.peer}'"
                    )
                if m2m.join_table in known:
                    raise RegistryError(
                        f"Join table '{m2m.join_table}' clashes with an entity name"
                    )
                mirror = self._mirror_of(entity, m2m)
                if mirror is not None and (
                    mirror.peer != entity.name
                    or mirror.column != m2m.peer_column
                    or mirror.peer_column != m2m.column
                ):
                    raise RegistryError(
                        f"Many-to-many '{m2m.join_table}' is declared inconsistently "
                        f"by {entity.name} and {m2m.peer}"
                    )
        return self

    def _mirror_of(self, entity: EntityDef, m2m: ManyToMany) -> ManyToMany | None:
        for peer in self.entities:
            if peer.name != m2m.peer:
                continue
            for other in peer.many_to_many:
                if other.join_table == m2m.join_table and other is not m2m:
                    return other
        return None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def all_types(self) -> list[EntityDef]:
        """Every entity type, in declaration order."""
        return list(self.entities)

    def get(self, name: str) -> EntityDef:
        """Find an entity by name.

        Raises:
            RegistryError: If no entity has that name.
        """
        for entity in self.entities:
            if entity.name == name:
                return entity
        raise RegistryError(f"Unknown entity type: {name}")

    def has(self, name: str) -> bool:
        return any(e.name == name for e in self.entities)

    @property
    def root(self) -> EntityDef:
        """The root identity type every other type ultimately depends on."""
        return next(e for e in self.entities if e.root)

    def dependencies_of(self, name: str) -> list[str]:
        """Entity names that ``name`` holds a foreign key toward (self excluded)."""
        deps: list[str] = []
        for fk in self.get(name).foreign_keys:
            if fk.entity != name and fk.entity not in deps:
                deps.append(fk.entity)
        return deps

    def is_self_referential(self, name: str) -> bool:
        return self.get(name).self_reference is not None

    def many_to_many_peers(self, name: str) -> list[tuple[str, str]]:
        """``(peer, export_field)`` pairs for the many-to-many relations of ``name``."""
        return [(m.peer, m.export_field) for m in self.get(name).many_to_many]

    def join_tables(self) -> list[JoinDef]:
        """One join-record type per distinct join table, in declaration order."""
        joins: list[JoinDef] = []
        seen: set[str] = set()
        for entity in self.entities:
            for m2m in entity.many_to_many:
                if m2m.join_table in seen:
                    continue
                seen.add(m2m.join_table)
                joins.append(
                    JoinDef(
                        table=m2m.join_table,
                        left=ForeignKey(entity=entity.name, field=m2m.column),
                        right=ForeignKey(entity=m2m.peer, field=m2m.peer_column),
                    )
                )
        return joins

    # ------------------------------------------------------------------
    # Table-level constraint maps
    # ------------------------------------------------------------------

    def primary_keys(self) -> dict[str, str]:
        """Map of entity table -> primary key column."""
        return {e.table: e.pk for e in self.entities}

    def foreign_key_map(self) -> dict[str, dict[str, str]]:
        """Map of table -> {FK column: referenced table}, join tables included."""
        tables = {e.name: e.table for e in self.entities}
        fk_map: dict[str, dict[str, str]] = {}
        for entity in self.entities:
            columns = {fk.field: tables[fk.entity] for fk in entity.foreign_keys}
            if entity.self_reference:
                columns[entity.self_reference] = entity.table
            fk_map[entity.table] = columns
        for join in self.join_tables():
            fk_map[join.table] = {
                join.left.field: tables[join.left.entity],
                join.right.field: tables[join.right.entity],
            }
        return fk_map

    def all_tables(self) -> set[str]:
        """Every table the registry covers, join tables included."""
        return {e.table for e in self.entities} | {j.table for j in self.join_tables()}
