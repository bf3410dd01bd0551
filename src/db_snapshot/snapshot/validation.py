"""Snapshot precondition checks.

Everything here runs without touching the store, so a restore can refuse a
snapshot before any destructive work begins.

Usage:
    from db_snapshot.snapshot.validation import check_snapshot, validate_snapshot

    check_snapshot(snapshot, registry)           # raises on the first problem
    report = validate_snapshot(document, registry)
    report["valid"], report["errors"], report["warnings"]
"""

from typing import Any

from db_snapshot.errors import (
    ConstraintViolation,
    InvalidFormat,
    SnapshotError,
    UnsupportedVersion,
)
from db_snapshot.registry.models import EntityRegistry
from db_snapshot.snapshot.codec import peer_ids
from db_snapshot.snapshot.models import SUPPORTED_VERSIONS, Snapshot

_ID_TYPES = (str, int)


def _resolves(value: Any, pool: set) -> bool:
    return isinstance(value, _ID_TYPES) and value in pool


def check_version(snapshot: Snapshot) -> None:
    if snapshot.version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(
            f"Unsupported snapshot version '{snapshot.version}' "
            f"(supported: {', '.join(sorted(SUPPORTED_VERSIONS))})"
        )


def collect_ids(
    snapshot: Snapshot, registry: EntityRegistry
) -> tuple[dict[str, set], list[InvalidFormat]]:
    """Primary key values per entity type, plus format problems found."""
    ids: dict[str, set] = {}
    problems: list[InvalidFormat] = []

    root = registry.root
    if not snapshot.records(root.name):
        problems.append(InvalidFormat(f"Snapshot has no {root.name} records"))

    for entity in registry.all_types():
        seen: set = set()
        for position, record in enumerate(snapshot.records(entity.name)):
            value = record.get(entity.pk)
            if value is None or value == "":
                problems.append(
                    InvalidFormat(
                        f"{entity.name}[{position}] has no '{entity.pk}' value"
                    )
                )
                continue
            if not isinstance(value, _ID_TYPES):
                problems.append(
                    InvalidFormat(f"{entity.name}[{position}] has a non-scalar id")
                )
                continue
            if value in seen:
                problems.append(
                    InvalidFormat(f"{entity.name} has duplicate id {value!r}")
                )
            seen.add(value)
        ids[entity.name] = seen

    return ids, problems


def check_references(
    snapshot: Snapshot, registry: EntityRegistry, ids: dict[str, set]
) -> list[SnapshotError]:
    """Every dangling reference in the snapshot.

    Non-null foreign keys, self-references and many-to-many peer ids must
    resolve to a record of the referenced type inside the snapshot.
    """
    problems: list[SnapshotError] = []

    for entity in registry.all_types():
        for record in snapshot.records(entity.name):
            record_id = record.get(entity.pk)

            for fk in entity.foreign_keys:
                value = record.get(fk.field)
                if value is None:
                    if not fk.nullable:
                        problems.append(
                            ConstraintViolation(
                                f"{entity.name} {record_id!r}: required "
                                f"{fk.field} is null"
                            )
                        )
                elif not _resolves(value, ids[fk.entity]):
                    problems.append(
                        ConstraintViolation(
                            f"{entity.name} {record_id!r}: {fk.field}={value!r} "
                            f"has no matching {fk.entity} record"
                        )
                    )

            if entity.self_reference:
                value = record.get(entity.self_reference)
                if value is not None and not _resolves(value, ids[entity.name]):
                    problems.append(
                        ConstraintViolation(
                            f"{entity.name} {record_id!r}: "
                            f"{entity.self_reference}={value!r} has no matching "
                            f"{entity.name} record"
                        )
                    )

            for m2m in entity.many_to_many:
                try:
                    peers = peer_ids(entity, m2m.export_field, record.get(m2m.export_field))
                except InvalidFormat as e:
                    problems.append(e)
                    continue
                for peer_id in peers:
                    if not _resolves(peer_id, ids[m2m.peer]):
                        problems.append(
                            ConstraintViolation(
                                f"{entity.name} {record_id!r}: {m2m.export_field} "
                                f"links missing {m2m.peer} record {peer_id!r}"
                            )
                        )

    return problems


def collect_problems(snapshot: Snapshot, registry: EntityRegistry) -> list[SnapshotError]:
    """All precondition failures, version first, then format, then references."""
    try:
        check_version(snapshot)
    except UnsupportedVersion as e:
        return [e]

    ids, problems = collect_ids(snapshot, registry)
    if problems:
        return list(problems)
    return check_references(snapshot, registry, ids)


def check_snapshot(snapshot: Snapshot, registry: EntityRegistry) -> None:
    """Raise the first precondition failure, if any.

    Raises:
        UnsupportedVersion: Version tag is not supported.
        InvalidFormat: Missing root records, missing or duplicate ids.
        ConstraintViolation: A reference does not resolve inside the snapshot.
    """
    problems = collect_problems(snapshot, registry)
    if problems:
        raise problems[0]


def unknown_keys(snapshot: Snapshot, registry: EntityRegistry) -> list[str]:
    """Snapshot keys that name no registered entity type."""
    return sorted(k for k in snapshot.entities if not registry.has(k))


def validate_snapshot(document: Any, registry: EntityRegistry) -> dict:
    """Check a snapshot document without restoring it.

    Args:
        document: Parsed JSON document, JSON text, or a ``Snapshot``.
        registry: Entity registry to validate against.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        ``warnings`` (list[str]) and ``counts`` (records per entity type).
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        if isinstance(document, Snapshot):
            snapshot = document
        elif isinstance(document, (str, bytes)):
            snapshot = Snapshot.from_json(document)
        else:
            snapshot = Snapshot.from_document(document)
    except InvalidFormat as e:
        errors.append(str(e))
        return {"valid": False, "errors": errors, "warnings": warnings, "counts": {}}

    for key in unknown_keys(snapshot, registry):
        warnings.append(f"Unknown snapshot key ignored: {key}")
    for entity in registry.all_types():
        if entity.name not in snapshot.entities:
            warnings.append(f"Missing entity key treated as empty: {entity.name}")

    errors.extend(str(p) for p in collect_problems(snapshot, registry))

    counts = {e.name: len(snapshot.records(e.name)) for e in registry.all_types()}
    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "counts": counts,
    }
