"""Record value encoding for export and typed decoding for restore."""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from db_snapshot.errors import InvalidFormat
from db_snapshot.registry.models import EntityDef


def encode_value(value: Any) -> Any:
    """Convert a store value to a JSON-compatible one."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    return value


def encode_record(row: dict[str, Any]) -> dict[str, Any]:
    return {k: encode_value(v) for k, v in row.items()}


def _decode_value(kind: str, value: Any) -> Any:
    if kind == "datetime":
        parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
        # Stored as naive UTC (timestamp without time zone)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    if kind == "date":
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value)[:10])
    if kind == "decimal":
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))
    return value


def decode_record(entity: EntityDef, record: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``record`` with typed fields decoded for insertion.

    Raises:
        InvalidFormat: If a typed field holds an unreadable value.
    """
    decoded = dict(record)
    for field, kind in entity.field_types.items():
        value = decoded.get(field)
        if value is None:
            continue
        try:
            decoded[field] = _decode_value(kind, value)
        except (ValueError, TypeError, InvalidOperation) as e:
            raise InvalidFormat(
                f"{entity.name}.{field}: cannot read {value!r} as {kind}"
            ) from e
    return decoded


def peer_ids(entity: EntityDef, field: str, value: Any) -> list[Any]:
    """Peer ids from an exported many-to-many field.

    Accepts plain ids as well as ``{"id": ...}`` objects.

    Raises:
        InvalidFormat: If the value is not a list of ids.
    """
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidFormat(f"{entity.name}.{field} must be a list of ids")
    ids: list[Any] = []
    for item in value:
        if isinstance(item, dict):
            if "id" not in item:
                raise InvalidFormat(f"{entity.name}.{field} entry has no 'id'")
            ids.append(item["id"])
        else:
            ids.append(item)
    return ids
