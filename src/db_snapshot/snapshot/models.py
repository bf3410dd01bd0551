"""Snapshot document model.

A snapshot is one immutable, versioned, timestamped document holding
every record of every entity type.  On the wire it is a flat JSON object::

    {
      "version": "1.0",
      "timestamp": "2026-01-15T09:30:00+00:00",
      "users": [{"id": "u1", "name": "Alice"}],
      "tasks": [{"id": "t1", "parentId": null}, ...]
    }

Usage:
    from db_snapshot.snapshot.models import Snapshot

    snapshot = Snapshot.from_json(path.read_text())
    text = snapshot.to_json()
"""

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from db_snapshot.errors import InvalidFormat

CURRENT_VERSION = "1.0"
SUPPORTED_VERSIONS = frozenset({"1.0"})

# Top-level document keys that are not entity record lists
HEADER_KEYS = ("version", "timestamp")


class Snapshot(BaseModel):
    """Full-dataset snapshot: entity name -> list of records."""

    model_config = ConfigDict(frozen=True)

    version: str
    timestamp: datetime
    entities: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)

    @classmethod
    def capture(cls, entities: dict[str, list[dict[str, Any]]]) -> "Snapshot":
        """New snapshot at the current format version, stamped now (UTC)."""
        return cls(
            version=CURRENT_VERSION,
            timestamp=datetime.now(timezone.utc),
            entities=entities,
        )

    def records(self, name: str) -> list[dict[str, Any]]:
        """Records of one entity type (empty when the snapshot has none)."""
        return self.entities.get(name, [])

    def counts(self) -> dict[str, int]:
        return {name: len(rows) for name, rows in self.entities.items()}

    # ------------------------------------------------------------------
    # Document conversion
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
        }
        document.update(self.entities)
        return document

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_document(), indent=indent, default=str)

    @classmethod
    def from_document(cls, data: Any) -> "Snapshot":
        """Parse a snapshot document.

        Only the structure is checked here; version support and
        referential integrity are checked by ``check_snapshot``.

        Raises:
            InvalidFormat: If the document is not an object, lacks a
                version or timestamp, or holds an entity key whose value
                is not a list of objects.
        """
        if not isinstance(data, dict):
            raise InvalidFormat("Snapshot document must be a JSON object")

        version = data.get("version")
        if not version or not isinstance(version, str):
            raise InvalidFormat("Snapshot is missing its version")

        raw_timestamp = data.get("timestamp")
        if not raw_timestamp:
            raise InvalidFormat("Snapshot is missing its timestamp")
        try:
            timestamp = (
                raw_timestamp
                if isinstance(raw_timestamp, datetime)
                else datetime.fromisoformat(str(raw_timestamp))
            )
        except ValueError as e:
            raise InvalidFormat(f"Invalid snapshot timestamp: {raw_timestamp!r}") from e

        entities: dict[str, list[dict[str, Any]]] = {}
        for key, value in data.items():
            if key in HEADER_KEYS:
                continue
            if not isinstance(value, list) or not all(isinstance(r, dict) for r in value):
                raise InvalidFormat(f"Snapshot key '{key}' must be a list of records")
            entities[key] = value

        return cls(version=version, timestamp=timestamp, entities=entities)

    @classmethod
    def from_json(cls, text: str | bytes) -> "Snapshot":
        """Parse a JSON snapshot.

        Raises:
            InvalidFormat: If the text is not valid JSON or not a snapshot.
        """
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidFormat(f"Invalid JSON: {e}") from e
        return cls.from_document(data)
