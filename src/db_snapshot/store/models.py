"""Stored snapshot metadata."""

from datetime import datetime

from pydantic import BaseModel


class SnapshotDescriptor(BaseModel):
    """Metadata of a stored snapshot; the payload is fetched separately."""

    id: str
    filename: str
    size_bytes: int
    created_at: datetime
