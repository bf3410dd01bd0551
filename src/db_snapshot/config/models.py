"""Pydantic models for db.toml configuration."""

from typing import Literal

from pydantic import BaseModel, Field


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"


class SnapshotSettings(BaseModel):
    """The ``[snapshot]`` section of db.toml."""

    store: Literal["database", "file"] = "database"
    table: str = "SystemBackup"  # database store table
    directory: str = "backups"  # file store location
    keep_last: int = Field(default=0, ge=0)  # 0 keeps everything
    timeout: float = Field(default=20.0, gt=0)  # restore transaction, seconds
    max_wait: float = Field(default=10.0, gt=0)  # wait for a running restore, seconds


class DatabaseConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
