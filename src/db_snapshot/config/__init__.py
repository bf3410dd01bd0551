"""Configuration loading.

Usage:
    from db_snapshot.config import load_db_config, DatabaseConfig
"""

from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings

__all__ = [
    "DatabaseConfig",
    "DatabaseProfile",
    "SnapshotSettings",
    "load_db_config",
]
