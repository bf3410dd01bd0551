"""Load db.toml into ``DatabaseConfig``.

Example db.toml:

    [profiles.local]
    url = "postgresql://localhost:5432/app"
    description = "Local database"

    [snapshot]
    store = "file"
    directory = "backups"
    keep_last = 30
"""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ``db.toml`` in the current
            working directory).

    Returns:
        DatabaseConfig with all profiles and snapshot settings.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config format is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create db.toml with at least one [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        profiles = {
            name: DatabaseProfile(**profile_data)
            for name, profile_data in data.get("profiles", {}).items()
        }
        snapshot = SnapshotSettings(**data.get("snapshot", {}))
    except (TypeError, ValidationError) as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    return DatabaseConfig(profiles=profiles, snapshot=snapshot)
