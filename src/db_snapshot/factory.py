"""Profile resolution, adapter and engine construction.

Profiles live in ``db.toml``; the active one comes from the
``{prefix}DB_PROFILE`` environment variable or from the ``.db-profile``
lock file written by a successful ``connect``.

Usage:
    from db_snapshot.factory import connect_and_validate, get_engine

    result = await connect_and_validate("local")
    engine = await get_engine()
    try:
        await engine.backup()
    finally:
        await engine.close()
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.postgres import AsyncPostgresAdapter
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings
from db_snapshot.engine import SnapshotEngine
from db_snapshot.registry.business import BUSINESS_REGISTRY
from db_snapshot.registry.models import EntityRegistry
from db_snapshot.schema.coverage import ConnectionResult, check_coverage
from db_snapshot.store.base import SnapshotStore
from db_snapshot.store.database import DatabaseSnapshotStore
from db_snapshot.store.files import FileSnapshotStore

logger = logging.getLogger(__name__)

# Profile lock file path; None means ".db-profile" in the current working
# directory, resolved on every use
_PROFILE_LOCK_FILE: Path | None = None
PROFILE_LOCK_NAME = ".db-profile"


# ============================================================================
# Profile Lock File Operations
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def profile_lock_path() -> Path:
    """Location of the profile lock file (next to db.toml)."""
    if _PROFILE_LOCK_FILE is not None:
        return _PROFILE_LOCK_FILE
    return Path.cwd() / PROFILE_LOCK_NAME


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    lock_file = profile_lock_path()
    if lock_file.exists():
        return lock_file.read_text().strip()
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection.
    """
    profile_lock_path().write_text(profile_name)


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var
    2. .db-profile file (profile from previous connect)
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_var}=<name> db-snapshot connect\n"
        "Profiles are defined in db.toml"
    )


def get_active_profile(env_prefix: str = "") -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile configured
        KeyError: If profile not found in db.toml
    """
    profile_name = get_active_profile_name(env_prefix=env_prefix)
    config = load_db_config()

    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution."""
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Connection and Validation
# ============================================================================


async def connect_and_validate(
    profile_name: str | None = None,
    env_prefix: str = "",
    validate_only: bool = False,
    registry: EntityRegistry = BUSINESS_REGISTRY,
) -> ConnectionResult:
    """Connect to a profile and check the registry covers its tables.

    On success the profile is written to the lock file (unless
    ``validate_only``), making it the default for later commands.

    Args:
        profile_name: Profile name from db.toml.  If None, uses the env var
            or the existing lock file.
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        validate_only: Check only; do not write the lock file.
        registry: Registry whose tables are compared with the store.
    """
    if profile_name is None:
        try:
            profile_name = get_active_profile_name(env_prefix=env_prefix)
        except ProfileNotFoundError as e:
            return ConnectionResult(success=False, error=str(e))

    try:
        config = load_db_config()
    except (FileNotFoundError, ValueError) as e:
        return ConnectionResult(success=False, error=str(e))

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys())
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Profile '{profile_name}' not found. Available: {available}",
        )

    adapter = AsyncPostgresAdapter(database_url=resolve_url(config.profiles[profile_name]))
    try:
        actual_tables = await adapter.list_tables()
    except (SQLAlchemyError, OSError) as e:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Failed to connect to database: {e}",
        )
    finally:
        await adapter.close()

    report = check_coverage(actual_tables, registry)
    if not report.valid:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            coverage_valid=False,
            coverage_report=report,
            error=(
                f"Registry coverage check failed: {len(report.uncovered_tables)} "
                f"uncovered, {len(report.missing_tables)} missing tables"
            ),
        )

    if not validate_only:
        write_profile_lock(profile_name)
    logger.info("Connected to profile %s", profile_name)

    return ConnectionResult(
        success=True,
        profile_name=profile_name,
        coverage_valid=True,
        coverage_report=report,
    )


# ============================================================================
# Adapter, Store and Engine Factories
# ============================================================================


async def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
    config: DatabaseConfig | None = None,
) -> AsyncPostgresAdapter:
    """Create a new adapter (no caching).

    Args:
        profile_name: Profile from db.toml; defaults to the active profile.
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        database_url: Direct connection URL; profile resolution is skipped.
        config: Already loaded db.toml; read from the working directory
            when omitted.

    Raises:
        ProfileNotFoundError: If no profile is configured.
        KeyError: If the profile is not in db.toml.
    """
    if database_url is None:
        if profile_name is None:
            profile_name = get_active_profile_name(env_prefix=env_prefix)
        if config is None:
            config = load_db_config()
        if profile_name not in config.profiles:
            raise KeyError(f"Profile '{profile_name}' not found in db.toml")
        database_url = resolve_url(config.profiles[profile_name])

    return AsyncPostgresAdapter(database_url=database_url)


async def create_store(adapter: AsyncPostgresAdapter, settings: SnapshotSettings) -> SnapshotStore:
    """Snapshot store selected by the ``[snapshot]`` settings."""
    if settings.store == "file":
        return FileSnapshotStore(settings.directory)
    store = DatabaseSnapshotStore(adapter, table=settings.table)
    await store.ensure_table()
    return store


async def get_engine(
    profile_name: str | None = None,
    env_prefix: str = "",
    config: DatabaseConfig | None = None,
    registry: EntityRegistry = BUSINESS_REGISTRY,
) -> SnapshotEngine:
    """Build a ``SnapshotEngine`` for the active profile.

    The caller owns the engine and must ``await engine.close()``.

    Raises:
        ProfileNotFoundError: If no profile is configured.
        KeyError: If the profile is not in db.toml.
        FileNotFoundError: If db.toml is missing.
    """
    if config is None:
        config = load_db_config()

    settings = config.snapshot
    adapter = await get_adapter(profile_name, env_prefix=env_prefix, config=config)
    try:
        store = await create_store(adapter, settings)
    except Exception:
        await adapter.close()
        raise

    return SnapshotEngine(
        adapter,
        registry,
        store=store,
        timeout=settings.timeout,
        max_wait=settings.max_wait,
        keep_last=settings.keep_last,
    )
