"""Registry coverage check against the live store.

An entity type that exists in the store but not in the registry is left
out of every snapshot without any error, and a restore then wipes
everything else while that table keeps stale rows.  This check lists
such tables so the registry can be updated.

Usage:
    from db_snapshot.schema.coverage import check_coverage

    report = check_coverage(await adapter.list_tables(), BUSINESS_REGISTRY)
    print(report.format_report())
"""

from pydantic import BaseModel, Field

from db_snapshot.registry.models import EntityRegistry

# Bookkeeping tables that are never part of the dataset
IGNORED_TABLES = frozenset({"_prisma_migrations", "alembic_version", "SystemBackup"})


class CoverageReport(BaseModel):
    """Result of comparing the registry with the store's tables."""

    valid: bool
    uncovered_tables: list[str] = Field(default_factory=list)
    missing_tables: list[str] = Field(default_factory=list)

    def format_report(self) -> str:
        if self.valid:
            return "Registry covers every table"

        lines = ["Registry coverage check failed:"]
        if self.uncovered_tables:
            lines.append(f"\n  Tables not in registry ({len(self.uncovered_tables)}):")
            for table in self.uncovered_tables:
                lines.append(f"    - {table}")
        if self.missing_tables:
            lines.append(f"\n  Registry tables missing from store ({len(self.missing_tables)}):")
            for table in self.missing_tables:
                lines.append(f"    - {table}")
        return "\n".join(lines)


def check_coverage(
    actual_tables: list[str] | set[str],
    registry: EntityRegistry,
    ignored: frozenset[str] | set[str] = IGNORED_TABLES,
) -> CoverageReport:
    """Compare store tables with the tables the registry covers.

    Args:
        actual_tables: Table names present in the store.
        registry: Entity registry.
        ignored: Tables excluded from the comparison.
    """
    actual = set(actual_tables) - set(ignored)
    expected = registry.all_tables()

    uncovered = sorted(actual - expected)
    missing = sorted(expected - actual)

    return CoverageReport(
        valid=not uncovered and not missing,
        uncovered_tables=uncovered,
        missing_tables=missing,
    )


class ConnectionResult(BaseModel):
    """Result of connect_and_validate()."""

    success: bool
    profile_name: str | None = None
    coverage_valid: bool | None = None
    coverage_report: CoverageReport | None = None
    error: str | None = None
