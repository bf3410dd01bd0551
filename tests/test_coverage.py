"""Tests for the registry coverage check."""

from db_snapshot.registry import BUSINESS_REGISTRY
from db_snapshot.schema.coverage import CoverageReport, check_coverage

from conftest import make_registry


class TestCheckCoverage:
    """Verify store tables are compared with registry tables."""

    def test_exact_match_is_valid(self) -> None:
        registry = make_registry()
        report = check_coverage(registry.all_tables(), registry)
        assert report.valid is True
        assert report.format_report() == "Registry covers every table"

    def test_bookkeeping_tables_are_ignored(self) -> None:
        registry = make_registry()
        tables = set(registry.all_tables()) | {"_prisma_migrations", "SystemBackup"}
        assert check_coverage(tables, registry).valid is True

    def test_uncovered_table(self) -> None:
        registry = make_registry()
        tables = set(registry.all_tables()) | {"Invoice", "AuditLog"}
        report = check_coverage(tables, registry)
        assert report.valid is False
        assert report.uncovered_tables == ["AuditLog", "Invoice"]
        assert report.missing_tables == []

    def test_registry_table_missing_from_store(self) -> None:
        registry = make_registry()
        tables = set(registry.all_tables()) - {"_FeatureToOpportunity"}
        report = check_coverage(tables, registry)
        assert report.missing_tables == ["_FeatureToOpportunity"]

    def test_custom_ignore_list(self) -> None:
        registry = make_registry()
        tables = set(registry.all_tables()) | {"Scratch"}
        assert check_coverage(tables, registry, ignored={"Scratch"}).valid is True

    def test_business_registry_covers_itself(self) -> None:
        assert check_coverage(BUSINESS_REGISTRY.all_tables(), BUSINESS_REGISTRY).valid


class TestCoverageReport:
    """Verify the human-readable report."""

    def test_format_lists_both_directions(self) -> None:
        report = CoverageReport(
            valid=False,
            uncovered_tables=["Invoice"],
            missing_tables=["Task"],
        )
        text = report.format_report()
        assert "Registry coverage check failed:" in text
        assert "Tables not in registry (1):" in text
        assert "    - Invoice" in text
        assert "Registry tables missing from store (1):" in text
        assert "    - Task" in text
