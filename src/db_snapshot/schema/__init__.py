"""Live-schema checks.

Usage:
    from db_snapshot.schema import check_coverage, CoverageReport
"""

from db_snapshot.schema.coverage import ConnectionResult, CoverageReport, check_coverage

__all__ = ["ConnectionResult", "CoverageReport", "check_coverage"]
