"""Tests for the db-snapshot command line."""

import asyncio
import json
import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from db_snapshot.adapters.memory import MemoryAdapter
from db_snapshot.cli import main
from db_snapshot.engine import SnapshotEngine
from db_snapshot.factory import ProfileNotFoundError
from db_snapshot.schema.coverage import ConnectionResult
from db_snapshot.store.files import FileSnapshotStore

from conftest import make_registry, make_snapshot


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("db_snapshot.cli.console", Console(width=200))
    monkeypatch.setattr("db_snapshot.cli.snapshots.console", Console(width=200))


@pytest.fixture
def engine(tmp_path: Path) -> SnapshotEngine:
    registry = make_registry()
    return SnapshotEngine(
        MemoryAdapter.for_registry(registry),
        registry,
        store=FileSnapshotStore(tmp_path / "backups"),
    )


@pytest.fixture
def patched_engine(engine: SnapshotEngine):
    with patch("db_snapshot.cli.snapshots.get_engine", AsyncMock(return_value=engine)) as mock:
        yield mock


def write_snapshot_file(tmp_path: Path, document: dict) -> Path:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(document))
    return path


class TestLocalCommands:
    """Commands that read only local state."""

    def test_order(self, capsys: pytest.CaptureFixture) -> None:
        assert main(["order"]) == 0
        out = capsys.readouterr().out
        assert "Restore Order" in out
        assert "_FeatureToOpportunity" in out
        assert "Deletes run in reverse order" in out

    def test_validate_valid_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        path = write_snapshot_file(tmp_path, {
            "version": "1.0",
            "timestamp": "2026-01-15T09:30:00+00:00",
            "users": [{"id": "u1", "name": "Alice"}],
        })
        assert main(["validate", str(path)]) == 0
        out = capsys.readouterr().out
        assert "Snapshot is valid" in out
        assert "warnings" in out

    def test_validate_invalid_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        path = write_snapshot_file(tmp_path, {
            "version": "1.0",
            "timestamp": "2026-01-15T09:30:00+00:00",
            "users": [],
        })
        assert main(["validate", str(path)]) == 1
        out = capsys.readouterr().out
        assert "Snapshot has no users records" in out
        assert "Snapshot is invalid" in out

    def test_validate_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(["validate", str(tmp_path / "nope.json")]) == 1
        assert "Cannot read" in capsys.readouterr().out

    def test_profiles(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        (tmp_path / "db.toml").write_text(textwrap.dedent("""\
            [profiles.local]
            url = "postgresql://localhost/app"
            description = "Laptop"
        """))
        monkeypatch.chdir(tmp_path)
        lock_file = tmp_path / ".db-profile"
        lock_file.write_text("local")

        with patch("db_snapshot.factory._PROFILE_LOCK_FILE", lock_file):
            assert main(["profiles"]) == 0

        out = capsys.readouterr().out
        assert "local" in out
        assert "Laptop" in out
        assert "current profile" in out

    def test_profiles_without_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert main(["profiles"]) == 1
        assert "Database config not found" in capsys.readouterr().out

    def test_status_without_profile(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        with patch("db_snapshot.factory._PROFILE_LOCK_FILE", tmp_path / ".db-profile"):
            assert main(["status"]) == 0
        assert "No connected profile" in capsys.readouterr().out

    def test_connect_failure(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        result = ConnectionResult(success=False, error="Profile 'x' not found")
        with patch("db_snapshot.cli.connect_and_validate", AsyncMock(return_value=result)), \
             patch("db_snapshot.factory._PROFILE_LOCK_FILE", tmp_path / ".db-profile"):
            assert main(["connect"]) == 1
        assert "Profile 'x' not found" in capsys.readouterr().out


class TestSnapshotCommands:
    """Commands that open an engine for the active profile."""

    def test_backup_list_and_restore_by_id(
        self, engine: SnapshotEngine, patched_engine, capsys: pytest.CaptureFixture
    ) -> None:
        asyncio.run(engine.restore(make_snapshot()))

        assert main(["backup"]) == 0
        out = capsys.readouterr().out
        assert "saved" in out

        descriptors = asyncio.run(engine.store.list())
        assert len(descriptors) == 1
        snapshot_id = descriptors[0].id

        assert main(["list"]) == 0
        assert snapshot_id in capsys.readouterr().out

        assert main(["restore", "--id", snapshot_id, "--yes"]) == 0
        assert "Restore complete" in capsys.readouterr().out

    def test_backup_to_file(
        self, tmp_path: Path, patched_engine, capsys: pytest.CaptureFixture
    ) -> None:
        output = tmp_path / "out" / "manual.json"
        assert main(["backup", "--output", str(output)]) == 0
        document = json.loads(output.read_text())
        assert document["version"] == "1.0"
        assert "users" in document

    def test_restore_from_file(
        self, tmp_path: Path, engine: SnapshotEngine, patched_engine, capsys: pytest.CaptureFixture
    ) -> None:
        path = tmp_path / "snapshot.json"
        path.write_text(make_snapshot().to_json())

        assert main(["restore", str(path), "--yes"]) == 0

        assert "Restore complete" in capsys.readouterr().out
        assert len(engine.adapter.rows("Task")) == 2

    def test_restore_invalid_file_reports_failure(
        self, tmp_path: Path, engine: SnapshotEngine, patched_engine, capsys: pytest.CaptureFixture
    ) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        assert main(["restore", str(path), "--yes"]) == 1

        out = capsys.readouterr().out
        assert "invalid_format" in out
        assert "not modified" in out

    def test_restore_cancelled(self, tmp_path: Path, patched_engine, capsys: pytest.CaptureFixture) -> None:
        path = tmp_path / "snapshot.json"
        path.write_text(make_snapshot().to_json())

        with patch("db_snapshot.cli.snapshots.Confirm.ask", return_value=False):
            assert main(["restore", str(path)]) == 0

        assert "Cancelled." in capsys.readouterr().out
        patched_engine.assert_not_called()

    def test_restore_requires_a_source(self) -> None:
        with pytest.raises(SystemExit):
            main(["restore", "--yes"])

    def test_delete_unknown_snapshot(self, patched_engine, capsys: pytest.CaptureFixture) -> None:
        assert main(["delete", "missing"]) == 1
        assert "Snapshot not found: missing" in capsys.readouterr().out

    def test_prune(self, engine: SnapshotEngine, patched_engine, capsys: pytest.CaptureFixture) -> None:
        assert main(["prune", "--keep", "5"]) == 0
        assert "Removed 0 snapshots" in capsys.readouterr().out

    def test_no_profile(self, capsys: pytest.CaptureFixture) -> None:
        error = ProfileNotFoundError("No database profile configured.")
        with patch("db_snapshot.cli.snapshots.get_engine", AsyncMock(side_effect=error)):
            assert main(["list"]) == 1
        assert "No database profile configured" in capsys.readouterr().out
