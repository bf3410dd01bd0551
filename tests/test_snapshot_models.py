"""Tests for the snapshot document model, value codec and precondition checks."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from db_snapshot.errors import ConstraintViolation, InvalidFormat, UnsupportedVersion
from db_snapshot.snapshot.codec import decode_record, encode_record, peer_ids
from db_snapshot.snapshot.models import CURRENT_VERSION, Snapshot
from db_snapshot.snapshot.validation import check_snapshot, validate_snapshot

from conftest import make_registry, make_snapshot


# ------------------------------------------------------------------
# Snapshot document
# ------------------------------------------------------------------


class TestSnapshotDocument:
    """Verify parsing and serialising the wire document."""

    def test_to_document_is_flat(self, snapshot: Snapshot) -> None:
        document = snapshot.to_document()
        assert document["version"] == "1.0"
        assert document["timestamp"] == "2026-01-15T09:30:00+00:00"
        assert document["users"][0]["id"] == "u1"
        assert "entities" not in document

    def test_json_round_trip_preserves_records(self, snapshot: Snapshot) -> None:
        parsed = Snapshot.from_json(snapshot.to_json())
        assert parsed.entities == snapshot.entities
        assert parsed.timestamp == snapshot.timestamp

    def test_capture_stamps_current_version(self) -> None:
        captured = Snapshot.capture({"users": []})
        assert captured.version == CURRENT_VERSION
        assert captured.timestamp.tzinfo is not None

    def test_records_of_absent_type_is_empty(self, snapshot: Snapshot) -> None:
        assert snapshot.records("ghosts") == []

    def test_counts(self, snapshot: Snapshot) -> None:
        counts = snapshot.counts()
        assert counts["opportunities"] == 2
        assert counts["users"] == 1

    def test_rejects_non_object(self) -> None:
        with pytest.raises(InvalidFormat, match="JSON object"):
            Snapshot.from_document([1, 2])

    def test_rejects_missing_version(self) -> None:
        with pytest.raises(InvalidFormat, match="version"):
            Snapshot.from_document({"timestamp": "2026-01-01T00:00:00"})

    def test_rejects_missing_timestamp(self) -> None:
        with pytest.raises(InvalidFormat, match="timestamp"):
            Snapshot.from_document({"version": "1.0"})

    def test_rejects_bad_timestamp(self) -> None:
        with pytest.raises(InvalidFormat, match="Invalid snapshot timestamp"):
            Snapshot.from_document({"version": "1.0", "timestamp": "yesterday"})

    def test_rejects_entity_value_that_is_not_records(self) -> None:
        with pytest.raises(InvalidFormat, match="'users' must be a list"):
            Snapshot.from_document({
                "version": "1.0",
                "timestamp": "2026-01-01T00:00:00",
                "users": {"id": "u1"},
            })

    def test_rejects_bad_json(self) -> None:
        with pytest.raises(InvalidFormat, match="Invalid JSON"):
            Snapshot.from_json("{not json")

    def test_unsupported_version_still_parses(self) -> None:
        """Version support is a precondition, not a parse error."""
        parsed = Snapshot.from_document({
            "version": "99.0",
            "timestamp": "2026-01-01T00:00:00",
        })
        assert parsed.version == "99.0"


# ------------------------------------------------------------------
# Value codec
# ------------------------------------------------------------------


class TestCodec:
    """Verify value encoding for export and decoding for restore."""

    def test_encode_record(self) -> None:
        row = {
            "id": UUID("12345678-1234-5678-1234-567812345678"),
            "createdAt": datetime(2026, 1, 2, 3, 4, 5),
            "due": date(2026, 2, 1),
            "amount": Decimal("10.25"),
            "name": "x",
            "count": 3,
        }
        encoded = encode_record(row)
        assert encoded == {
            "id": "12345678-1234-5678-1234-567812345678",
            "createdAt": "2026-01-02T03:04:05",
            "due": "2026-02-01",
            "amount": "10.25",
            "name": "x",
            "count": 3,
        }
        json.dumps(encoded)

    def test_decode_typed_fields(self) -> None:
        registry = make_registry()
        user = decode_record(registry.get("users"), {"id": "u1", "createdAt": "2026-01-02T03:04:05"})
        assert user["createdAt"] == datetime(2026, 1, 2, 3, 4, 5)
        opp = decode_record(registry.get("opportunities"), {"id": "o1", "estimatedValue": "1200.50"})
        assert opp["estimatedValue"] == Decimal("1200.50")

    def test_decode_instants_to_naive_utc(self) -> None:
        registry = make_registry()
        users = registry.get("users")
        zulu = decode_record(users, {"id": "u1", "createdAt": "2024-01-01T00:00:00.000Z"})
        offset = decode_record(users, {"id": "u1", "createdAt": "2024-01-01T02:30:00+02:00"})
        assert zulu["createdAt"] == datetime(2024, 1, 1, 0, 0, 0)
        assert zulu["createdAt"].tzinfo is None
        assert offset["createdAt"] == datetime(2024, 1, 1, 0, 30, 0)
        aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert decode_record(users, {"id": "u1", "createdAt": aware})["createdAt"] == datetime(2024, 1, 1, 12, 0)

    def test_decode_leaves_nulls_and_untyped_fields(self) -> None:
        registry = make_registry()
        record = {"id": "o2", "estimatedValue": None, "note": "2026-01-01"}
        assert decode_record(registry.get("opportunities"), record) == record

    def test_decode_does_not_mutate_input(self) -> None:
        registry = make_registry()
        record = {"id": "u1", "createdAt": "2026-01-02T03:04:05"}
        decode_record(registry.get("users"), record)
        assert record["createdAt"] == "2026-01-02T03:04:05"

    def test_decode_unreadable_value(self) -> None:
        registry = make_registry()
        with pytest.raises(InvalidFormat, match="cannot read 'lots' as decimal"):
            decode_record(registry.get("opportunities"), {"id": "o1", "estimatedValue": "lots"})

    def test_peer_ids_accepts_plain_and_object_form(self) -> None:
        entity = make_registry().get("features")
        assert peer_ids(entity, "opportunities", ["o1", {"id": "o2"}]) == ["o1", "o2"]
        assert peer_ids(entity, "opportunities", None) == []

    def test_peer_ids_rejects_non_list(self) -> None:
        entity = make_registry().get("features")
        with pytest.raises(InvalidFormat, match="must be a list of ids"):
            peer_ids(entity, "opportunities", "o1")
        with pytest.raises(InvalidFormat, match="has no 'id'"):
            peer_ids(entity, "opportunities", [{"name": "o1"}])


# ------------------------------------------------------------------
# Precondition checks
# ------------------------------------------------------------------


class TestCheckSnapshot:
    """Verify every refusal happens before any store access."""

    def test_consistent_snapshot_passes(self, snapshot: Snapshot) -> None:
        check_snapshot(snapshot, make_registry())

    def test_unsupported_version(self) -> None:
        snapshot = make_snapshot().model_copy(update={"version": "99.0"})
        with pytest.raises(UnsupportedVersion, match="99.0"):
            check_snapshot(snapshot, make_registry())

    def test_no_root_records(self) -> None:
        with pytest.raises(InvalidFormat, match="Snapshot has no users records"):
            check_snapshot(make_snapshot(users=[]), make_registry())

    def test_record_without_id(self) -> None:
        snapshot = make_snapshot(products=[{"name": "Widget"}])
        with pytest.raises(InvalidFormat, match=r"products\[0\] has no 'id'"):
            check_snapshot(snapshot, make_registry())

    def test_duplicate_id(self) -> None:
        snapshot = make_snapshot(products=[{"id": "p1"}, {"id": "p1"}])
        with pytest.raises(InvalidFormat, match="duplicate id 'p1'"):
            check_snapshot(snapshot, make_registry())

    def test_dangling_foreign_key(self) -> None:
        snapshot = make_snapshot(accounts=[{"id": "a1", "ownerId": "u404"}])
        with pytest.raises(ConstraintViolation, match="ownerId='u404' has no matching users"):
            check_snapshot(snapshot, make_registry())

    def test_required_foreign_key_null(self) -> None:
        snapshot = make_snapshot(products=[{"id": "p1"}], features=[
            {"id": "f1", "productId": None, "opportunities": []},
        ], opportunities=[{"id": "o1", "accountId": "a1", "features": []}])
        with pytest.raises(ConstraintViolation, match="required productId is null"):
            check_snapshot(snapshot, make_registry())

    def test_nullable_foreign_key_may_be_null(self) -> None:
        check_snapshot(
            make_snapshot(accounts=[{"id": "a1", "ownerId": None}]),
            make_registry(),
        )

    def test_dangling_self_reference(self) -> None:
        snapshot = make_snapshot(tasks=[{"id": "t2", "parentId": "t1"}])
        with pytest.raises(ConstraintViolation, match="parentId='t1' has no matching tasks"):
            check_snapshot(snapshot, make_registry())

    def test_dangling_many_to_many_peer(self) -> None:
        snapshot = make_snapshot(features=[
            {"id": "f1", "productId": "p1", "opportunities": ["o1", "o9"]},
        ], opportunities=[{"id": "o1", "accountId": "a1", "features": ["f1"]}])
        with pytest.raises(ConstraintViolation, match="missing opportunities record 'o9'"):
            check_snapshot(snapshot, make_registry())

    def test_version_is_checked_before_contents(self) -> None:
        snapshot = make_snapshot(users=[]).model_copy(update={"version": "2.0"})
        with pytest.raises(UnsupportedVersion):
            check_snapshot(snapshot, make_registry())


class TestValidateSnapshot:
    """Verify the non-raising validation report."""

    def test_valid_report(self, snapshot: Snapshot) -> None:
        report = validate_snapshot(snapshot.to_document(), make_registry())
        assert report["valid"] is True
        assert report["errors"] == []
        assert report["counts"]["features"] == 2

    def test_accepts_json_text(self, snapshot: Snapshot) -> None:
        assert validate_snapshot(snapshot.to_json(), make_registry())["valid"] is True

    def test_unknown_key_is_a_warning(self, snapshot: Snapshot) -> None:
        document = snapshot.to_document()
        document["legacyWidgets"] = [{"id": 1}]
        report = validate_snapshot(document, make_registry())
        assert report["valid"] is True
        assert "Unknown snapshot key ignored: legacyWidgets" in report["warnings"]

    def test_missing_key_is_a_warning(self, snapshot: Snapshot) -> None:
        document = snapshot.to_document()
        del document["products"]
        document["features"] = []
        document["opportunities"] = [
            {"id": "o1", "accountId": "a1", "features": []},
        ]
        report = validate_snapshot(document, make_registry())
        assert report["valid"] is True
        assert "Missing entity key treated as empty: products" in report["warnings"]

    def test_collects_every_reference_error(self, snapshot: Snapshot) -> None:
        document = snapshot.to_document()
        document["accounts"] = [{"id": "a1", "ownerId": "nobody"}]
        document["tasks"] = [{"id": "t2", "parentId": "t404"}]
        report = validate_snapshot(document, make_registry())
        assert report["valid"] is False
        assert len(report["errors"]) == 2

    def test_bad_json_report(self) -> None:
        report = validate_snapshot("not json", make_registry())
        assert report["valid"] is False
        assert report["errors"][0].startswith("Invalid JSON")
        assert report["counts"] == {}

    def test_timestamp_is_parsed_as_utc_aware(self) -> None:
        parsed = Snapshot.from_document({
            "version": "1.0",
            "timestamp": "2026-01-15T09:30:00+00:00",
            "users": [{"id": "u1"}],
        })
        assert parsed.timestamp == datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)
