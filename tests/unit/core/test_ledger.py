"""Tests for the hash-chained audit ledger."""

import csv
import io
import json
import threading
from datetime import datetime, timezone

import pytest

from stagegate.core.config import StoragePolicy
from stagegate.core.errors import ConfirmationRequired, StorageError
from stagegate.core.ledger import (
    ActionType,
    AuditLedger,
    CSV_COLUMNS,
    GENESIS_HASH,
    HashlibAlgorithm,
    canonical_payload,
    content_hash,
    get_hash_algorithm,
    is_known_action,
)
from stagegate.storage import MemoryStore


def _fill(ledger):
    ledger.record(ActionType.PROJECT_CREATED, project_id="P1", user_id="pm", details={"name": "Roof"})
    ledger.record(ActionType.APPROVAL_REQUESTED, project_id="P1", user_id="pm", details={"amount": 5000})
    ledger.record(ActionType.USER_LOGIN, user_id="fin")
    ledger.record(ActionType.APPROVAL_GRANTED, project_id="P2", user_id="fin")
    ledger.record("CUSTOM_EVENT", project_id="P1", user_id="qa", details={"note": 'say "hi", ok'})


class TestActionTypes:
    """Test the action vocabulary."""

    def test_vocabulary(self):
        """Test the 16 built-in action types."""
        assert len(ActionType) == 16
        assert ActionType.PERMISSION_CHANGED.value == "PERMISSION_CHANGED"
        assert is_known_action("QA_PASSED")
        assert is_known_action(ActionType.FUNDING_COMMITTED)
        assert not is_known_action("CUSTOM_EVENT")


class TestHashing:
    """Test canonical serialization and hash algorithms."""

    def test_canonical_payload_ignores_hash(self):
        """Test the hash field and unknown fields are not covered."""
        fields = {"id": "1", "timestamp": "t", "action": "A", "previousHash": "0"}
        assert canonical_payload(fields) == canonical_payload({**fields, "hash": "x", "extra": 1})

    def test_canonical_payload_is_order_independent(self):
        """Test key order does not change the payload."""
        a = {"id": "1", "details": {"b": 2, "a": 1}}
        b = {"details": {"a": 1, "b": 2}, "id": "1"}
        assert canonical_payload(a) == canonical_payload(b)

    def test_sha256_default(self):
        """Test the default algorithm is sha256 with a 64-char digest."""
        algorithm = get_hash_algorithm()
        assert algorithm.name == "sha256"
        assert len(content_hash({"id": "1"}, algorithm)) == 64

    def test_unsupported_algorithm(self):
        """Test unknown and variable-length algorithms are rejected."""
        with pytest.raises(ValueError):
            HashlibAlgorithm("not-a-hash")
        with pytest.raises(ValueError):
            HashlibAlgorithm("shake_128")

    def test_custom_algorithm(self, store):
        """Test any object with name/digest can chain entries."""

        class Reversed:
            name = "reversed"

            def digest(self, data):
                return data[::-1].hex()[:16]

        ledger = AuditLedger(store, hash_algorithm=Reversed())
        ledger.record(ActionType.COMMENT_ADDED)
        ledger.record(ActionType.COMMENT_ADDED)
        assert len(ledger.entries[0].hash) == 16
        assert ledger.verify().valid


class TestRecord:
    """Test appending entries."""

    def test_record_returns_id(self, ledger):
        """Test record returns the generated id."""
        entry_id = ledger.record(ActionType.PROJECT_CREATED, project_id="P1", user_id="pm")
        assert entry_id == "LED-1"
        entry = ledger.entries[0]
        assert entry.id == "LED-1"
        assert entry.action == "PROJECT_CREATED"
        assert entry.project_id == "P1"
        assert entry.user_id == "pm"
        assert entry.details == {}
        assert entry.timestamp == "2026-03-01T09:00:00+00:00"

    def test_genesis_linkage(self, ledger):
        """Test the first entry links to the genesis sentinel and the rest chain."""
        _fill(ledger)
        entries = ledger.entries
        assert entries[0].previous_hash == GENESIS_HASH
        for i in range(1, len(entries)):
            assert entries[i].previous_hash == entries[i - 1].hash

    def test_hash_matches_content(self, ledger):
        """Test each stored hash is the content hash of its fields."""
        _fill(ledger)
        for entry in ledger.entries:
            assert entry.hash == content_hash(entry.to_dict(), ledger.hash_algorithm)

    def test_entries_are_frozen(self, ledger):
        """Test entry fields cannot be reassigned."""
        ledger.record(ActionType.COMMENT_ADDED)
        with pytest.raises(Exception):
            ledger.entries[0].action = "QA_PASSED"

    def test_entries_snapshot(self, ledger):
        """Test the entries property returns a copy of the sequence."""
        ledger.record(ActionType.COMMENT_ADDED)
        ledger.entries.clear()
        assert len(ledger) == 1


class TestQueries:
    """Test ledger filters."""

    def test_get_history(self, ledger):
        _fill(ledger)
        history = ledger.get_history("P1")
        assert [e.action for e in history] == ["PROJECT_CREATED", "APPROVAL_REQUESTED", "CUSTOM_EVENT"]

    def test_get_by_action(self, ledger):
        _fill(ledger)
        assert len(ledger.get_by_action(ActionType.USER_LOGIN)) == 1
        assert len(ledger.get_by_action("CUSTOM_EVENT")) == 1
        assert ledger.get_by_action(ActionType.QA_FAILED) == []

    def test_get_by_user(self, ledger):
        _fill(ledger)
        assert [e.id for e in ledger.get_by_user("fin")] == ["LED-3", "LED-4"]

    def test_get_by_date_range_inclusive(self, ledger):
        """Test both bounds are inclusive."""
        _fill(ledger)  # timestamps 09:00 .. 09:04
        start = datetime(2026, 3, 1, 9, 1, tzinfo=timezone.utc)
        end = datetime(2026, 3, 1, 9, 3, tzinfo=timezone.utc)
        assert [e.id for e in ledger.get_by_date_range(start, end)] == ["LED-2", "LED-3", "LED-4"]

    def test_get_by_date_range_strings_and_naive(self, ledger):
        """Test ISO strings and naive datetimes (taken as UTC) are accepted."""
        _fill(ledger)
        assert len(ledger.get_by_date_range("2026-03-01T09:00:00Z", "2026-03-01T09:00:00Z")) == 1
        assert len(ledger.get_by_date_range(datetime(2026, 3, 1), datetime(2026, 3, 2))) == 5
        assert ledger.get_by_date_range("2027-01-01T00:00:00", "2027-12-31T00:00:00") == []


class TestVerify:
    """Test chain verification and tamper detection."""

    def _tamper(self, store, index, **changes):
        entries = store.load("ledger_entries")
        entries[index].update(changes)
        store.save("ledger_entries", entries)
        return AuditLedger(store)

    def test_empty_ledger_valid(self, ledger):
        assert ledger.verify().valid

    def test_intact_chain_valid(self, ledger):
        _fill(ledger)
        result = ledger.verify()
        assert result.valid
        assert result.index is None

    @pytest.mark.parametrize("field,value", [
        ("action", "QA_PASSED"),
        ("projectId", "P9"),
        ("userId", "mallory"),
        ("details", {"amount": 1}),
        ("timestamp", "2020-01-01T00:00:00+00:00"),
        ("id", "LED-99"),
        ("previousHash", "deadbeef"),
    ])
    def test_tampered_field_detected(self, ledger, store, field, value):
        """Test changing any hashed field reports the tampered index."""
        _fill(ledger)
        result = self._tamper(store, 2, **{field: value}).verify()
        assert not result.valid
        assert result.index == 2
        assert result.entry.id == ("LED-99" if field == "id" else "LED-3")
        assert "invalid hash" in result.message

    def test_rehashed_entry_breaks_next_link(self, ledger, store):
        """Test re-deriving a tampered entry's hash breaks its successor's link."""
        _fill(ledger)
        entries = store.load("ledger_entries")
        entries[1]["details"] = {"amount": 1}
        entries[1]["hash"] = content_hash(entries[1], ledger.hash_algorithm)
        store.save("ledger_entries", entries)

        result = AuditLedger(store).verify()
        assert not result.valid
        assert result.index == 2
        assert "broken chain" in result.message

    def test_removed_entry_detected(self, ledger, store):
        """Test deleting an entry from the middle breaks the chain."""
        _fill(ledger)
        entries = store.load("ledger_entries")
        del entries[1]
        store.save("ledger_entries", entries)

        result = AuditLedger(store).verify()
        assert not result.valid
        assert result.index == 1

    def test_wrong_algorithm_fails(self, ledger, store):
        """Test verifying with a different algorithm reports entry 0."""
        _fill(ledger)
        result = AuditLedger(store, hash_algorithm="sha3_256").verify()
        assert not result.valid
        assert result.index == 0

    def test_appends_continue_chain_after_reload(self, ledger, store):
        """Test a reloaded ledger chains new entries onto the stored tail."""
        _fill(ledger)
        reloaded = AuditLedger(store)
        reloaded.record(ActionType.QA_PASSED, project_id="P1")
        assert reloaded.entries[-1].previous_hash == ledger.entries[-1].hash
        assert reloaded.verify().valid


class TestExport:
    """Test JSON and CSV export."""

    def test_export_json(self, ledger):
        """Test the JSON export shape."""
        _fill(ledger)
        exported = json.loads(ledger.export())
        assert set(exported) == {"exportDate", "entries", "integrity"}
        assert len(exported["entries"]) == 5
        assert exported["entries"][0]["previousHash"] == GENESIS_HASH
        assert exported["entries"][1]["projectId"] == "P1"
        assert exported["integrity"]["valid"] is True

    def test_export_json_reports_tampering(self, ledger, store):
        """Test the integrity section reflects a broken chain."""
        _fill(ledger)
        entries = store.load("ledger_entries")
        entries[0]["userId"] = "mallory"
        store.save("ledger_entries", entries)

        exported = AuditLedger(store).export_data()
        assert exported["integrity"]["valid"] is False
        assert exported["integrity"]["index"] == 0
        assert exported["integrity"]["entry"]["userId"] == "mallory"

    def test_export_csv(self, ledger):
        """Test CSV header, quoting and quote doubling."""
        _fill(ledger)
        text = ledger.export_csv()
        lines = text.split("\n")

        assert lines[0] == "timestamp,action,projectId,userId,details,hash"
        assert len(lines) == 6
        assert lines[3].startswith('"2026-03-01T09:02:00+00:00","USER_LOGIN","","fin","{}","')
        assert '"{""note"":""say \\""hi\\"", ok""}"' in lines[5]

        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == CSV_COLUMNS
        assert json.loads(rows[5][4]) == {"note": 'say "hi", ok'}
        assert rows[1][5] == ledger.entries[0].hash

    def test_export_csv_keeps_unicode(self, ledger):
        """Test non-ASCII details are written as-is, not escaped."""
        ledger.record(ActionType.COMMENT_ADDED, details={"note": "Dachdämmung fertig"})
        text = ledger.export_csv()
        assert "Dachdämmung" in text
        assert "\\u00e4" not in text

    def test_export_csv_empty(self, ledger):
        assert ledger.export_csv() == ""


class TestClear:
    """Test destructive clearing."""

    def test_clear_requires_confirmation(self, ledger):
        ledger.record(ActionType.COMMENT_ADDED)
        with pytest.raises(ConfirmationRequired):
            ledger.clear()
        assert len(ledger) == 1

    def test_clear(self, ledger, store):
        """Test a confirmed clear wipes entries and restarts the chain."""
        _fill(ledger)
        ledger.clear(confirm=True)
        assert len(ledger) == 0
        assert store.load("ledger_entries") == []

        ledger.record(ActionType.PROJECT_CREATED)
        assert ledger.entries[0].previous_hash == GENESIS_HASH


class TestLedgerPersistence:
    """Test storage error policies."""

    def test_corrupt_store_degrades(self):
        store = MemoryStore()
        store.put_raw("ledger_entries", "[{broken")
        ledger = AuditLedger(store)
        assert len(ledger) == 0

    def test_corrupt_store_fails(self):
        store = MemoryStore()
        store.put_raw("ledger_entries", "[{broken")
        with pytest.raises(StorageError):
            AuditLedger(store, on_storage_error=StoragePolicy.FAIL)

    def test_invalid_entries_fail(self):
        store = MemoryStore({"ledger_entries": [{"id": "x"}]})
        with pytest.raises(StorageError):
            AuditLedger(store, on_storage_error="fail")

    def test_failed_save_leaves_chain_unchanged(self, failing_store):
        """Test a raising save under FAIL appends nothing, so a retry chains cleanly."""
        ledger = AuditLedger(failing_store, on_storage_error=StoragePolicy.FAIL)
        ledger.record(ActionType.PROJECT_CREATED, project_id="P1")
        failing_store.failing = True

        with pytest.raises(StorageError):
            ledger.record(ActionType.QA_PASSED, project_id="P1")
        with pytest.raises(StorageError):
            ledger.clear(confirm=True)
        assert len(ledger) == 1

        failing_store.failing = False
        ledger.record(ActionType.QA_PASSED, project_id="P1")
        assert len(ledger) == 2
        assert len(failing_store.load("ledger_entries")) == 2
        assert AuditLedger(failing_store).verify().valid

    def test_failed_save_degrades_to_memory(self, failing_store):
        """Test a raising save under DEGRADE still appends in memory."""
        ledger = AuditLedger(failing_store)
        failing_store.failing = True
        ledger.record(ActionType.PROJECT_CREATED)
        assert len(ledger) == 1
        assert failing_store.load("ledger_entries") is None


class TestConcurrentAppends:
    """Test appends from several threads."""

    def test_threads_share_one_chain(self, store):
        """Test no two entries link to the same predecessor."""
        ledger = AuditLedger(store)
        threads_count, per_thread = 8, 50

        def worker(n):
            for i in range(per_thread):
                ledger.record(ActionType.COMMENT_ADDED, user_id=f"t{n}", details={"i": i})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = ledger.entries
        assert len(entries) == threads_count * per_thread
        assert len({e.previous_hash for e in entries}) == len(entries)
        assert ledger.verify().valid
        assert AuditLedger(store).verify().valid
