"""
Tests for saveguard/backup_manager.py

Covers:
    - Creating snapshots (explicit and detected version)
    - Listing in chronological order, several per version
    - Restoring the most recent backup, missing backups
    - Snapshots are immutable and restore never writes
    - Write failures
    - Retention by count and by age
    - Backups filed per save slot: listing, restore and retention
    - Backups on disk and from several threads
"""

import threading

import pytest

from saveguard.backup_manager import BackupManager, parse_backup_id
from saveguard.codec import canonical_json
from saveguard.errors import BackupWriteFailed, RollbackNotFound, VersionUndetectable
from saveguard.storage import DirectoryStorage, MemoryStorage


class FailingStorage(MemoryStorage):
    def write(self, name, data):
        raise OSError("disk full")


@pytest.fixture
def manager(memory_storage, ticking_clock):
    return BackupManager(memory_storage, clock=ticking_clock)


# ---------------------------------------------------------------------------
# Snapshot creation
# ---------------------------------------------------------------------------

class TestSnapshot:
    def test_returns_id_for_version(self, manager, v2_doc):
        backup_id = manager.snapshot(v2_doc)
        assert backup_id.startswith("v2/")
        assert manager.list(2) == [backup_id]

    def test_legacy_version_detected(self, manager, legacy_doc):
        assert manager.snapshot(legacy_doc).startswith("v1/")

    def test_explicit_version(self, manager, legacy_doc):
        assert manager.snapshot(legacy_doc, version=3).startswith("v3/")

    def test_undetectable_document(self, manager):
        with pytest.raises(VersionUndetectable):
            manager.snapshot({"nothing": "here"})

    def test_write_failure(self, ticking_clock, v2_doc):
        manager = BackupManager(FailingStorage(), clock=ticking_clock)
        with pytest.raises(BackupWriteFailed) as excinfo:
            manager.snapshot(v2_doc)
        assert excinfo.value.version == 2
        assert "disk full" in str(excinfo.value)

    def test_unserialisable_document(self, manager):
        with pytest.raises(BackupWriteFailed):
            manager.snapshot({"version": 2, "bad": object()})

    def test_snapshot_is_immutable(self, manager, v2_doc):
        backup_id = manager.snapshot(v2_doc)
        v2_doc["resources"]["gold"] = 0
        assert manager.read(backup_id)["resources"]["gold"] == 120

    def test_parse_backup_id(self, manager, v2_doc):
        info = parse_backup_id(manager.snapshot(v2_doc))
        assert info.version == 2
        assert info.sequence >= 1
        assert parse_backup_id("v2/garbage") is None


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestList:
    def test_chronological(self, manager, v2_doc):
        ids = [manager.snapshot(v2_doc) for _ in range(3)]
        assert manager.list(2) == ids

    def test_same_millisecond_keeps_order(self, memory_storage, clock, v2_doc):
        manager = BackupManager(memory_storage, clock=clock)
        ids = [manager.snapshot(v2_doc) for _ in range(5)]
        assert manager.list(2) == ids
        assert len(set(ids)) == 5

    def test_versions_are_separate(self, manager, legacy_doc, v2_doc):
        manager.snapshot(legacy_doc)
        manager.snapshot(v2_doc)
        assert len(manager.list(1)) == 1
        assert len(manager.list(2)) == 1
        assert manager.list(3) == []

    def test_list_all(self, manager, legacy_doc, v2_doc):
        manager.snapshot(v2_doc)
        manager.snapshot(legacy_doc)
        assert [i.version for i in manager.list_all()] == [1, 2]

    def test_foreign_files_ignored(self, manager, memory_storage, v2_doc):
        manager.snapshot(v2_doc)
        memory_storage.write("backups/README.txt", b"notes")
        memory_storage.write("backups/v2/junk.json", b"{}")
        assert len(manager.list(2)) == 1
        assert len(manager.list_all()) == 1


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------

class TestRestore:
    def test_most_recent(self, manager, v2_doc):
        manager.snapshot(v2_doc)
        newer = dict(v2_doc, playtime=9999)
        manager.snapshot(newer)
        assert manager.restore(2)["playtime"] == 9999

    def test_canonically_equal(self, manager, legacy_doc):
        manager.snapshot(legacy_doc)
        assert canonical_json(manager.restore(1)) == canonical_json(legacy_doc)

    def test_missing_version(self, manager):
        with pytest.raises(RollbackNotFound) as excinfo:
            manager.restore(1)
        assert str(excinfo.value) == "No backups found for version 1."

    def test_restore_does_not_write(self, manager, memory_storage, v2_doc):
        manager.snapshot(v2_doc)
        before = {n: memory_storage.read(n) for n in memory_storage.list()}
        manager.restore(2)
        after = {n: memory_storage.read(n) for n in memory_storage.list()}
        assert before == after

    def test_read_unknown_id(self, manager):
        with pytest.raises(FileNotFoundError):
            manager.read("v1/000000000000000000-000001")
        with pytest.raises(FileNotFoundError):
            manager.read("../../etc/passwd")


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

class TestPrune:
    def test_keep_per_version(self, manager, legacy_doc, v2_doc):
        ids = [manager.snapshot(v2_doc) for _ in range(4)]
        legacy_id = manager.snapshot(legacy_doc)
        deleted = manager.prune(keep_per_version=2)
        assert deleted == ids[:2]
        assert manager.list(2) == ids[2:]
        assert manager.list(1) == [legacy_id]

    def test_max_age(self, memory_storage, v2_doc):
        now = [0]
        manager = BackupManager(memory_storage, clock=lambda: now[0])
        old = manager.snapshot(v2_doc)
        now[0] = 10_000
        recent = manager.snapshot(v2_doc)
        now[0] = 20_000
        latest = manager.snapshot(v2_doc)
        deleted = manager.prune(max_age_seconds=15)
        assert deleted == [old]
        assert manager.list(2) == [recent, latest]

    def test_newest_always_kept(self, memory_storage, v2_doc):
        now = [0]
        manager = BackupManager(memory_storage, clock=lambda: now[0])
        only = manager.snapshot(v2_doc)
        now[0] = 10 ** 9
        assert manager.prune(max_age_seconds=1) == []
        assert manager.list(2) == [only]

    def test_nothing_to_prune(self, manager):
        assert manager.prune(keep_per_version=3) == []

    def test_keep_must_be_positive(self, manager):
        with pytest.raises(ValueError):
            manager.prune(keep_per_version=0)


# ---------------------------------------------------------------------------
# Slots
# ---------------------------------------------------------------------------

class TestSlots:
    def test_id_names_the_slot(self, manager, v2_doc):
        backup_id = manager.snapshot(v2_doc, slot="slot-1.json")
        assert backup_id.startswith("slot-1.json/v2/")
        info = parse_backup_id(backup_id)
        assert info.slot == "slot-1.json"
        assert info.version == 2

    def test_unscoped_id_has_no_slot(self, manager, v2_doc):
        assert parse_backup_id(manager.snapshot(v2_doc)).slot is None

    def test_list_by_slot(self, manager, v2_doc):
        a = manager.snapshot(v2_doc, slot="a.json")
        b = manager.snapshot(v2_doc, slot="b.json")
        loose = manager.snapshot(v2_doc)
        assert manager.list(2, "a.json") == [a]
        assert manager.list(2, "b.json") == [b]
        assert manager.list(2) == [a, b, loose]

    def test_restore_ignores_other_slots(self, manager, v2_doc):
        manager.snapshot(v2_doc, slot="a.json")
        other = dict(v2_doc, resources={"gold": 7})
        manager.snapshot(other, slot="b.json")
        assert manager.restore(2, "a.json")["resources"]["gold"] == 120
        assert manager.restore(2, "b.json")["resources"]["gold"] == 7

    def test_restore_missing_slot(self, manager, v2_doc):
        manager.snapshot(v2_doc, slot="a.json")
        with pytest.raises(RollbackNotFound) as excinfo:
            manager.restore(2, "b.json")
        assert excinfo.value.slot == "b.json"
        assert "slot 'b.json'" in str(excinfo.value)

    def test_prune_counts_each_slot_separately(self, manager, legacy_doc):
        slots = [f"slot-{i}.json" for i in range(7)]
        for slot in slots:
            manager.snapshot(legacy_doc, slot=slot)
        assert manager.prune(keep_per_version=5) == []
        for slot in slots:
            assert len(manager.list(1, slot)) == 1

    def test_prune_within_slot(self, manager, v2_doc):
        old = manager.snapshot(v2_doc, slot="a.json")
        new = manager.snapshot(v2_doc, slot="a.json")
        other = manager.snapshot(v2_doc, slot="b.json")
        assert manager.prune(keep_per_version=1) == [old]
        assert manager.list(2) == [new, other]


# ---------------------------------------------------------------------------
# Disk and threads
# ---------------------------------------------------------------------------

class TestDirectoryBackups:
    def test_files_on_disk(self, tmp_path, ticking_clock, v2_doc):
        manager = BackupManager(DirectoryStorage(tmp_path), clock=ticking_clock)
        backup_id = manager.snapshot(v2_doc)
        assert (tmp_path / "backups" / f"{backup_id}.json").is_file()
        assert manager.restore(2) == v2_doc

    def test_concurrent_snapshots(self, memory_storage, clock, v2_doc):
        manager = BackupManager(memory_storage, clock=clock)
        ids = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                backup_id = manager.snapshot(v2_doc)
                with lock:
                    ids.append(backup_id)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 50
        assert len(manager.list(2)) == 50

    def test_slot_folder_on_disk(self, tmp_path, ticking_clock, v2_doc):
        manager = BackupManager(DirectoryStorage(tmp_path), clock=ticking_clock)
        backup_id = manager.snapshot(v2_doc, slot="slot-1.json")
        assert (tmp_path / "backups" / "slot-1.json" / "v2").is_dir()
        assert manager.read(backup_id) == v2_doc
