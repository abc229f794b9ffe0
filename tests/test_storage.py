"""
Tests for saveguard/storage.py

Covers:
    - Read / write / list / delete on both storage backends
    - Missing names and unsafe names
    - DirectoryStorage on-disk layout and temp-file handling
"""

import pytest

from saveguard.storage import DirectoryStorage, MemoryStorage


@pytest.fixture(params=["memory", "directory"])
def storage(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return DirectoryStorage(tmp_path / "store")


class TestStorageContract:
    def test_write_then_read(self, storage):
        storage.write("slot-1.json", b"{}")
        assert storage.read("slot-1.json") == b"{}"

    def test_write_replaces(self, storage):
        storage.write("slot-1.json", b"old")
        storage.write("slot-1.json", b"new")
        assert storage.read("slot-1.json") == b"new"

    def test_list_is_sorted_and_filtered(self, storage):
        storage.write("backups/v2/b.json", b"2")
        storage.write("backups/v1/a.json", b"1")
        storage.write("slot-1.json", b"s")
        assert storage.list() == ["backups/v1/a.json", "backups/v2/b.json", "slot-1.json"]
        assert storage.list("backups/v1/") == ["backups/v1/a.json"]

    def test_delete(self, storage):
        storage.write("slot-1.json", b"x")
        storage.delete("slot-1.json")
        assert not storage.exists("slot-1.json")
        assert storage.list() == []

    def test_missing_read_raises(self, storage):
        with pytest.raises(FileNotFoundError):
            storage.read("nope.json")

    def test_missing_delete_raises(self, storage):
        with pytest.raises(FileNotFoundError):
            storage.delete("nope.json")

    @pytest.mark.parametrize("name", ["../escape.json", "/abs.json", "a//b.json",
                                      "a/./b.json", "a\\b.json"])
    def test_unsafe_names_rejected(self, storage, name):
        with pytest.raises(ValueError):
            storage.write(name, b"x")


class TestDirectoryStorage:
    def test_creates_nested_directories(self, tmp_path):
        storage = DirectoryStorage(tmp_path / "store")
        storage.write("backups/v1/x.json", b"data")
        assert (tmp_path / "store" / "backups" / "v1" / "x.json").read_bytes() == b"data"

    def test_leftover_temp_files_are_not_listed(self, tmp_path):
        storage = DirectoryStorage(tmp_path / "store")
        storage.write("slot-1.json", b"x")
        (tmp_path / "store" / "abc123.tmp").write_bytes(b"partial")
        assert storage.list() == ["slot-1.json"]

    def test_no_temp_files_after_write(self, tmp_path):
        storage = DirectoryStorage(tmp_path / "store")
        storage.write("slot-1.json", b"x")
        assert [p.name for p in (tmp_path / "store").iterdir()] == ["slot-1.json"]


class TestMemoryStorage:
    def test_initial_content(self):
        storage = MemoryStorage({"slot-1.json": b"x"})
        assert storage.read("slot-1.json") == b"x"

    def test_write_requires_bytes(self):
        with pytest.raises(TypeError):
            MemoryStorage().write("slot-1.json", "text")
