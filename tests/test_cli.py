"""
Tests for saveguard/cli.py

Covers:
    - inspect is a dry run
    - migrate upgrades slots in place and reports failures
    - backups / rollback / prune sub-commands
    - Exit codes and error output
"""

import json

import pytest

from saveguard.cli import build_parser, main
from saveguard.codec import decode
from saveguard.models.catalog import CURRENT_VERSION
from saveguard.paths import HOME_ENV
from saveguard.storage import DirectoryStorage


@pytest.fixture
def saves(tmp_path, monkeypatch):
    monkeypatch.setenv(HOME_ENV, str(tmp_path / "home"))
    return DirectoryStorage(tmp_path / "saves")


def _run(saves, *args):
    return main(["--storage", str(saves.root), "--log-level", "WARNING", *args])


def _write(saves, name, doc):
    saves.write(name, json.dumps(doc).encode("utf-8"))


class TestInspect:
    def test_reports_without_writing(self, saves, legacy_doc, capsys):
        _write(saves, "slot-1.json", legacy_doc)
        assert _run(saves, "inspect", "slot-1.json") == 0
        out = json.loads(capsys.readouterr().out)
        assert out["source_version"] == 1
        assert out["format"]["needs_migration"] is True
        assert saves.list() == ["slot-1.json"]

    def test_future_save(self, saves, capsys):
        _write(saves, "slot-1.json", {"version": 99})
        assert _run(saves, "inspect", "slot-1.json") == 1
        out = json.loads(capsys.readouterr().out)
        assert out["state"] == "rejected"
        assert out["format"]["is_future"] is True

    def test_unreadable_save(self, saves, capsys):
        saves.write("slot-1.json", b"garbage")
        assert _run(saves, "inspect", "slot-1.json") == 1
        assert json.loads(capsys.readouterr().out)["error"] == "document_decode_error"

    def test_missing_slot(self, saves, capsys):
        assert _run(saves, "inspect", "nope.json") == 1
        assert "Error:" in capsys.readouterr().err


class TestMigrate:
    def test_all_slots(self, saves, legacy_doc, v2_doc, capsys):
        _write(saves, "a.json", legacy_doc)
        _write(saves, "b.json", v2_doc)
        assert _run(saves, "migrate") == 0
        for name in ("a.json", "b.json"):
            assert decode(saves.read(name)).document["version"] == CURRENT_VERSION
        out = json.loads(capsys.readouterr().out)
        assert {r["slot"] for r in out} == {"a.json", "b.json"}

    def test_failure_sets_exit_code(self, saves, legacy_doc):
        _write(saves, "a.json", legacy_doc)
        _write(saves, "b.json", {"version": 99})
        assert _run(saves, "migrate", "a.json", "b.json", "--workers", "1") == 1


class TestBackupCommands:
    def test_backups_listing(self, saves, legacy_doc, capsys):
        _write(saves, "slot-1.json", legacy_doc)
        _run(saves, "migrate")
        capsys.readouterr()

        assert _run(saves, "backups", "--version", "1") == 0
        ids = json.loads(capsys.readouterr().out)
        assert len(ids) == 1 and ids[0].startswith("v1/")

        assert _run(saves, "backups") == 0
        infos = json.loads(capsys.readouterr().out)
        assert [i["version"] for i in infos] == list(range(1, CURRENT_VERSION))

    def test_backups_for_one_slot(self, saves, legacy_doc, capsys):
        _write(saves, "a.json", legacy_doc)
        _write(saves, "b.json", legacy_doc)
        _run(saves, "migrate")
        capsys.readouterr()
        assert _run(saves, "backups", "--version", "1", "--slot", "a.json") == 0
        ids = json.loads(capsys.readouterr().out)
        assert len(ids) == 1 and ids[0].startswith("a.json/v1/")

    def test_rollback(self, saves, legacy_doc):
        _write(saves, "slot-1.json", legacy_doc)
        _run(saves, "migrate")
        assert _run(saves, "rollback", "1", "--slot", "slot-1.json") == 0
        assert decode(saves.read("slot-1.json")).document == legacy_doc

    def test_rollback_without_backups(self, saves, capsys):
        assert _run(saves, "rollback", "1") == 1
        assert "No backups found for version 1" in capsys.readouterr().err

    def test_prune(self, saves, legacy_doc, capsys):
        _write(saves, "slot-1.json", legacy_doc)
        _run(saves, "migrate")
        _run(saves, "rollback", "1", "--slot", "slot-1.json")
        _run(saves, "migrate")
        capsys.readouterr()
        assert _run(saves, "prune", "--keep", "1") == 0
        assert len(json.loads(capsys.readouterr().out)) == CURRENT_VERSION - 1


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_bad_log_level(self, saves, capsys):
        assert main(["--storage", str(saves.root), "--log-level", "LOUD", "backups"]) == 1
        assert "Error:" in capsys.readouterr().err
