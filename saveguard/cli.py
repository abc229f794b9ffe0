"""
saveguard/cli.py -- Command-line tooling for save slots and backups.

Usage:
    saveguard inspect slot-1.json          # version, pending steps, problems
    saveguard migrate                      # upgrade every slot in place
    saveguard migrate slot-1.json --workers 2
    saveguard backups --version 1 --slot slot-1.json
    saveguard rollback 1 --slot slot-1.json
    saveguard prune --keep 3

Global options select the save directory (``--storage``) or a settings file
(``--config``).  Exit status is 0 on success and 1 if any slot was
rejected or an operation failed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from saveguard.codec import decode
from saveguard.config import EngineConfig, setup_logging
from saveguard.errors import SaveEngineError
from saveguard.load_orchestrator import LoadOrchestrator
from saveguard.storage import MemoryStorage
from saveguard.version_detector import describe, detect

logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _result_summary(slot: str, result) -> dict:
    return {
        "slot": slot,
        "ok": result.ok,
        "state": result.state.value,
        "source_version": result.source_version,
        "migrated": result.migrated,
        "recovered": result.recovered,
        "reason": result.reason,
        "reports": [
            {"code": r.code, "severity": r.severity.value, "description": r.description}
            for r in result.reports
        ],
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_inspect(orchestrator: LoadOrchestrator, args) -> int:
    raw = orchestrator.storage.read(args.slot)
    try:
        version = detect(decode(raw).document)
    except SaveEngineError as exc:
        _print_json({"slot": args.slot, **exc.to_dict()})
        return 1

    # Dry run: a scratch store so no backups land next to the real saves.
    scratch = LoadOrchestrator(MemoryStorage(), config=orchestrator.config)
    result = scratch.load(raw)
    summary = _result_summary(args.slot, result)
    if version is not None:
        summary["format"] = describe(version, orchestrator.current_version)
    _print_json(summary)
    return 0 if result.ok else 1


def cmd_migrate(orchestrator: LoadOrchestrator, args) -> int:
    results = orchestrator.migrate_slots(args.slots or None, max_workers=args.workers)
    _print_json([_result_summary(slot, r) for slot, r in results.items()])
    return 0 if all(r.ok for r in results.values()) else 1


def cmd_backups(orchestrator: LoadOrchestrator, args) -> int:
    if args.version is not None:
        _print_json(orchestrator.list_backups(args.version, args.slot))
    else:
        infos = orchestrator.backups.list_all()
        if args.slot is not None:
            infos = [info for info in infos if info.slot == args.slot]
        _print_json([info.model_dump() for info in infos])
    return 0


def cmd_rollback(orchestrator: LoadOrchestrator, args) -> int:
    slot = args.slot or orchestrator.config.default_slot
    orchestrator.rollback(args.version, slot=slot)
    print(f"Slot '{slot}' restored from the latest v{args.version} backup.")
    return 0


def cmd_prune(orchestrator: LoadOrchestrator, args) -> int:
    keep = args.keep if args.keep is not None else orchestrator.config.backup_keep_per_version
    max_age = (args.max_age_days * 86400 if args.max_age_days is not None
               else orchestrator.config.backup_max_age_seconds)
    deleted = orchestrator.backups.prune(keep_per_version=keep, max_age_seconds=max_age)
    _print_json(deleted)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="saveguard",
        description="Inspect, upgrade and restore settlement save files",
    )
    parser.add_argument("--config", help="Path to a saveguard.json settings file")
    parser.add_argument("--storage", help="Save directory (overrides the settings file)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("inspect", help="Show what loading a slot would do (no changes)")
    p.add_argument("slot")
    p.set_defaults(func=cmd_inspect)

    p = sub.add_parser("migrate", help="Upgrade slots to the current format in place")
    p.add_argument("slots", nargs="*", help="Slots to upgrade (default: all)")
    p.add_argument("--workers", type=int, default=4, help="Parallel slots (default 4)")
    p.set_defaults(func=cmd_migrate)

    p = sub.add_parser("backups", help="List backups")
    p.add_argument("--version", type=int, help="Only this format version")
    p.add_argument("--slot", help="Only backups taken from this slot")
    p.set_defaults(func=cmd_backups)

    p = sub.add_parser("rollback", help="Restore a slot from its latest backup of a version")
    p.add_argument("version", type=int)
    p.add_argument("--slot", help="Slot to overwrite (default: the configured slot)")
    p.set_defaults(func=cmd_rollback)

    p = sub.add_parser("prune", help="Delete old backups")
    p.add_argument("--keep", type=int, help="Backups to keep per version")
    p.add_argument("--max-age-days", type=float, help="Delete backups older than this")
    p.set_defaults(func=cmd_prune)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = EngineConfig.from_file(args.config)
        if args.storage:
            config.storage_dir = args.storage
        if args.log_level:
            config.log_level = args.log_level
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    setup_logging(config.log_level)
    orchestrator = LoadOrchestrator.from_config(config)

    try:
        return args.func(orchestrator, args)
    except (SaveEngineError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
