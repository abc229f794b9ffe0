"""
saveguard/load_orchestrator.py -- The load pipeline as a state machine.

Every load walks the same states::

    RECEIVED -> VERSION_DETECTED -> MIGRATING? -> VALIDATING
             -> RECOVERING? -> COMMITTED | REJECTED

    RECEIVED          raw bytes decoded into a document
    VERSION_DETECTED  explicit tag or legacy heuristic; a version newer than
                      this build is rejected here, before any backup exists
    MIGRATING         one backup + one step per version (older saves only)
    VALIDATING        structural validation; failure is always fatal
    RECOVERING        semantic checks; soft fixes after a snapshot, then
                      validation again; any hard report rejects the load
    COMMITTED         the document is handed to the caller
    REJECTED          nothing is committed; ``LoadResult.reason`` says why

Engine errors never escape ``load``: they end the pipeline in REJECTED and
are returned in the ``LoadResult``.  Anything else is a bug and propagates.

Usage::

    from saveguard.load_orchestrator import LoadOrchestrator
    from saveguard.storage import DirectoryStorage

    orchestrator = LoadOrchestrator(DirectoryStorage(saves_dir))
    result = orchestrator.load_slot("slot-1.json")
    if result.ok:
        simulation.restore(result.document)
    else:
        show_error(result.reason)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from saveguard.backup_manager import BACKUP_PREFIX, BackupManager
from saveguard.codec import decode, encode
from saveguard.config import EngineConfig
from saveguard.consistency_checker import CorruptionDetector, checksum_mismatch_report
from saveguard.error_recovery import CorruptionRecovery, needs_recovery, unresolved
from saveguard.errors import (
    SaveEngineError,
    UnsupportedFutureVersion,
    ValidationFailed,
    VersionUndetectable,
)
from saveguard.migration_engine import MigrationEngine
from saveguard.migrations import MigrationRegistry
from saveguard.models.records import CorruptionReport
from saveguard.schema_validator import SchemaValidator
from saveguard.storage import DirectoryStorage, MemoryStorage, Storage
from saveguard.version_detector import detect

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    RECEIVED = "received"
    VERSION_DETECTED = "version_detected"
    MIGRATING = "migrating"
    VALIDATING = "validating"
    RECOVERING = "recovering"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass
class LoadResult:
    """Outcome of one pass through the load pipeline."""
    ok: bool = False
    state: LoadState = LoadState.RECEIVED
    document: dict | None = None
    error: SaveEngineError | None = None
    reason: str = ""
    source_version: int | None = None
    migrated: bool = False
    recovered: bool = False
    reports: list[CorruptionReport] = field(default_factory=list)
    unresolved: list[CorruptionReport] = field(default_factory=list)
    history: list[LoadState] = field(default_factory=lambda: [LoadState.RECEIVED])

    @property
    def changed(self) -> bool:
        """True when the committed document differs from what was read."""
        return self.migrated or self.recovered


# ---------------------------------------------------------------------------
# LoadOrchestrator
# ---------------------------------------------------------------------------

class LoadOrchestrator:
    """Sequences detection, migration, validation and recovery.

    Parameters
    ----------
    storage : Storage, optional
        Holds live save slots and the backup store.  Defaults to an
        in-memory store.
    config : EngineConfig, optional
        Retention and slot settings.
    registry : MigrationRegistry, optional
        Migration steps (default: the shipped chain).
    clock : callable, optional
        Millisecond clock shared by migration records and backups.
    """

    def __init__(
        self,
        storage: Storage | None = None,
        config: EngineConfig | None = None,
        registry: MigrationRegistry | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.config = config or EngineConfig()
        self.backups = BackupManager(self.storage, clock=clock)
        self.engine = MigrationEngine(registry, backups=self.backups, clock=clock)
        self.validator = SchemaValidator(self.engine.current_version)
        self.detector = CorruptionDetector()
        self.recovery = CorruptionRecovery()

    @classmethod
    def from_config(cls, config: EngineConfig) -> "LoadOrchestrator":
        """Build an orchestrator over ``config.storage_dir`` on disk."""
        return cls(DirectoryStorage(config.storage_dir), config=config)

    @property
    def current_version(self) -> int:
        return self.engine.current_version

    @staticmethod
    def _enter(result: LoadResult, state: LoadState) -> None:
        logger.info("Load: %s -> %s", result.state.value, state.value)
        result.state = state
        result.history.append(state)

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self, raw: bytes | str, slot: str | None = None) -> LoadResult:
        """Run raw save bytes through the full pipeline.

        Parameters
        ----------
        raw : bytes or str
            The stored save.
        slot : str, optional
            Slot the bytes were read from; backups are filed under it.

        Returns
        -------
        LoadResult
            ``ok`` and ``document`` on COMMITTED; ``error`` and ``reason``
            on REJECTED.
        """
        result = LoadResult()
        try:
            self._run(raw, result, slot)
        except SaveEngineError as exc:
            logger.warning("Load rejected (%s): %s", exc.code, exc)
            self._enter(result, LoadState.REJECTED)
            result.ok = False
            result.document = None
            result.error = exc
            result.reason = str(exc)
        return result

    def _run(self, raw, result: LoadResult, slot: str | None) -> None:
        decoded = decode(raw)
        document = decoded.document

        version = detect(document)
        if version is None:
            raise VersionUndetectable(document)
        result.source_version = version
        self._enter(result, LoadState.VERSION_DETECTED)

        current = self.current_version
        if version > current:
            raise UnsupportedFutureVersion(version, current)

        if version < current:
            self._enter(result, LoadState.MIGRATING)
            document = self.engine.migrate(document, version, current, slot=slot)
            result.migrated = True

        self._enter(result, LoadState.VALIDATING)
        self._validate(document)

        reports = self.detector.detect(document)
        if decoded.checksum_valid is False:
            reports.append(checksum_mismatch_report())
        result.reports = reports
        result.unresolved = unresolved(reports)

        if any(r.is_hard for r in reports) or needs_recovery(reports):
            self._enter(result, LoadState.RECOVERING)
            if not any(r.is_hard for r in reports):
                self.backups.snapshot(document, version=current, slot=slot)
            document = self.recovery.recover(document, reports)
            result.recovered = True
            self._enter(result, LoadState.VALIDATING)
            self._validate(document)

        for report in result.unresolved:
            logger.info("Unresolved advisory (%s): %s", report.code, report.description)

        self._enter(result, LoadState.COMMITTED)
        result.ok = True
        result.document = document

    def _validate(self, document: dict) -> None:
        validation = self.validator.validate(document, self.current_version)
        if not validation.is_valid:
            raise ValidationFailed(validation.errors, self.current_version)

    def save(self, document: dict) -> bytes:
        """Encode a current-version document for storage.

        Raises
        ------
        ValidationFailed
            If *document* is not a valid current-version save.
        """
        self._validate(document)
        return encode(document)

    # ------------------------------------------------------------------
    # Backups and rollback
    # ------------------------------------------------------------------

    def list_backups(self, version: int, slot: str | None = None) -> list[str]:
        return self.backups.list(version, slot)

    def rollback(self, version: int, slot: str | None = None) -> dict:
        """Return the most recent backup of *version*.

        When *slot* is given only that slot's backups are considered, and
        the restored document is also written back to the slot.  The engine
        never rolls back on its own.

        Raises
        ------
        RollbackNotFound
            If there is no matching backup.
        """
        if slot is not None:
            self._check_slot(slot)
        document = self.backups.restore(version, slot)
        if slot is not None:
            self.storage.write(slot, encode(document))
            logger.info("Rolled back slot %s to its latest v%d backup", slot, version)
        return document

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    @staticmethod
    def _check_slot(slot: str) -> None:
        if slot.startswith(BACKUP_PREFIX):
            raise ValueError(f"'{slot}' is inside the backup store, not a save slot.")

    def load_slot(self, slot: str | None = None) -> LoadResult:
        """Load a stored slot and persist any upgrade or repair.

        Raises
        ------
        FileNotFoundError
            If the slot does not exist.
        """
        slot = slot or self.config.default_slot
        self._check_slot(slot)
        result = self.load(self.storage.read(slot), slot=slot)
        if result.ok and result.changed:
            self.storage.write(slot, encode(result.document))
            logger.info("Slot %s rewritten at v%d", slot, self.current_version)
            self.prune_backups()
        return result

    def save_slot(self, document: dict, slot: str | None = None) -> None:
        slot = slot or self.config.default_slot
        self._check_slot(slot)
        self.storage.write(slot, self.save(document))

    def list_slots(self) -> list[str]:
        return [n for n in self.storage.list() if not n.startswith(BACKUP_PREFIX)]

    def migrate_slots(self, slots=None, max_workers: int = 4) -> dict[str, LoadResult]:
        """Load (and thereby upgrade) many slots on a thread pool.

        Each slot is handled by exactly one task.  Slots that cannot be
        read or written back are reported as REJECTED results rather than
        aborting the batch.
        """
        slots = list(slots) if slots is not None else self.list_slots()
        results: dict[str, LoadResult] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {slot: pool.submit(self.load_slot, slot) for slot in slots}
            for slot, future in futures.items():
                try:
                    results[slot] = future.result()
                except FileNotFoundError as exc:
                    logger.warning("Slot %s could not be read: %s", slot, exc)
                    results[slot] = _rejected(f"The save slot '{slot}' does not exist.")
                except (SaveEngineError, OSError) as exc:
                    logger.error("Slot %s could not be migrated: %s", slot, exc)
                    result = _rejected(str(exc))
                    if isinstance(exc, SaveEngineError):
                        result.error = exc
                    results[slot] = result
        return results

    def prune_backups(self) -> list[str]:
        """Apply the configured backup retention."""
        return self.backups.prune(
            keep_per_version=self.config.backup_keep_per_version,
            max_age_seconds=self.config.backup_max_age_seconds,
        )


def _rejected(reason: str) -> LoadResult:
    return LoadResult(
        state=LoadState.REJECTED,
        reason=reason,
        history=[LoadState.RECEIVED, LoadState.REJECTED],
    )
