"""
saveguard/backup_manager.py -- Pre-mutation snapshots of save documents.

Before the engine changes a save (every migration step, every automatic
repair) the document as it was is written to the backup store.  Backups
are immutable, several per version can coexist, and they list in the order
they were taken.

Backups taken while loading a save slot are filed under that slot, so a
rollback of one slot can never hand back another slot's save and retention
never drops one slot's backups to make room for another's.

Layout inside the injected ``Storage``::

    backups/<slot>/v<version>/<timestamp_ms:18>-<sequence:6>.json
    backups/v<version>/<timestamp_ms:18>-<sequence:6>.json    (no slot)

Each file is canonical JSON of the envelope
``{"version", "slot", "timestamp", "sequence", "document"}``.  The backup id
is the part between ``backups/`` and ``.json`` (e.g.
``slot-1.json/v1/000001700000000000-000003``).

Usage::

    from saveguard.backup_manager import BackupManager

    bm = BackupManager(storage)
    backup_id = bm.snapshot(document, slot="slot-1.json")
    ids = bm.list(1, slot="slot-1.json")
    document = bm.restore(1, slot="slot-1.json")   # most recent v1 backup
    bm.prune(keep_per_version=5)
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable

from saveguard.codec import canonical_json, decode
from saveguard.errors import BackupWriteFailed, RollbackNotFound, VersionUndetectable
from saveguard.models.records import BackupInfo
from saveguard.storage import Storage
from saveguard.utils import now_ms
from saveguard.version_detector import detect

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backups/"
_BACKUP_ID_RE = re.compile(
    r"^(?:(?P<slot>.+)/)?v(?P<version>\d+)/(?P<timestamp>\d{18})-(?P<sequence>\d{6})$"
)


def _storage_name(backup_id: str) -> str:
    return f"{BACKUP_PREFIX}{backup_id}.json"


def _scope(slot: str | None) -> str:
    return f"{slot}/" if slot else ""


def parse_backup_id(backup_id: str) -> BackupInfo | None:
    """Return the metadata encoded in *backup_id*, or ``None`` if malformed."""
    match = _BACKUP_ID_RE.match(backup_id)
    if not match:
        return None
    return BackupInfo(
        backup_id=backup_id,
        slot=match["slot"],
        version=int(match["version"]),
        timestamp=int(match["timestamp"]),
        sequence=int(match["sequence"]),
    )


# ---------------------------------------------------------------------------
# BackupManager
# ---------------------------------------------------------------------------

class BackupManager:
    """Creates, lists, restores and prunes document snapshots.

    Parameters
    ----------
    storage : Storage
        Where backups are written.  ``Storage.write`` must be atomic.
    clock : callable, optional
        Returns the current time in ms since the epoch.
    """

    def __init__(self, storage: Storage, clock: Callable[[], int] | None = None):
        self.storage = storage
        self.clock = clock or now_ms
        self._lock = threading.Lock()
        self._sequence = 0

    def _next_sequence(self) -> int:
        with self._lock:
            self._sequence = (self._sequence + 1) % 1_000_000
            return self._sequence

    # ------------------------------------------------------------------
    # 1. Snapshot creation
    # ------------------------------------------------------------------

    def snapshot(self, document: dict, version: int | None = None,
                 slot: str | None = None) -> str:
        """Store *document* as a new backup and return its id.

        Parameters
        ----------
        document : dict
            The document to preserve.
        version : int, optional
            Version to file the backup under.  Defaults to the document's
            detected version.
        slot : str, optional
            Save slot the document was read from.  Backups of different
            slots never mix.

        Raises
        ------
        VersionUndetectable
            If no version is given and none can be detected.
        BackupWriteFailed
            If the backup cannot be serialised or written.
        """
        if version is None:
            version = detect(document)
            if version is None:
                raise VersionUndetectable(document)

        scope = _scope(slot)
        timestamp = self.clock()
        sequence = self._next_sequence()
        backup_id = f"{scope}v{version}/{timestamp:018d}-{sequence:06d}"
        # Another manager on the same store may have used this id already.
        while self.storage.exists(_storage_name(backup_id)):
            sequence = self._next_sequence()
            backup_id = f"{scope}v{version}/{timestamp:018d}-{sequence:06d}"
        envelope = {
            "version": version,
            "slot": slot,
            "timestamp": timestamp,
            "sequence": sequence,
            "document": document,
        }
        try:
            data = canonical_json(envelope).encode("utf-8")
            self.storage.write(_storage_name(backup_id), data)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Could not write backup %s: %s", backup_id, exc)
            raise BackupWriteFailed(version, exc) from exc

        logger.info("Backup written: %s", backup_id)
        return backup_id

    # ------------------------------------------------------------------
    # 2. Listing and reading
    # ------------------------------------------------------------------

    def list(self, version: int, slot: str | None = None) -> list[str]:
        """Return the backup ids for *version*, oldest first.

        With *slot*, only that slot's backups are listed; without it,
        backups of every slot are.
        """
        return [info.backup_id for info in self._infos(version, slot)]

    def list_all(self) -> list[BackupInfo]:
        """Return metadata for every backup, by version then age."""
        infos = self._infos()
        infos.sort(key=lambda i: (i.version, i.timestamp, i.sequence))
        return infos

    def _infos(self, version: int | None = None, slot: str | None = None) -> list[BackupInfo]:
        prefix = BACKUP_PREFIX
        if slot is not None:
            prefix += _scope(slot)
        infos = []
        for name in self.storage.list(prefix):
            if not name.endswith(".json"):
                continue
            info = parse_backup_id(name[len(BACKUP_PREFIX):-len(".json")])
            if info is None:
                logger.debug("Ignoring unrecognised file in backup store: %s", name)
                continue
            if slot is not None and info.slot != slot:
                continue
            if version is not None and info.version != version:
                continue
            infos.append(info)
        infos.sort(key=lambda i: (i.timestamp, i.sequence))
        return infos

    def read(self, backup_id: str) -> dict:
        """Return the document stored in backup *backup_id*.

        Raises
        ------
        FileNotFoundError
            If no such backup exists.
        DocumentDecodeError
            If the backup file is damaged.
        """
        if parse_backup_id(backup_id) is None:
            raise FileNotFoundError(f"'{backup_id}' is not a valid backup id.")
        envelope = decode(self.storage.read(_storage_name(backup_id))).document
        return envelope["document"]

    # ------------------------------------------------------------------
    # 3. Restore
    # ------------------------------------------------------------------

    def restore(self, version: int, slot: str | None = None) -> dict:
        """Return the most recent backup document for *version* (of *slot*).

        Restoring never writes to the store; committing the returned
        document is up to the caller.

        Raises
        ------
        RollbackNotFound
            If there is no matching backup.
        """
        ids = self.list(version, slot)
        if not ids:
            raise RollbackNotFound(version, slot)
        logger.info("Restoring backup %s", ids[-1])
        return self.read(ids[-1])

    # ------------------------------------------------------------------
    # 4. Retention
    # ------------------------------------------------------------------

    def delete(self, backup_id: str) -> None:
        self.storage.delete(_storage_name(backup_id))

    def prune(
        self,
        keep_per_version: int | None = None,
        max_age_seconds: float | None = None,
    ) -> list[str]:
        """Delete old backups and return the ids that were removed.

        Parameters
        ----------
        keep_per_version : int, optional
            Keep only this many most-recent backups of each version of
            each slot.
        max_age_seconds : float, optional
            Delete backups older than this.  The newest backup of each slot
            and version is always kept so that a rollback stays possible.
        """
        if keep_per_version is not None and keep_per_version < 1:
            raise ValueError("keep_per_version must be at least 1")

        groups: dict[tuple, list[BackupInfo]] = {}
        for info in self.list_all():
            groups.setdefault((info.slot, info.version), []).append(info)

        cutoff = None
        if max_age_seconds is not None:
            cutoff = self.clock() - int(max_age_seconds * 1000)

        doomed: list[str] = []
        for infos in groups.values():
            # infos is oldest first; the last one is never pruned
            for index, info in enumerate(infos[:-1]):
                too_many = (keep_per_version is not None
                            and index < len(infos) - keep_per_version)
                too_old = cutoff is not None and info.timestamp < cutoff
                if too_many or too_old:
                    doomed.append(info.backup_id)

        deleted: list[str] = []
        for backup_id in doomed:
            try:
                self.delete(backup_id)
            except OSError as exc:
                logger.warning("Could not delete backup %s: %s", backup_id, exc)
                continue
            deleted.append(backup_id)

        if deleted:
            logger.info("Pruned %d backup(s)", len(deleted))
        return deleted
