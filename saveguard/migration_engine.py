"""
saveguard/migration_engine.py -- Apply the migration chain to a document.

Walks a document from its detected version to a target version one step at
a time.  For every step the engine:

    1. snapshots the pre-step document through the ``BackupManager``
       (keyed by the pre-step version), if one is attached;
    2. hands the step a private deep copy, so neither the caller's document
       nor an earlier intermediate is ever aliased by the output;
    3. stamps ``version = v + 1`` on the result;
    4. appends one ``MigrationRecord`` to a *new* ``migrations`` list.

The entire chain is looked up before anything runs, so a missing step
fails without writing a single backup.

Usage::

    from saveguard.migration_engine import MigrationEngine

    engine = MigrationEngine(backups=backup_manager)
    upgraded = engine.migrate(document, 1, 5)
"""

from __future__ import annotations

import copy
import logging
from typing import Callable

from saveguard.errors import MigrationStepFailed, UnsupportedFutureVersion
from saveguard.migrations import DEFAULT_REGISTRY, MigrationRegistry
from saveguard.models.records import MigrationRecord
from saveguard.utils import now_ms

logger = logging.getLogger(__name__)


class MigrationEngine:
    """Runs registered steps in order.

    Parameters
    ----------
    registry : MigrationRegistry, optional
        Steps to apply.  Defaults to the steps shipped with this build.
    backups : BackupManager, optional
        Receives a snapshot before every step.  Without one, no backups are
        written (useful for dry runs and tests).
    clock : callable, optional
        Returns the timestamp (ms since the epoch) written into migration
        records.  Two calls with the same clock give equal output.
    """

    def __init__(
        self,
        registry: MigrationRegistry | None = None,
        backups=None,
        clock: Callable[[], int] | None = None,
    ):
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self.backups = backups
        self.clock = clock or now_ms

    @property
    def current_version(self) -> int:
        return self.registry.current

    def migrate(
        self,
        document: dict,
        from_version: int,
        to_version: int | None = None,
        slot: str | None = None,
    ) -> dict:
        """Upgrade *document* from *from_version* to *to_version*.

        Parameters
        ----------
        document : dict
            The document to upgrade.  It is never modified.
        from_version : int
            Version the document is currently in.
        to_version : int, optional
            Target version (default: the registry's current version).
        slot : str, optional
            Save slot the document came from; pre-step backups are filed
            under it.

        Returns
        -------
        dict
            The upgraded document.  When *from_version* equals *to_version*
            the input itself is returned.  Migration records are stamped
            with the engine's clock, so two calls give equal output only
            when a fixed clock was injected; the default clock is the wall
            clock.

        Raises
        ------
        UnsupportedFutureVersion
            If either version is newer than the registry knows about.
        ValueError
            If *to_version* is older than *from_version*.
        MigrationChainGap
            If a step in the range is missing (nothing is run or written).
        BackupWriteFailed
            If a pre-step snapshot cannot be stored.
        MigrationStepFailed
            If a step raises, or leaves a ``migrations`` history that is not
            a list; carries the pre-step document.
        """
        if to_version is None:
            to_version = self.current_version

        if from_version == to_version:
            return document

        current = self.current_version
        if to_version > current:
            raise UnsupportedFutureVersion(to_version, current)
        if from_version > current:
            raise UnsupportedFutureVersion(from_version, current)
        if to_version < from_version:
            raise ValueError(
                f"Cannot migrate a save backwards (v{from_version} -> v{to_version}). "
                f"Use a backup to go back to an older version."
            )

        steps = self.registry.chain(from_version, to_version)
        logger.info("Migrating save v%d -> v%d (%d step(s))",
                    from_version, to_version, len(steps))

        doc = document
        for step in steps:
            version = step.from_version
            if self.backups is not None:
                self.backups.snapshot(doc, version=version, slot=slot)

            try:
                out = step(copy.deepcopy(doc))
                if not isinstance(out, dict):
                    raise TypeError(
                        f"step returned {type(out).__name__} instead of a document"
                    )
                history = out.get("migrations")
                if history is None:
                    history = []
                elif not isinstance(history, list):
                    raise TypeError(
                        f"'migrations' is {type(history).__name__}, not a list"
                    )
            except Exception as exc:
                logger.error("Migration step v%d -> v%d failed: %s",
                             version, step.to_version, exc)
                raise MigrationStepFailed(version, exc, document=copy.deepcopy(doc)) from exc

            record = MigrationRecord(
                from_version=version,
                to_version=step.to_version,
                timestamp=self.clock(),
                action=step.action,
            )
            out["version"] = step.to_version
            out["migrations"] = [*history, record.model_dump()]
            logger.info("Applied migration v%d -> v%d: %s",
                        version, step.to_version, step.action)
            doc = out

        return doc


_default_engine: MigrationEngine | None = None


def migrate(document: dict, from_version: int, to_version: int | None = None) -> dict:
    """Migrate with a shared engine that writes no backups."""
    global _default_engine
    if _default_engine is None:
        _default_engine = MigrationEngine()
    return _default_engine.migrate(document, from_version, to_version)
