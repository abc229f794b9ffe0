"""
saveguard/errors.py -- Structured error taxonomy for the save engine.

Every failure the engine can surface is a subclass of ``SaveEngineError``.
Each error keeps the values needed to reproduce it (version numbers, the
failing document, the collected validation messages or corruption
reports) as attributes, and its ``str()`` is a human-readable reason that
the caller can show to the player as-is.

Hierarchy::

    SaveEngineError
        DocumentDecodeError
        VersionUndetectable
        UnsupportedFutureVersion
        MigrationError
            MigrationChainGap
            MigrationStepFailed
        ValidationFailed
        CorruptionUnrecoverable
        BackupWriteFailed
        RollbackNotFound
"""

from __future__ import annotations

from typing import Any


class SaveEngineError(Exception):
    """Base class for every error raised by the save engine.

    Parameters
    ----------
    message : str
        Human-readable reason.
    **context
        Structured details (stored on ``self.context``).
    """

    code = "save_engine_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        """Return a JSON-friendly summary (used by the CLI and logs)."""
        details = {
            key: value for key, value in self.context.items()
            if key != "document"
        }
        return {"error": self.code, "message": self.message, "details": details}


class DocumentDecodeError(SaveEngineError):
    """The raw bytes are not a JSON object."""

    code = "document_decode_error"

    def __init__(self, detail: str):
        super().__init__(
            f"The save data could not be read. It may be damaged or not a "
            f"save file at all. Technical detail: {detail}",
            detail=detail,
        )
        self.detail = detail


class VersionUndetectable(SaveEngineError):
    """No explicit version and no legacy heuristic matched."""

    code = "version_undetectable"

    def __init__(self, document: dict | None = None):
        super().__init__(
            "The save file's format version could not be determined, so it "
            "was not loaded. No changes were made.",
            document=document,
        )
        self.document = document


class UnsupportedFutureVersion(SaveEngineError):
    """The document was written by a newer build than this one."""

    code = "unsupported_future_version"

    def __init__(self, version: int, current: int):
        super().__init__(
            f"This save was created by a newer version of the game "
            f"(save format v{version}; this build understands up to "
            f"v{current}). Please update the game to load it.",
            version=version,
            current=current,
        )
        self.version = version
        self.current = current


class MigrationError(SaveEngineError):
    """Base class for failures while upgrading a document."""

    code = "migration_error"


class MigrationChainGap(MigrationError):
    """No migration step is registered for ``version -> version + 1``."""

    code = "migration_chain_gap"

    def __init__(self, version: int):
        super().__init__(
            f"No upgrade path exists from save format v{version} to "
            f"v{version + 1}.",
            version=version,
        )
        self.version = version


class MigrationStepFailed(MigrationError):
    """A registered step raised while upgrading from ``version``."""

    code = "migration_step_failed"

    def __init__(self, version: int, cause: BaseException,
                 document: dict | None = None):
        super().__init__(
            f"Upgrading the save from format v{version} to v{version + 1} "
            f"failed. The original save was not changed. "
            f"Technical detail: {type(cause).__name__}: {cause}",
            version=version,
            cause=repr(cause),
            document=document,
        )
        self.version = version
        self.cause = cause
        self.document = document


class ValidationFailed(SaveEngineError):
    """The document does not have the structure required by its version."""

    code = "validation_failed"

    def __init__(self, errors: list[str], version: int | None = None):
        count = len(errors)
        preview = "; ".join(errors[:3])
        more = f" (and {count - 3} more)" if count > 3 else ""
        super().__init__(
            f"The save file has {count} structural problem(s) and was not "
            f"loaded: {preview}{more}",
            errors=list(errors),
            version=version,
        )
        self.errors = list(errors)
        self.version = version


class CorruptionUnrecoverable(SaveEngineError):
    """At least one HARD corruption report was found."""

    code = "corruption_unrecoverable"

    def __init__(self, reports: list):
        descriptions = [r.description for r in reports]
        super().__init__(
            f"The save file contains {len(reports)} problem(s) that cannot be "
            f"repaired automatically: {'; '.join(descriptions)}. "
            f"You can restore an earlier backup instead.",
            reports=descriptions,
        )
        self.reports = list(reports)


class BackupWriteFailed(SaveEngineError):
    """A pre-mutation snapshot could not be written."""

    code = "backup_write_failed"

    def __init__(self, version: int | None, cause: BaseException):
        super().__init__(
            f"A safety backup could not be written before changing the save, "
            f"so nothing was changed. There may be a disk space or "
            f"permissions issue. Technical detail: {cause}",
            version=version,
            cause=repr(cause),
        )
        self.version = version
        self.cause = cause


class RollbackNotFound(SaveEngineError):
    """No backup exists for the requested version (of the requested slot)."""

    code = "rollback_not_found"

    def __init__(self, version: int, slot: str | None = None):
        where = f" of slot '{slot}'" if slot else ""
        super().__init__(
            f"No backups found for version {version}{where}.",
            version=version,
            slot=slot,
        )
        self.version = version
        self.slot = slot
