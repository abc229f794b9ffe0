"""
saveguard/models/records.py -- Records and result types shared by the engine.

Persisted records (things that end up inside a save or a backup file) are
Pydantic v2 models so they are validated on the way in and out:

    MigrationRecord   one entry of a document's ``migrations`` history
    BackupInfo        metadata of one snapshot in the backup store

In-memory results handed between pipeline stages are plain dataclasses:

    ValidationResult  complete list of structural violations
    CorruptionReport  one semantic inconsistency with its severity
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ------------------------------------------------------------------
# Persisted records
# ------------------------------------------------------------------

class MigrationRecord(BaseModel):
    """Immutable log entry for one applied migration step."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    from_version: int = Field(ge=1)
    to_version: int = Field(ge=2)
    timestamp: int = Field(ge=0, description="Milliseconds since the epoch.")
    action: str = Field(min_length=1)

    @model_validator(mode="after")
    def _one_version_forward(self) -> "MigrationRecord":
        if self.to_version != self.from_version + 1:
            raise ValueError(
                f"a migration record must advance exactly one version "
                f"(got {self.from_version} -> {self.to_version})"
            )
        return self


class BackupInfo(BaseModel):
    """Metadata for one stored snapshot."""

    model_config = ConfigDict(frozen=True)

    backup_id: str
    slot: str | None = None
    version: int = Field(ge=1)
    timestamp: int = Field(ge=0)
    sequence: int = Field(ge=0)


# ------------------------------------------------------------------
# Pipeline results
# ------------------------------------------------------------------

@dataclass
class ValidationResult:
    """Structured result from the schema validator."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    version: int | None = None

    @classmethod
    def from_errors(cls, errors: list[str], version: int | None = None) -> "ValidationResult":
        return cls(is_valid=not errors, errors=list(errors), version=version)

    def format_human(self) -> str:
        if self.is_valid:
            return "Validation passed."
        lines = [f"{len(self.errors)} error(s):"]
        lines.extend(f"  - {e}" for e in self.errors)
        return "\n".join(lines)


class Severity(str, Enum):
    SOFT = "soft"          # auto-fixable
    HARD = "hard"          # unrecoverable, blocks the load
    ADVISORY = "advisory"  # reported only, never blocks and never fixed


@dataclass(frozen=True)
class CorruptionReport:
    """A single semantic inconsistency found in a structurally valid save."""
    code: str
    description: str
    severity: Severity
    subject: str = ""  # the resource name / entity id the report is about

    @property
    def is_hard(self) -> bool:
        return self.severity is Severity.HARD

    @property
    def is_soft(self) -> bool:
        return self.severity is Severity.SOFT
