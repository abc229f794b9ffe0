"""
saveguard/models/ -- Schemas and record types for the save engine.

Submodules:
    records   Pydantic records (migration history, backup metadata) and
              pipeline result types (validation results, corruption reports).
    schemas   Version constants, game enumerations and per-version
              JSON Schemas for save documents.
"""

from saveguard.models.records import (
    BackupInfo,
    CorruptionReport,
    MigrationRecord,
    Severity,
    ValidationResult,
)

__all__ = [
    "BackupInfo",
    "CorruptionReport",
    "MigrationRecord",
    "Severity",
    "ValidationResult",
]
