"""
Saveguard -- save versioning, migration and integrity recovery for the
settlement simulation.

Package layout:
    storage             Byte storage for save slots and backups
    codec               Wire format (JSON + checksum)
    version_detector    Format version detection, incl. legacy heuristics
    migrations          Migration registry and the per-version steps
    migration_engine    Applies the migration chain
    schema_validator    Structural validation (JSON Schema + rules)
    consistency_checker Semantic corruption detection
    error_recovery      Soft-corruption repair
    backup_manager      Pre-mutation snapshots, rollback, retention
    load_orchestrator   The load pipeline state machine
    config / paths      Settings and default locations
    cli                 ``saveguard`` command-line tooling
    models/             Records, schemas and game constants
"""

__version__ = "1.0.0"
