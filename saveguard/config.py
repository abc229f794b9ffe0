"""
saveguard/config.py -- Engine configuration and logging setup.

Settings are a Pydantic v2 model so a hand-edited config file is checked
before the engine starts.  A missing or unreadable file means "use the
defaults"; a file with invalid values is an error the user has to fix.

Example ``saveguard.json``::

    {
        "storage_dir": "D:/Games/Settlement/saves",
        "default_slot": "slot-1.json",
        "backup_keep_per_version": 5,
        "backup_max_age_days": 30,
        "log_level": "INFO"
    }

Usage::

    from saveguard.config import EngineConfig, setup_logging

    config = EngineConfig.from_file()
    setup_logging(config.log_level)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from saveguard.paths import get_config_path, get_saves_dir
from saveguard.utils import safe_read_json

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


class EngineConfig(BaseModel):
    """Settings for the save engine and its tooling."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    storage_dir: str = Field(default_factory=get_saves_dir)
    default_slot: str = "slot-1.json"
    backup_keep_per_version: int | None = Field(default=5, ge=1)
    backup_max_age_days: float | None = Field(default=None, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("default_slot")
    @classmethod
    def _slot_outside_backups(cls, value: str) -> str:
        if not value or value.startswith("backups/"):
            raise ValueError("default_slot must name a file outside the backups folder")
        return value

    @property
    def backup_max_age_seconds(self) -> float | None:
        if self.backup_max_age_days is None:
            return None
        return self.backup_max_age_days * 86400

    @classmethod
    def from_file(cls, path=None) -> "EngineConfig":
        """Load settings from *path* (default: the user config file).

        Raises
        ------
        ValueError
            If the file exists but holds invalid settings.
        """
        path = path or get_config_path()
        data = safe_read_json(path, default=None)
        if data is None:
            logger.debug("No config at %s; using defaults", path)
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"The settings file {path} must contain a JSON object.")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(
                f"The settings file {path} has invalid values:\n{exc}"
            ) from exc


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
