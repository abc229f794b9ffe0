"""
saveguard/paths.py -- Default locations for saves and configuration.

Uses platformdirs so that saves live in the platform-appropriate user data
directory (``%LOCALAPPDATA%`` on Windows, ``~/.local/share`` on Linux, ...).
The ``SAVEGUARD_HOME`` environment variable overrides it, which is what the
test suite and portable installs use.
"""

from __future__ import annotations

import os

from platformdirs import user_config_dir, user_data_dir

_APP_NAME = "Settlement"
_APP_AUTHOR = "Saveguard"

HOME_ENV = "SAVEGUARD_HOME"
CONFIG_FILENAME = "saveguard.json"


def get_user_data_dir() -> str:
    """Return the directory that holds save slots and backups."""
    override = os.environ.get(HOME_ENV)
    if override:
        return os.path.abspath(override)
    return user_data_dir(_APP_NAME, _APP_AUTHOR)


def get_saves_dir() -> str:
    return os.path.join(get_user_data_dir(), "saves")


def get_config_path() -> str:
    """Return the default path of the engine configuration file."""
    override = os.environ.get(HOME_ENV)
    if override:
        return os.path.join(os.path.abspath(override), CONFIG_FILENAME)
    return os.path.join(user_config_dir(_APP_NAME, _APP_AUTHOR), CONFIG_FILENAME)
