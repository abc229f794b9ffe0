"""
Shared utility functions for the save engine.

Small helpers (the clock, JSON settings reads, atomic writes) used by
the storage, config and backup layers.

All file writes use atomic temp-file-then-os.replace() so that a crash
mid-write never leaves a half-written save or backup behind.
"""

import json
import logging
import os
import tempfile
import time

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

def now_ms() -> int:
    """Return the current UTC time as integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


# ---------------------------------------------------------------------------
# JSON I/O (atomic writes)
# ---------------------------------------------------------------------------

def safe_read_json(path, default=None):
    """Read a JSON file, returning *default* if the file is missing or corrupt.

    Parameters
    ----------
    path : str or pathlib.Path
        Absolute path to the JSON file.
    default
        Value returned when the file cannot be read (default ``None``).

    Returns
    -------
    object
        Parsed JSON content, or *default* on failure.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return default

def atomic_write_bytes(path, data: bytes) -> None:
    """Atomically write *data* to *path*.

    Uses a temporary file in the same directory followed by
    ``os.replace()`` so that readers never see a partially-written file.
    Parent directories are created if they do not exist.

    Parameters
    ----------
    path : str or pathlib.Path
        Absolute path to the target file.
    data : bytes
        Raw content to write.
    """
    path = str(path)
    parent = os.path.dirname(path)
    os.makedirs(parent, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
