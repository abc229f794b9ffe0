"""
saveguard/storage.py -- Byte storage abstraction for save slots and backups.

The engine never touches the file system directly.  Everything it persists
(live save slots and backup snapshots) goes through a ``Storage`` object
supplied by the host: a directory on disk for the desktop build, an
in-memory dict for tests and tooling.

Names are ``/``-separated relative keys such as ``"slot-1.json"`` or
``"backups/v2/000001700000000000-000001.json"``.  ``write`` must be atomic:
a reader sees either the previous content or the complete new content.

Usage::

    from saveguard.storage import DirectoryStorage

    storage = DirectoryStorage("C:/Users/me/AppData/Local/Settlement/saves")
    storage.write("slot-1.json", raw_bytes)
    names = storage.list("backups/")
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from saveguard.utils import atomic_write_bytes

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Abstract read/write/list/delete interface over named byte blobs."""

    @abstractmethod
    def read(self, name: str) -> bytes:
        """Return the bytes stored under *name*.

        Raises
        ------
        FileNotFoundError
            If nothing is stored under *name*.
        """

    @abstractmethod
    def write(self, name: str, data: bytes) -> None:
        """Atomically store *data* under *name*, replacing any old value."""

    @abstractmethod
    def list(self, prefix: str = "") -> list[str]:
        """Return all stored names starting with *prefix*, sorted."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove *name*.  Raises ``FileNotFoundError`` if it is absent."""

    def exists(self, name: str) -> bool:
        return name in self.list(name)


def _check_name(name: str) -> str:
    """Reject names that could escape the storage root."""
    if not name or name.startswith("/") or "\\" in name:
        raise ValueError(f"Invalid storage name: {name!r}")
    if any(part in ("", ".", "..") for part in name.split("/")):
        raise ValueError(f"Invalid storage name: {name!r}")
    return name


# ---------------------------------------------------------------------------
# DirectoryStorage
# ---------------------------------------------------------------------------

class DirectoryStorage(Storage):
    """Storage backed by a directory tree on disk.

    Parameters
    ----------
    root : str or pathlib.Path
        Directory that holds every stored name.  Created if missing.
    """

    def __init__(self, root):
        self.root = Path(root).resolve()
        os.makedirs(str(self.root), exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.root.joinpath(*_check_name(name).split("/"))

    def read(self, name: str) -> bytes:
        path = self._path(name)
        if not path.is_file():
            raise FileNotFoundError(f"Nothing is stored under '{name}'.")
        return path.read_bytes()

    def write(self, name: str, data: bytes) -> None:
        atomic_write_bytes(self._path(name), data)

    def list(self, prefix: str = "") -> list[str]:
        names: list[str] = []
        for dirpath_str, _dirnames, filenames in os.walk(str(self.root)):
            dirpath = Path(dirpath_str)
            for fname in filenames:
                # Leftover temp files from an interrupted write are not data.
                if fname.endswith(".tmp"):
                    continue
                rel = (dirpath / fname).relative_to(self.root).as_posix()
                if rel.startswith(prefix):
                    names.append(rel)
        names.sort()
        return names

    def delete(self, name: str) -> None:
        path = self._path(name)
        if not path.is_file():
            raise FileNotFoundError(f"Nothing is stored under '{name}'.")
        os.remove(str(path))

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()


# ---------------------------------------------------------------------------
# MemoryStorage
# ---------------------------------------------------------------------------

class MemoryStorage(Storage):
    """Dict-backed storage for tests, tooling and browser-style hosts."""

    def __init__(self, initial: dict[str, bytes] | None = None):
        self._blobs: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, name: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[_check_name(name)]
            except KeyError:
                raise FileNotFoundError(f"Nothing is stored under '{name}'.") from None

    def write(self, name: str, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("Storage.write expects bytes")
        with self._lock:
            self._blobs[_check_name(name)] = bytes(data)

    def list(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(n for n in self._blobs if n.startswith(prefix))

    def delete(self, name: str) -> None:
        with self._lock:
            try:
                del self._blobs[_check_name(name)]
            except KeyError:
                raise FileNotFoundError(f"Nothing is stored under '{name}'.") from None

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._blobs
