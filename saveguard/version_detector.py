"""
saveguard/version_detector.py -- Determine the format version of a save.

Saves written since format v2 carry an explicit integer ``version`` field,
which is authoritative.  Saves from before explicit tagging are recognised
by structural heuristics, tried in a fixed order (first match wins):

    1. legacy-structures  ``structures`` list, no ``version`` key and none
                          of the version-gated sections        -> v1
    2. legacy-buildings   ``buildings`` list (the earliest name of the
                          roster), no ``structures``, no ``version`` key
                          and none of the version-gated sections -> v1

Every heuristic also requires the *absence* of every section a later
version introduced.  A modern save that merely lost its ``version`` field
therefore comes back as undetectable instead of being mistaken for a v1
save and receiving "new game" defaults.

Usage::

    from saveguard.version_detector import detect

    version = detect(document)       # int or None
"""

from __future__ import annotations

import logging
from typing import Callable, NamedTuple

from saveguard.migrations import VERSION_HISTORY
from saveguard.models.catalog import CURRENT_VERSION, OLDEST_VERSION
from saveguard.schema_validator import is_version_number

logger = logging.getLogger(__name__)

# Sections introduced after explicit tagging; a legacy save never has them.
VERSION_GATED_FIELDS = frozenset({
    "actors", "next_actor_id", "regions", "next_region_id",
    "progression", "migrations",
})


class Heuristic(NamedTuple):
    name: str
    version: int
    matches: Callable[[dict], bool]


def _untagged_without_gated_fields(doc: dict) -> bool:
    return "version" not in doc and not (VERSION_GATED_FIELDS & doc.keys())


def _legacy_structures(doc: dict) -> bool:
    return isinstance(doc.get("structures"), list) and _untagged_without_gated_fields(doc)


def _legacy_buildings(doc: dict) -> bool:
    return (
        isinstance(doc.get("buildings"), list)
        and "structures" not in doc
        and _untagged_without_gated_fields(doc)
    )


HEURISTICS: tuple[Heuristic, ...] = (
    Heuristic("legacy-structures", OLDEST_VERSION, _legacy_structures),
    Heuristic("legacy-buildings", OLDEST_VERSION, _legacy_buildings),
)


def detect(document) -> int | None:
    """Return the format version of *document*, or ``None`` if unknown.

    ``None`` must be treated by the caller as ``VersionUndetectable``; it is
    never a hint to fall back to some default version.
    """
    if not isinstance(document, dict):
        return None

    version = document.get("version")
    if is_version_number(version):
        return version

    for heuristic in HEURISTICS:
        if heuristic.matches(document):
            logger.info("Untagged save matched heuristic '%s' -> v%d",
                        heuristic.name, heuristic.version)
            return heuristic.version

    if "version" in document:
        logger.warning("Save has an invalid version field %r and matched no heuristic",
                       version)
    return None


def describe(version: int, current: int = CURRENT_VERSION) -> dict:
    """Return human-facing information about a format version.

    Used by tooling to tell the player what will happen to an old save.
    """
    known = version in VERSION_HISTORY
    return {
        "version": version,
        "version_name": f"v{version}" + ("" if known else " (Unknown)"),
        "description": VERSION_HISTORY.get(version, "Unknown save format version"),
        "current": current,
        "needs_migration": known and version < current,
        "is_future": version > current,
    }
