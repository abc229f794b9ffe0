"""
Shared pytest fixtures for the saveguard test suite.

Provides:
    - memory_storage / dir_storage: empty storages (in memory / under tmp_path)
    - clock: a fixed millisecond clock
    - ticking_clock: a clock that advances one second per call
    - legacy_doc: an untagged v1 save (structures + resources)
    - v2_doc: a valid v2 save with one actor
    - current_doc: a valid save at the current format version
"""

import copy
import itertools
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure saveguard/ is importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from saveguard.storage import DirectoryStorage, MemoryStorage  # noqa: E402

FIXED_TIME_MS = 1_700_000_000_000


# ---------------------------------------------------------------------------
# Storage and clocks
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def dir_storage(tmp_path):
    return DirectoryStorage(tmp_path / "saves")


@pytest.fixture
def clock():
    """Return a clock that always reports the same instant."""
    return lambda: FIXED_TIME_MS


@pytest.fixture
def ticking_clock():
    """Return a clock that moves forward one second on every call."""
    counter = itertools.count()
    return lambda: FIXED_TIME_MS + next(counter) * 1000


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

_LEGACY = {
    "structures": [
        {
            "id": "b1",
            "type": "WALL",
            "position": {"x": 0, "y": 0, "z": 0},
            "status": "COMPLETE",
            "progress": 100,
        },
    ],
    "resources": {"gold": 100, "wood": 50},
}

_V2 = {
    "version": 2,
    "timestamp": 1699540000000,
    "playtime": 5400,
    "tier": "PERMANENT",
    "structures": [
        {
            "id": "b1",
            "type": "WATCHTOWER",
            "position": {"x": 4, "y": 0, "z": -3},
            "status": "COMPLETE",
            "progress": 100,
        },
        {
            "id": "b2",
            "type": "FARM",
            "position": {"x": 10, "y": 0, "z": 5},
            "status": "BUILDING",
            "progress": 40,
        },
    ],
    "resources": {"gold": 120, "wood": 30, "food": 12},
    "actors": [
        {
            "id": "n1",
            "name": "Mira",
            "role": "FARMER",
            "morale": 80,
            "skills": {"farming": 3},
            "assigned_structure_id": "b2",
        },
    ],
    "next_actor_id": 1,
    "migrations": [],
}

_CURRENT = {
    "version": 5,
    "timestamp": 1699540000000,
    "playtime": 3600,
    "tier": "PERMANENT",
    "structures": [
        {
            "id": "b1",
            "type": "WALL",
            "position": {"x": 0, "y": 0, "z": 0},
            "status": "COMPLETE",
            "progress": 100,
            "work_slots": [],
        },
        {
            "id": "b2",
            "type": "FARM",
            "position": {"x": 10, "y": 0, "z": 5},
            "status": "COMPLETE",
            "progress": 100,
            "work_slots": ["n1"],
        },
    ],
    "resources": {"gold": 100, "wood": 50},
    "actors": [
        {
            "id": "n1",
            "name": "Mira",
            "role": "FARMER",
            "morale": 80,
            "skills": {"farming": 3},
            "assigned_structure_id": "b2",
        },
    ],
    "next_actor_id": 1,
    "regions": [
        {
            "id": "region_0",
            "name": "Home",
            "center": {"x": 0, "y": 0, "z": 0},
            "radius": 25,
            "max_radius": 25,
            "expansion_count": 0,
            "structure_ids": ["b1", "b2"],
            "population": 1,
            "bonuses": {"defense": 1, "production": 1, "storage": 0,
                        "housing": 0, "trade": 0},
        },
    ],
    "next_region_id": 1,
    "migrations": [],
    "progression": {
        "tier": "PERMANENT",
        "unlocked": ["basic_construction", "masonry", "agriculture"],
        "researched": [],
        "research_points": 0,
    },
}


@pytest.fixture
def legacy_doc():
    """Untagged v1 save, as in the oldest builds."""
    return copy.deepcopy(_LEGACY)


@pytest.fixture
def v2_doc():
    return copy.deepcopy(_V2)


@pytest.fixture
def current_doc():
    """A valid, consistent save at the current format version."""
    return copy.deepcopy(_CURRENT)
