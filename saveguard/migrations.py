"""
saveguard/migrations.py -- Migration registry and the per-version steps.

A migration step is a pure function ``(document) -> document`` that
advances a save by exactly one format version.  Steps only add or
transform the fields their version introduces; every other field,
including ones this build has never heard of, is carried over verbatim.
Setting the new ``version`` number and appending the history record is
done by ``saveguard.migration_engine``, not by the steps.

The ``MigrationRegistry`` maps each ``from_version`` to its step and checks,
when it is constructed, that the chain from the oldest supported version
to the current one has no gaps.  A missing step is therefore a startup
failure rather than something a player discovers while loading.

Format history:

    v1  untagged legacy save: structures + resource ledger
    v2  explicit version tag, actor roster, migration history
    v3  regions (territories) with a default home region
    v4  per-structure work slots
    v5  technology / progression block

Adding a version: bump ``CURRENT_VERSION`` in ``models/catalog.py``, extend
the schema in ``models/schemas.py``, and register one new step below with
``@_step(old_version, "what it does")``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from saveguard.errors import MigrationChainGap
from saveguard.models.catalog import (
    BASE_REGION_RADIUS,
    BONUS_CATEGORIES,
    CURRENT_VERSION,
    DEFAULT_TIER,
    MAX_REGION_RADIUS,
    OLDEST_VERSION,
    REGION_RADIUS_BONUS,
    STRUCTURE_CATEGORIES,
    TIER_UNLOCKS,
    TIERS,
    WORK_SLOTS,
)

logger = logging.getLogger(__name__)

MigrationStep = Callable[[dict], dict]

# Explicit "nobody assigned" marker for a work slot.
UNASSIGNED = None

VERSION_HISTORY = {
    1: "Original settlement save (structures and resources, no version tag)",
    2: "Settlers: actor roster and migration history",
    3: "Territory: regions with a default home region",
    4: "Jobs: work slots on every structure",
    5: "Progression: technology unlocks and research",
}


@dataclass(frozen=True)
class RegisteredStep:
    """A migration step bound to the version it upgrades from."""
    from_version: int
    action: str
    func: MigrationStep

    @property
    def to_version(self) -> int:
        return self.from_version + 1

    def __call__(self, document: dict) -> dict:
        return self.func(document)


# ---------------------------------------------------------------------------
# MigrationRegistry
# ---------------------------------------------------------------------------

class MigrationRegistry:
    """Complete mapping ``from_version -> step``.

    Parameters
    ----------
    steps : iterable of RegisteredStep
        The steps to register.
    oldest : int
        Oldest format version still supported.
    current : int
        Format version this build writes.
    verify : bool
        Check for gaps between *oldest* and *current* on construction
        (default True).  Only tests and tooling should turn this off.

    Raises
    ------
    MigrationChainGap
        If *verify* is set and some version in ``[oldest, current)`` has no
        registered step.
    ValueError
        If two steps are registered for the same version.
    """

    def __init__(
        self,
        steps: Iterable[RegisteredStep] = (),
        oldest: int = OLDEST_VERSION,
        current: int = CURRENT_VERSION,
        verify: bool = True,
    ):
        if oldest > current:
            raise ValueError(f"oldest version {oldest} is newer than current {current}")
        self.oldest = oldest
        self.current = current
        self._steps: dict[int, RegisteredStep] = {}
        for step in steps:
            if step.from_version in self._steps:
                raise ValueError(
                    f"A migration step from v{step.from_version} is already registered."
                )
            self._steps[step.from_version] = step
        if verify:
            self.verify()

    def verify(self) -> None:
        """Raise ``MigrationChainGap`` for the first missing step, if any."""
        for version in range(self.oldest, self.current):
            if version not in self._steps:
                raise MigrationChainGap(version)
        logger.debug("Migration chain v%d -> v%d is complete", self.oldest, self.current)

    def get(self, from_version: int) -> RegisteredStep:
        try:
            return self._steps[from_version]
        except KeyError:
            raise MigrationChainGap(from_version) from None

    def chain(self, from_version: int, to_version: int) -> list[RegisteredStep]:
        """Return the ordered steps for ``from_version -> to_version``.

        The whole chain is resolved up front so that a gap is reported before
        anything runs.
        """
        return [self.get(v) for v in range(from_version, to_version)]

    def __contains__(self, from_version) -> bool:
        return from_version in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def versions(self) -> list[int]:
        return sorted(self._steps)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

_DEFAULT_STEPS: list[RegisteredStep] = []


def _step(from_version: int, action: str):
    """Register a function as the default step from *from_version*."""
    def decorator(func: MigrationStep) -> MigrationStep:
        _DEFAULT_STEPS.append(RegisteredStep(from_version, action, func))
        return func
    return decorator


@_step(1, "Added actor roster and save metadata")
def add_actor_roster(doc: dict) -> dict:
    """v1 -> v2: introduce the (empty) actor roster and its id counter.

    Also renames the earliest ``buildings`` roster to ``structures`` and
    fills in the metadata that v2 made mandatory.
    """
    out = dict(doc)
    if "structures" not in out and isinstance(out.get("buildings"), list):
        out["structures"] = out.pop("buildings")
    out.setdefault("timestamp", 0)
    out.setdefault("playtime", 0)
    out.setdefault("tier", DEFAULT_TIER)
    out["actors"] = []
    out["next_actor_id"] = 0
    return out


def max_region_radius(structures: list) -> int:
    """Radius a region can grow to, from its completed defensive structures."""
    radius = BASE_REGION_RADIUS
    for structure in structures:
        if not isinstance(structure, dict) or structure.get("status") != "COMPLETE":
            continue
        radius += REGION_RADIUS_BONUS.get(structure.get("type"), 0)
    return min(radius, MAX_REGION_RADIUS)


def region_bonuses(structures: list) -> dict:
    """Count completed structures per bonus category."""
    bonuses = {category: 0 for category in BONUS_CATEGORIES}
    for structure in structures:
        if not isinstance(structure, dict) or structure.get("status") != "COMPLETE":
            continue
        category = STRUCTURE_CATEGORIES.get(structure.get("type"))
        if category:
            bonuses[category] += 1
    return bonuses


@_step(2, "Created default home region")
def add_default_region(doc: dict) -> dict:
    """v2 -> v3: wrap every placed structure in one home region.

    The region's statistics are computed from the document as it stands
    after the earlier steps (e.g. the actor roster added in v2).
    """
    out = dict(doc)
    structures = out.get("structures") or []
    actors = out.get("actors") or []
    out["regions"] = [{
        "id": "region_0",
        "name": "Home",
        "center": {"x": 0, "y": 0, "z": 0},
        "radius": BASE_REGION_RADIUS,
        "max_radius": max_region_radius(structures),
        "expansion_count": 0,
        "structure_ids": [
            s["id"] for s in structures
            if isinstance(s, dict) and isinstance(s.get("id"), str)
        ],
        "population": len(actors),
        "bonuses": region_bonuses(structures),
    }]
    out["next_region_id"] = 1
    return out


@_step(3, "Added work slots to structures")
def add_work_slots(doc: dict) -> dict:
    """v3 -> v4: give every structure its (unassigned) work slots."""
    out = dict(doc)
    out["structures"] = [
        {**s, "work_slots": [UNASSIGNED] * WORK_SLOTS.get(s.get("type"), 0)}
        if isinstance(s, dict) else s
        for s in (out.get("structures") or [])
    ]
    return out


@_step(4, "Added progression block")
def add_progression(doc: dict) -> dict:
    """v4 -> v5: seed technology unlocks from the settlement tier."""
    out = dict(doc)
    tier = out.get("tier")
    if tier not in TIERS:
        tier = DEFAULT_TIER
    out["progression"] = {
        "tier": tier,
        "unlocked": list(TIER_UNLOCKS[tier]),
        "researched": [],
        "research_points": 0,
    }
    return out


def default_steps() -> list[RegisteredStep]:
    """Return the steps shipped with this build, oldest first."""
    return sorted(_DEFAULT_STEPS, key=lambda s: s.from_version)


DEFAULT_REGISTRY = MigrationRegistry(default_steps())
