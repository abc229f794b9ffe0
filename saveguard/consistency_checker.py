"""
saveguard/consistency_checker.py -- Semantic corruption detection.

Runs after structural validation and looks for contradictions *between*
parts of a save that a schema cannot see: references to entities that do
not exist, impossible resource amounts, and so on.  Every finding is a
``CorruptionReport`` carrying a severity:

    SOFT      safe to repair automatically (see ``saveguard.error_recovery``)
    HARD      repair would require guessing; the load is rejected
    ADVISORY  worth telling someone about, never blocks and never repaired

Checks, in the order their reports are returned:

    empty_structures       structure roster is empty              ADVISORY
    negative_resource      a resource amount below zero           SOFT
    missing_assignment     actor assigned to a missing structure  HARD
    missing_region_member  region lists a missing structure       HARD
    missing_slot_worker    work slot names a missing actor        HARD

The detector never crashes on a missing section; it simply has nothing to
check there.

Usage::

    from saveguard.consistency_checker import CorruptionDetector

    reports = CorruptionDetector().detect(document)
"""

from __future__ import annotations

import logging
from typing import Callable

from saveguard.models.records import CorruptionReport, Severity

logger = logging.getLogger(__name__)

EMPTY_STRUCTURES = "empty_structures"
NEGATIVE_RESOURCE = "negative_resource"
MISSING_ASSIGNMENT = "missing_assignment"
MISSING_REGION_MEMBER = "missing_region_member"
MISSING_SLOT_WORKER = "missing_slot_worker"
CHECKSUM_MISMATCH = "checksum_mismatch"


def _items(document: dict, key: str) -> list[dict]:
    value = document.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _ids(items: list[dict]) -> set[str]:
    return {item["id"] for item in items if isinstance(item.get("id"), str)}


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

def check_empty_structures(document: dict) -> list[CorruptionReport]:
    structures = document.get("structures", document.get("buildings"))
    if isinstance(structures, list) and not structures:
        return [CorruptionReport(
            code=EMPTY_STRUCTURES,
            description="The settlement has no structures at all.",
            severity=Severity.ADVISORY,
        )]
    return []


def check_negative_resources(document: dict) -> list[CorruptionReport]:
    resources = document.get("resources")
    if not isinstance(resources, dict):
        return []
    reports = []
    for name, amount in resources.items():
        if isinstance(amount, (int, float)) and not isinstance(amount, bool) and amount < 0:
            reports.append(CorruptionReport(
                code=NEGATIVE_RESOURCE,
                description=f"Resource '{name}' has a negative amount ({amount}).",
                severity=Severity.SOFT,
                subject=name,
            ))
    return reports


def check_actor_assignments(document: dict) -> list[CorruptionReport]:
    structure_ids = _ids(_items(document, "structures"))
    reports = []
    for actor in _items(document, "actors"):
        target = actor.get("assigned_structure_id")
        if target is None or target in structure_ids:
            continue
        actor_id = actor.get("id", "?")
        reports.append(CorruptionReport(
            code=MISSING_ASSIGNMENT,
            description=(
                f"Actor '{actor_id}' is assigned to structure '{target}', "
                f"which does not exist."
            ),
            severity=Severity.HARD,
            subject=str(actor_id),
        ))
    return reports


def check_region_members(document: dict) -> list[CorruptionReport]:
    structure_ids = _ids(_items(document, "structures"))
    reports = []
    for region in _items(document, "regions"):
        members = region.get("structure_ids")
        if not isinstance(members, list):
            continue
        region_id = region.get("id", "?")
        for member in members:
            if member in structure_ids:
                continue
            reports.append(CorruptionReport(
                code=MISSING_REGION_MEMBER,
                description=(
                    f"Region '{region_id}' lists structure '{member}', "
                    f"which does not exist."
                ),
                severity=Severity.HARD,
                subject=str(region_id),
            ))
    return reports


def check_work_slots(document: dict) -> list[CorruptionReport]:
    actor_ids = _ids(_items(document, "actors"))
    reports = []
    for structure in _items(document, "structures"):
        slots = structure.get("work_slots")
        if not isinstance(slots, list):
            continue
        structure_id = structure.get("id", "?")
        for index, worker in enumerate(slots):
            if worker is None or worker in actor_ids:
                continue
            reports.append(CorruptionReport(
                code=MISSING_SLOT_WORKER,
                description=(
                    f"Work slot {index} of structure '{structure_id}' names "
                    f"actor '{worker}', who does not exist."
                ),
                severity=Severity.HARD,
                subject=str(structure_id),
            ))
    return reports


DEFAULT_CHECKS: tuple[Callable[[dict], list[CorruptionReport]], ...] = (
    check_empty_structures,
    check_negative_resources,
    check_actor_assignments,
    check_region_members,
    check_work_slots,
)


def checksum_mismatch_report() -> CorruptionReport:
    """Report for a save whose stored checksum does not match its content."""
    return CorruptionReport(
        code=CHECKSUM_MISMATCH,
        description=(
            "The save's checksum does not match its content; it was probably "
            "edited outside the game."
        ),
        severity=Severity.SOFT,
    )


# ---------------------------------------------------------------------------
# CorruptionDetector
# ---------------------------------------------------------------------------

class CorruptionDetector:
    """Runs every semantic check over a structurally valid document.

    Parameters
    ----------
    checks : sequence of callables, optional
        ``(document) -> list[CorruptionReport]`` functions, run in order.
        Defaults to ``DEFAULT_CHECKS``.
    """

    def __init__(self, checks=None):
        self.checks = tuple(checks) if checks is not None else DEFAULT_CHECKS

    def detect(self, document: dict) -> list[CorruptionReport]:
        """Return all corruption reports for *document*, in check order."""
        if not isinstance(document, dict):
            return []
        reports: list[CorruptionReport] = []
        for check in self.checks:
            reports.extend(check(document))
        if reports:
            logger.debug("Detected %d corruption report(s): %s",
                         len(reports), ", ".join(r.code for r in reports))
        return reports


def detect(document: dict) -> list[CorruptionReport]:
    """Run the default checks over *document*."""
    return CorruptionDetector().detect(document)
