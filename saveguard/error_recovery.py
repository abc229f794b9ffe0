"""
saveguard/error_recovery.py -- Repair soft corruption in a save document.

Recovery is all-or-nothing with respect to hard corruption: if any report
is HARD, nothing is touched and ``CorruptionUnrecoverable`` lists every hard
report at once.  Otherwise the document is copied and each SOFT report's
fix is applied to the copy:

    negative_resource   clamp the amount to 0
    checksum_mismatch   accept the content as-is (the edit is only logged)

Every applied fix is logged as a warning so that support can tell what was
changed.  ADVISORY reports are logged and left unresolved.

Safety guarantees:
    - The input document is never modified.
    - No fix is attempted unless every report is fixable.
    - A SOFT report with no known fix is treated as a programming error.

Usage::

    from saveguard.error_recovery import CorruptionRecovery

    repaired = CorruptionRecovery().recover(document, reports)
"""

from __future__ import annotations

import copy
import logging

from saveguard.consistency_checker import CHECKSUM_MISMATCH, NEGATIVE_RESOURCE
from saveguard.errors import CorruptionUnrecoverable
from saveguard.models.records import CorruptionReport, Severity

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Fixes
# ---------------------------------------------------------------------------

def _clamp_negative_resource(document: dict, report: CorruptionReport) -> None:
    resources = document.get("resources")
    if not isinstance(resources, dict) or report.subject not in resources:
        return
    old = resources[report.subject]
    if isinstance(old, (int, float)) and old < 0:
        resources[report.subject] = 0
        logger.warning("Recovered save: clamped resource '%s' from %s to 0",
                       report.subject, old)


def _accept_checksum_mismatch(document: dict, report: CorruptionReport) -> None:
    logger.warning("Recovered save: checksum mismatch accepted; the save "
                   "was edited outside the game")


_FIXES = {
    NEGATIVE_RESOURCE: _clamp_negative_resource,
    CHECKSUM_MISMATCH: _accept_checksum_mismatch,
}


def unresolved(reports: list[CorruptionReport]) -> list[CorruptionReport]:
    """Return the reports that recovery leaves in place (advisories)."""
    return [r for r in reports if r.severity is Severity.ADVISORY]


def needs_recovery(reports: list[CorruptionReport]) -> bool:
    """True when at least one report would change the document."""
    return any(r.is_soft for r in reports)


# ---------------------------------------------------------------------------
# CorruptionRecovery
# ---------------------------------------------------------------------------

class CorruptionRecovery:
    """Applies the registered fix for every SOFT corruption report."""

    def __init__(self, fixes: dict | None = None):
        self.fixes = dict(_FIXES if fixes is None else fixes)

    def recover(self, document: dict, reports: list[CorruptionReport]) -> dict:
        """Return a repaired copy of *document*.

        Parameters
        ----------
        document : dict
            A structurally valid document.  Never modified.
        reports : list[CorruptionReport]
            Output of ``CorruptionDetector.detect`` for *document*.

        Returns
        -------
        dict
            The repaired document (a copy, even if nothing needed fixing).

        Raises
        ------
        CorruptionUnrecoverable
            If any report is HARD.  Lists every hard report.
        KeyError
            If a SOFT report has no registered fix.
        """
        hard = [r for r in reports if r.is_hard]
        if hard:
            for report in hard:
                logger.error("Unrecoverable corruption (%s): %s",
                             report.code, report.description)
            raise CorruptionUnrecoverable(hard)

        missing = [r.code for r in reports if r.is_soft and r.code not in self.fixes]
        if missing:
            raise KeyError(f"No recovery is registered for: {', '.join(missing)}")

        repaired = copy.deepcopy(document)
        for report in reports:
            if report.is_soft:
                self.fixes[report.code](repaired, report)
            else:
                logger.info("Left unresolved (%s): %s", report.code, report.description)
        return repaired


def recover(document: dict, reports: list[CorruptionReport]) -> dict:
    """Recover with the default fixes."""
    return CorruptionRecovery().recover(document, reports)
