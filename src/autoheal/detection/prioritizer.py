"""Severity-based ordering of detected errors."""

from __future__ import annotations

from collections.abc import Sequence

from autoheal.core.models import ErrorRecord, Severity

SEVERITY_WEIGHTS: dict[Severity, int] = {
    Severity.CRITICAL: 100,
    Severity.HIGH: 75,
    Severity.MEDIUM: 50,
    Severity.LOW: 25,
}


def severity_weight(severity: Severity) -> int:
    return SEVERITY_WEIGHTS[Severity(severity)]


def prioritize(findings: Sequence[ErrorRecord]) -> list[ErrorRecord]:
    """Return a new list ordered by descending severity weight.

    The sort is stable, so records of equal severity keep their input order.
    The input sequence is not modified.
    """
    return sorted(findings, key=lambda r: severity_weight(r.severity), reverse=True)
