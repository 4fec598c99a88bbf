"""Multi-category error detector.

Runs one read-only scan per error category against the error store, all
concurrently, and merges the results into a ``DetectionSummary``. A scan
that fails is replaced by empty findings carrying a diagnostic
recommendation, so one broken category never hides the others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from autoheal.core.logging import get_logger
from autoheal.core.models import ErrorCategory, ErrorRecord, ErrorStatus, Severity
from autoheal.detection.rules import SCAN_RULES, ScanRule
from autoheal.store.base import ErrorFilter, ErrorStore

_logger = get_logger("detection.detector")


@dataclass
class Findings:
    """Result of scanning one category."""

    category: ErrorCategory
    items: list[ErrorRecord] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    critical_items: list[ErrorRecord] = field(default_factory=list)
    failed: bool = False

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class DetectionSummary:
    """Merged findings of every category scan.

    Attributes:
        findings: Per-category findings, in category declaration order.
        items: Every detected record, once, even when several scans matched it.
        critical_items: Critical records, once each.
        recommendations: All recommendations, in category order.
    """

    findings: dict[ErrorCategory, Findings]
    items: list[ErrorRecord]
    critical_items: list[ErrorRecord]
    recommendations: list[str]

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def critical_count(self) -> int:
        return len(self.critical_items)

    @property
    def category_counts(self) -> dict[str, int]:
        return {category.value: f.count for category, f in self.findings.items()}

    @property
    def failed_categories(self) -> list[ErrorCategory]:
        return [category for category, f in self.findings.items() if f.failed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "critical_count": self.critical_count,
            "category_counts": self.category_counts,
            "recommendations": list(self.recommendations),
            "failed_categories": [c.value for c in self.failed_categories],
        }


def _unique(records: Iterable[ErrorRecord]) -> list[ErrorRecord]:
    seen: set[str] = set()
    unique: list[ErrorRecord] = []
    for record in records:
        if record.id not in seen:
            seen.add(record.id)
            unique.append(record)
    return unique


def analyze(rule: ScanRule, records: list[ErrorRecord]) -> Findings:
    """Turn scanned records into findings. Pure; no store access."""
    findings = Findings(category=rule.category, items=list(records))
    critical: list[ErrorRecord] = [r for r in records if r.severity == Severity.CRITICAL]
    if critical:
        findings.recommendations.append(
            f"{len(critical)} critical {rule.category.value} errors detected - "
            "immediate attention required"
        )

    for insight in rule.insights:
        matched = [r for r in records if insight.matches(r)]
        if len(matched) < insight.min_count:
            continue
        findings.recommendations.append(insight.recommendation)
        if insight.critical:
            critical.extend(matched)

    findings.critical_items = _unique(critical)
    return findings


class Detector:
    """Scans the error store for open errors, one scan per category.

    Example:
        detector = Detector(error_store)
        summary = await detector.detect_all()
        for rec in summary.recommendations:
            print(rec)
    """

    def __init__(
        self,
        store: ErrorStore,
        rules: dict[ErrorCategory, ScanRule] | None = None,
    ) -> None:
        self._store = store
        self._rules = rules if rules is not None else SCAN_RULES

    async def detect(self, category: ErrorCategory) -> Findings:
        """Scan one category.

        Never raises for store failures: a failed query yields empty
        findings with a diagnostic recommendation and ``failed`` set.
        """
        rule = self._rules.get(category, ScanRule(category=category))
        flt = ErrorFilter(
            category=category,
            status=ErrorStatus.OPEN,
            keywords=rule.keywords,
            limit=rule.limit,
        )
        try:
            records = await self._store.query(flt)
        except Exception as e:
            _logger.warning(
                "detector.scan_failed",
                category=category.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return Findings(
                category=category,
                recommendations=[
                    f"Failed to detect {category.value} errors - store query issue"
                ],
                failed=True,
            )

        findings = analyze(rule, records)
        _logger.debug(
            "detector.scan_complete",
            category=category.value,
            count=findings.count,
            critical=len(findings.critical_items),
        )
        return findings

    async def detect_all(self) -> DetectionSummary:
        """Scan every category concurrently and merge the findings."""
        categories = list(ErrorCategory)
        results = await asyncio.gather(*(self.detect(c) for c in categories))
        findings = dict(zip(categories, results, strict=True))

        summary = DetectionSummary(
            findings=findings,
            items=_unique(r for f in results for r in f.items),
            critical_items=_unique(r for f in results for r in f.critical_items),
            recommendations=[rec for f in results for rec in f.recommendations],
        )
        _logger.info(
            "detector.detection_complete",
            total=summary.total,
            critical=summary.critical_count,
            recommendations=len(summary.recommendations),
        )
        return summary

    async def record_error(
        self,
        category: ErrorCategory,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
    ) -> ErrorRecord:
        """Insert a new open error record.

        Raises:
            InvalidErrorRecordError: If the store rejects the record.
        """
        record = ErrorRecord(
            category=category,
            message=message,
            severity=severity,
            context=context or {},
        )
        stored = await self._store.insert(record)
        _logger.info(
            "detector.error_recorded",
            error_id=stored.id,
            category=stored.category.value,
            severity=stored.severity.value,
        )
        return stored
