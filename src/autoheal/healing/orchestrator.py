"""Healing cycle orchestration.

One cycle is: detect -> prioritize -> heal each error (sequentially) ->
reconcile pattern confidence -> report. Errors are healed one at a time;
that ordering is the only thing protecting pattern counters, so the
orchestrator never runs ladders concurrently.

``run_cycle`` never raises for operational failures. Anything left unhealed
is reported through ``CycleReport.escalations``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from autoheal.core.errors import StoreError
from autoheal.core.logging import CycleContext, get_logger, with_context
from autoheal.core.models import ErrorCategory, ErrorRecord, HealingAttempt, HealingStrategy
from autoheal.core.time import utc_now
from autoheal.detection.detector import DetectionSummary, Detector
from autoheal.detection.prioritizer import prioritize
from autoheal.healing.escalation import EscalationEntry
from autoheal.healing.ladder import Healed, StrategyLadder
from autoheal.learning.confidence import ConfidenceLearner, ConfidenceUpdate
from autoheal.store.base import ErrorStore

_logger = get_logger("healing.orchestrator")


class CycleOutcome(str, Enum):
    """Coarse classification of a cycle, finer than ``success``."""

    NOOP = "noop"
    """No open errors were selected; nothing was attempted."""

    HEALED = "healed"
    """Every processed error was healed."""

    PARTIAL = "partial"
    """Some errors were healed and some escalated."""

    ESCALATED = "escalated"
    """Nothing was healed and at least one error escalated."""


@dataclass(frozen=True)
class PatternLearning:
    """A pattern that healed an error this cycle."""

    pattern_name: str
    effectiveness: float


@dataclass
class CycleReport:
    """Everything one healing cycle did."""

    cycle_id: str
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    detected: int = 0
    processed: int = 0
    healed: int = 0
    attempts: list[HealingAttempt] = field(default_factory=list)
    escalations: list[EscalationEntry] = field(default_factory=list)
    learnings: list[PatternLearning] = field(default_factory=list)
    reconciled: list[ConfidenceUpdate] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    """Error ids skipped because they were resolved before their turn."""

    @property
    def success(self) -> bool:
        """True if anything healed or nothing escalated.

        A cycle with no work at all is therefore successful; use
        ``outcome`` to tell that case apart.
        """
        return self.healed > 0 or not self.escalations

    @property
    def outcome(self) -> CycleOutcome:
        if self.healed == 0 and not self.escalations:
            return CycleOutcome.NOOP
        if not self.escalations:
            return CycleOutcome.HEALED
        if self.healed > 0:
            return CycleOutcome.PARTIAL
        return CycleOutcome.ESCALATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "success": self.success,
            "outcome": self.outcome.value,
            "detected": self.detected,
            "processed": self.processed,
            "healed": self.healed,
            "attempts": [
                {
                    "error_id": a.error_id,
                    "strategy": a.strategy.value,
                    "attempt_number": a.attempt_number,
                    "outcome": a.outcome.value,
                    "confidence": round(a.confidence, 4),
                    "applied": a.applied,
                    "duration_ms": a.duration_ms,
                }
                for a in self.attempts
            ],
            "escalations": [e.to_dict() for e in self.escalations],
            "learnings": [
                {"pattern_name": item.pattern_name, "effectiveness": item.effectiveness}
                for item in self.learnings
            ],
            "reconciled": [
                {
                    "pattern_name": u.pattern_name,
                    "old": round(u.old_confidence, 4),
                    "new": round(u.new_confidence, 4),
                    "applied": u.applied,
                    "reason": u.reason,
                }
                for u in self.reconciled
            ],
        }

    def format(self) -> str:
        """Human-readable cycle report."""
        lines = [
            "═" * 70,
            f"HEALING CYCLE {self.cycle_id}: {self.outcome.value.upper()}",
            "═" * 70,
            "",
            f"Detected: {self.detected}   Processed: {self.processed}   "
            f"Healed: {self.healed}   Escalated: {len(self.escalations)}",
            "",
        ]

        lines.append("Attempts:")
        if self.attempts:
            for a in self.attempts:
                mark = "✓" if a.succeeded else "✗"
                lines.append(
                    f"  {mark} {a.error_id} #{a.attempt_number} {a.strategy.value} "
                    f"({a.confidence:.0%})"
                )
        else:
            lines.append("  (none)")
        lines.append("")

        if self.escalations:
            lines.append("Needs human attention:")
            for e in self.escalations:
                lines.append(f"  - {e.error_id} [{e.error.category.value}] {e.escalation_reason}")
                lines.append(f"    → {e.human_action_needed}")
            lines.append("")

        applied = [u for u in self.reconciled if u.applied]
        if applied:
            lines.append("Confidence updates:")
            for u in applied:
                lines.append(
                    f"  {u.pattern_name}: {u.old_confidence:.2f} → {u.new_confidence:.2f}"
                )
            lines.append("")

        lines.append("═" * 70)
        return "\n".join(lines)


def _select(
    summary: DetectionSummary,
    target_categories: Iterable[ErrorCategory] | None,
    max_errors: int,
) -> list[ErrorRecord]:
    ordered = prioritize(summary.items)
    if target_categories is not None:
        wanted = {ErrorCategory(c) for c in target_categories}
        ordered = [r for r in ordered if r.category in wanted]
    return ordered[:max_errors]


class HealingOrchestrator:
    """Runs healing cycles over one set of injected stores.

    Example:
        orchestrator = HealingOrchestrator(detector, ladder, learner, error_store)
        report = await orchestrator.run_cycle(max_errors=5)
        print(report.format())
    """

    def __init__(
        self,
        detector: Detector,
        ladder: StrategyLadder,
        learner: ConfidenceLearner,
        error_store: ErrorStore,
        max_errors: int = 10,
        target_categories: list[ErrorCategory] | None = None,
    ) -> None:
        self._detector = detector
        self._ladder = ladder
        self._learner = learner
        self._store = error_store
        self.max_errors = max_errors
        self.target_categories = target_categories

    async def _still_open(self, record: ErrorRecord) -> bool:
        try:
            current = await self._store.get(record.id)
        except StoreError as e:
            _logger.warning("orchestrator.refresh_failed", error_id=record.id, error=str(e))
            return not record.is_resolved
        return current is not None and not current.is_resolved

    async def run_cycle(
        self,
        max_errors: int | None = None,
        target_categories: list[ErrorCategory] | None = None,
        auto_apply: bool | None = None,
    ) -> CycleReport:
        """Run one detect, heal and learn cycle.

        Args:
            max_errors: Cap on errors healed this cycle. Defaults to the
                orchestrator's configured value.
            target_categories: Only heal these categories. Defaults to the
                configured categories, or all.
            auto_apply: Override the ladder's auto-apply setting for this cycle.

        Returns:
            The cycle report. Never raises for store or oracle failures.
        """
        limit = max_errors if max_errors is not None else self.max_errors
        categories = target_categories if target_categories is not None else self.target_categories
        ctx = CycleContext()
        report = CycleReport(cycle_id=ctx.cycle_id)

        previous_auto_apply = self._ladder.auto_apply
        if auto_apply is not None:
            self._ladder.auto_apply = auto_apply
        try:
            with with_context(ctx):
                await self._run(report, ctx, limit, categories)
        finally:
            self._ladder.auto_apply = previous_auto_apply
            report.finished_at = utc_now()
        return report

    async def _run(
        self,
        report: CycleReport,
        ctx: CycleContext,
        limit: int,
        categories: list[ErrorCategory] | None,
    ) -> None:
        _logger.info("orchestrator.cycle_started", max_errors=limit)
        summary = await self._detector.detect_all()
        report.detected = summary.total
        report.recommendations = list(summary.recommendations)

        if summary.total == 0:
            _logger.info("orchestrator.cycle_noop")
            return

        selected = _select(summary, categories, limit)
        for record in selected:
            if not await self._still_open(record):
                report.skipped.append(record.id)
                continue
            with with_context(ctx.for_error(record.id)):
                result = await self._ladder.run(record)
            report.processed += 1
            report.attempts.extend(result.attempts)
            if isinstance(result, Healed):
                report.healed += 1
                final = result.final_attempt
                if final.strategy is HealingStrategy.PATTERN and final.pattern_name:
                    report.learnings.append(
                        PatternLearning(
                            pattern_name=final.pattern_name,
                            effectiveness=final.confidence,
                        )
                    )
            else:
                report.escalations.append(result.entry)

        report.reconciled = await self._learner.reconcile()
        _logger.info(
            "orchestrator.cycle_complete",
            outcome=report.outcome.value,
            processed=report.processed,
            healed=report.healed,
            escalated=len(report.escalations),
            reconciled=sum(1 for u in report.reconciled if u.applied),
        )
