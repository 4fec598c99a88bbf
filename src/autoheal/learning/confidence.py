"""Confidence learning for remediation patterns.

Attempt outcomes increment a pattern's success and failure counters as
they happen. A separate reconciliation pass, run once per cycle over the
patterns touched in that cycle, moves each pattern's confidence toward its
observed success rate:

    new = learning_rate * success_rate + (1 - learning_rate) * old

The update is applied only once a pattern has ``min_samples`` outcomes and
only when it moves confidence by more than ``hysteresis``. With the default
learning rate of 0.8 a single reconciliation moves confidence by at most
``0.8 * |success_rate - old|``.

Idle patterns are soft-decayed by ``decay_idle``; patterns are never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from autoheal.core.config import LearningConfig
from autoheal.core.errors import InvariantViolationError, StoreError
from autoheal.core.logging import get_logger
from autoheal.core.models import Pattern
from autoheal.core.time import utc_now
from autoheal.store.base import PatternStore

_logger = get_logger("learning.confidence")

_DAYS_PER_MONTH = 30.0


@dataclass(frozen=True)
class ConfidenceUpdate:
    """Outcome of evaluating one pattern during reconciliation or decay."""

    pattern_name: str
    old_confidence: float
    new_confidence: float
    samples: int
    applied: bool
    reason: str

    @property
    def delta(self) -> float:
        return self.new_confidence - self.old_confidence


def _check_confidence(name: str, value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise InvariantViolationError(
            f"confidence for pattern {name!r} out of range: {value}"
        )
    return value


class ConfidenceLearner:
    """Tracks pattern outcomes and recalibrates pattern confidence.

    The learner remembers which patterns were touched since the last
    reconciliation, so the orchestrator can reconcile exactly the patterns
    used in a cycle.
    """

    def __init__(self, store: PatternStore, config: LearningConfig | None = None) -> None:
        self._store = store
        self.config = config or LearningConfig()
        self._touched: set[str] = set()

    @property
    def touched(self) -> frozenset[str]:
        return frozenset(self._touched)

    async def record_outcome(
        self,
        pattern_name: str,
        success: bool,
        used_at: datetime | None = None,
    ) -> Pattern | None:
        """Increment the pattern's counters and mark it touched.

        Store failures are logged and swallowed; the outcome is lost but the
        cycle continues.

        Returns:
            The updated pattern, or None if it is unknown or the store failed.
        """
        self._touched.add(pattern_name)
        try:
            pattern = await self._store.increment_counters(
                pattern_name,
                success=1 if success else 0,
                failure=0 if success else 1,
                used_at=used_at or utc_now(),
            )
        except StoreError as e:
            _logger.warning(
                "learning.record_outcome_failed",
                pattern=pattern_name,
                error=str(e),
            )
            return None
        if pattern is None:
            _logger.warning("learning.unknown_pattern", pattern=pattern_name)
        return pattern

    def compute_update(self, pattern: Pattern) -> ConfidenceUpdate:
        """Evaluate the update rule for one pattern without persisting it."""
        old = _check_confidence(pattern.name, pattern.confidence_score)
        samples = pattern.total_samples
        if samples < self.config.min_samples:
            return ConfidenceUpdate(
                pattern_name=pattern.name,
                old_confidence=old,
                new_confidence=old,
                samples=samples,
                applied=False,
                reason="insufficient_samples",
            )

        rate = self.config.learning_rate
        new = _check_confidence(
            pattern.name, rate * pattern.success_rate + (1.0 - rate) * old
        )
        if abs(new - old) <= self.config.hysteresis:
            return ConfidenceUpdate(
                pattern_name=pattern.name,
                old_confidence=old,
                new_confidence=old,
                samples=samples,
                applied=False,
                reason="within_hysteresis",
            )
        return ConfidenceUpdate(
            pattern_name=pattern.name,
            old_confidence=old,
            new_confidence=new,
            samples=samples,
            applied=True,
            reason="updated",
        )

    async def reconcile(self, pattern_names: set[str] | frozenset[str] | None = None) -> list[ConfidenceUpdate]:
        """Recompute confidence for touched patterns.

        Args:
            pattern_names: Patterns to evaluate. Defaults to the patterns
                touched since the last reconciliation, which are then cleared.

        Returns:
            One ConfidenceUpdate per pattern that could be loaded.
        """
        if pattern_names is None:
            names = sorted(self._touched)
            self._touched.clear()
        else:
            names = sorted(pattern_names)

        updates: list[ConfidenceUpdate] = []
        for name in names:
            try:
                pattern = await self._store.get(name)
                if pattern is None:
                    continue
                update = self.compute_update(pattern)
                if update.applied:
                    pattern.confidence_score = update.new_confidence
                    await self._store.upsert(pattern)
                    _logger.info(
                        "learning.confidence_updated",
                        pattern=name,
                        old=round(update.old_confidence, 4),
                        new=round(update.new_confidence, 4),
                        samples=update.samples,
                    )
            except StoreError as e:
                _logger.warning("learning.reconcile_failed", pattern=name, error=str(e))
                continue
            updates.append(update)
        return updates

    def decay_factor(self, last_used_at: datetime | None, now: datetime) -> float:
        """Multiplicative decay for a pattern idle since ``last_used_at``."""
        if last_used_at is None:
            return 1.0
        idle_days = (now - last_used_at).total_seconds() / 86400.0
        if idle_days < self.config.idle_days_before_decay:
            return 1.0
        months = idle_days / _DAYS_PER_MONTH
        return (1.0 - self.config.decay_rate_per_month) ** months

    async def decay_idle(self, now: datetime | None = None) -> list[ConfidenceUpdate]:
        """Soft-decay the confidence of patterns that have gone unused.

        Patterns never used (``last_used_at`` is None) are left alone.
        """
        now = now or utc_now()
        updates: list[ConfidenceUpdate] = []
        for pattern in await self._store.list_all():
            factor = self.decay_factor(pattern.last_used_at, now)
            if factor >= 1.0:
                continue
            old = pattern.confidence_score
            pattern.confidence_score = _check_confidence(pattern.name, old * factor)
            await self._store.upsert(pattern)
            updates.append(
                ConfidenceUpdate(
                    pattern_name=pattern.name,
                    old_confidence=old,
                    new_confidence=pattern.confidence_score,
                    samples=pattern.total_samples,
                    applied=True,
                    reason="idle_decay",
                )
            )
        if updates:
            _logger.info("learning.idle_decay_applied", patterns=len(updates))
        return updates
