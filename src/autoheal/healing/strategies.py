"""Remediation strategies used by the strategy ladder.

Three strategies produce a ``StrategyOutcome`` for an error record:

- Pattern: reuse the best learned pattern for the error's category.
- Deterministic: match the message against a fixed table of known fixes.
- Oracle: ask the external oracle about the attached code or stack trace.

The ladder owns the order; this module only implements each rung.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from autoheal.core.logging import get_logger
from autoheal.core.models import (
    DecisionOption,
    ErrorCategory,
    ErrorRecord,
    HealingStrategy,
    Pattern,
    RiskLevel,
)
from autoheal.decision.context import DecisionContext
from autoheal.decision.scorer import DecisionScorer
from autoheal.oracle.base import NEUTRAL_SCORE, Oracle, OracleRequest, predict_or_neutral
from autoheal.store.base import PatternStore

_logger = get_logger("healing.strategies")


@dataclass(frozen=True)
class StrategyOutcome:
    """What one strategy produced for one error."""

    success: bool
    confidence: float
    fix_description: str | None = None
    pattern_name: str | None = None
    detail: str = ""

    @classmethod
    def failed(cls, detail: str, confidence: float = 0.0) -> StrategyOutcome:
        return cls(success=False, confidence=confidence, detail=detail)


class RemedyApplier(Protocol):
    """Hook that puts a chosen fix into effect.

    Returning False turns an otherwise successful attempt into a failure.
    """

    async def apply(
        self, record: ErrorRecord, strategy: HealingStrategy, fix_description: str
    ) -> bool: ...


class AcceptingApplier:
    """Default applier: the fix is recorded, nothing external is changed."""

    async def apply(
        self, record: ErrorRecord, strategy: HealingStrategy, fix_description: str
    ) -> bool:
        return True


# ─── Deterministic fixes ──────────────────────────────────────────────


@dataclass(frozen=True)
class DeterministicFix:
    """A known fix for messages containing ``substring`` in ``categories``."""

    categories: frozenset[ErrorCategory]
    substring: str
    fix_description: str
    confidence: float

    def matches(self, record: ErrorRecord) -> bool:
        return record.category in self.categories and self.substring in record.message.lower()


DETERMINISTIC_FIXES: tuple[DeterministicFix, ...] = (
    DeterministicFix(
        categories=frozenset({ErrorCategory.BUILD, ErrorCategory.DEPENDENCY}),
        substring="cannot find module",
        fix_description="Add the missing module to the project dependencies and reinstall",
        confidence=0.9,
    ),
    DeterministicFix(
        categories=frozenset({ErrorCategory.NETWORK, ErrorCategory.INTEGRATION}),
        substring="timeout",
        fix_description="Retry the request with exponential backoff",
        confidence=0.85,
    ),
    DeterministicFix(
        categories=frozenset({ErrorCategory.PERFORMANCE, ErrorCategory.RUNTIME}),
        substring="memory leak",
        fix_description="Remove event listeners and timers when components are torn down",
        confidence=0.8,
    ),
    DeterministicFix(
        categories=frozenset({ErrorCategory.RUNTIME}),
        substring="cannot read propert",
        fix_description="Guard property access with null checks",
        confidence=0.75,
    ),
    DeterministicFix(
        categories=frozenset({ErrorCategory.AUTH}),
        substring="token expired",
        fix_description="Refresh the session token before retrying the request",
        confidence=0.7,
    ),
    DeterministicFix(
        categories=frozenset({ErrorCategory.DEPENDENCY}),
        substring="version conflict",
        fix_description="Pin mutually compatible dependency versions",
        confidence=0.6,
    ),
)


def match_deterministic(
    record: ErrorRecord,
    table: tuple[DeterministicFix, ...] = DETERMINISTIC_FIXES,
) -> DeterministicFix | None:
    """Return the first table entry matching the record, if any."""
    for fix in table:
        if fix.matches(record):
            return fix
    return None


# ─── Strategy implementations ─────────────────────────────────────────


def _pattern_risk(pattern: Pattern) -> RiskLevel:
    if pattern.total_samples == 0:
        return RiskLevel.MEDIUM
    if pattern.success_rate >= 0.8:
        return RiskLevel.LOW
    if pattern.success_rate >= 0.5:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


class HealingStrategies:
    """The pattern, deterministic and oracle rungs of the ladder.

    Args:
        patterns: Pattern store to select learned patterns from.
        oracle: External oracle. None makes the oracle rung always fail.
        scorer: Breaks ties between equally confident patterns.
        confidence_threshold: Minimum pattern confidence to be selectable.
        oracle_timeout_seconds: Bound on the oracle call.
    """

    def __init__(
        self,
        patterns: PatternStore,
        oracle: Oracle | None = None,
        scorer: DecisionScorer | None = None,
        confidence_threshold: float = 0.7,
        oracle_timeout_seconds: float = 30.0,
        neutral_score: float = NEUTRAL_SCORE,
        deterministic_fixes: tuple[DeterministicFix, ...] = DETERMINISTIC_FIXES,
    ) -> None:
        self._patterns = patterns
        self._oracle = oracle
        self._scorer = scorer
        self.confidence_threshold = confidence_threshold
        self._oracle_timeout = oracle_timeout_seconds
        self._neutral_score = neutral_score
        self._deterministic_fixes = deterministic_fixes

    async def select_pattern(self, record: ErrorRecord) -> Pattern | None:
        """Pick the most confident pattern above the threshold.

        Ties on confidence are broken by the decision scorer when one is
        configured, otherwise by store order.
        """
        candidates = await self._patterns.find(record.category, self.confidence_threshold)
        if not candidates:
            return None
        top_score = candidates[0].confidence_score
        tied = [p for p in candidates if p.confidence_score == top_score]
        if len(tied) == 1 or self._scorer is None:
            return tied[0]

        options = [
            DecisionOption(
                id=p.name,
                name=p.name,
                description=p.fix_description,
                pros=[p.fix_description] if p.fix_description else [],
                risk=_pattern_risk(p),
                effort=RiskLevel.LOW,
            )
            for p in tied
        ]
        context = DecisionContext(
            scenario=f"healing {record.category.value} error",
            user_goal=record.message,
            time="urgent",
            preferred_approach="conservative",
        )
        result = await self._scorer.score(options, context, log_decision=False)
        chosen = next(p for p in tied if p.name == result.best.id)
        _logger.debug(
            "strategies.pattern_tie_broken",
            candidates=[p.name for p in tied],
            chosen=chosen.name,
        )
        return chosen

    async def pattern(self, record: ErrorRecord) -> StrategyOutcome:
        pattern = await self.select_pattern(record)
        if pattern is None:
            return StrategyOutcome.failed(
                f"no {record.category.value} pattern at or above "
                f"{self.confidence_threshold:.2f} confidence"
            )
        return StrategyOutcome(
            success=True,
            confidence=pattern.confidence_score,
            fix_description=pattern.fix_description or f"Apply pattern {pattern.name}",
            pattern_name=pattern.name,
            detail=f"pattern {pattern.name}",
        )

    async def deterministic(self, record: ErrorRecord) -> StrategyOutcome:
        fix = match_deterministic(record, self._deterministic_fixes)
        if fix is None:
            return StrategyOutcome.failed("no deterministic fix matches the message")
        return StrategyOutcome(
            success=True,
            confidence=fix.confidence,
            fix_description=fix.fix_description,
            detail=f"matched '{fix.substring}'",
        )

    async def oracle(self, record: ErrorRecord) -> StrategyOutcome:
        """Ask the oracle about the error's code or stack trace.

        No snippet, or no oracle, fails with confidence 0. An oracle failure
        fails with the neutral score. Otherwise the oracle's score is the
        confidence and the attempt succeeds when it is at least 0.5.
        """
        snippet = record.snippet()
        if snippet is None:
            return StrategyOutcome.failed("no code or stack trace attached to the error")
        if self._oracle is None:
            return StrategyOutcome.failed("no oracle configured")

        request = OracleRequest(
            kind="fix",
            subject=record.message,
            details={"Category": record.category.value, "Code or stack trace": snippet},
        )
        prediction = await predict_or_neutral(
            self._oracle,
            request,
            timeout_seconds=self._oracle_timeout,
            neutral_score=self._neutral_score,
        )
        if prediction.degraded:
            return StrategyOutcome.failed("oracle unavailable", confidence=prediction.score)
        return StrategyOutcome(
            success=prediction.score >= 0.5,
            confidence=prediction.score,
            fix_description=prediction.suggestion or "Apply oracle-suggested fix",
            detail=f"oracle {self._oracle.name}",
        )
