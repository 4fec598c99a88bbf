"""Multi-criteria decision scorer.

Ranks candidate options under uncertainty and says when the ranking is too
uncertain to act on without a human.

Score components (default weights):
- Context fit (40%): risk, effort and quality signals against stated preferences
- Historical success (30%): success rate of the option in past decisions
  of the same scenario category
- Risk fit (15%): option risk against the caller's risk tolerance
- Effort fit (10%): option effort against the time constraint
- Oracle prediction (5%): external success estimate, neutral on failure

Per-option confidence is one minus the population standard deviation of the
five components, so options whose signals disagree are trusted less even
when their mean is high.
"""

from __future__ import annotations

import asyncio
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from autoheal.core.config import DecisionConfig
from autoheal.core.errors import StoreError
from autoheal.core.logging import get_logger
from autoheal.core.models import (
    ComponentScores,
    DecisionOption,
    RecommendationTier,
    RiskLevel,
    ScoredOption,
)
from autoheal.decision.context import DecisionContext
from autoheal.oracle.base import (
    NEUTRAL_SCORE,
    Oracle,
    OracleRequest,
    predict_or_neutral,
)
from autoheal.store.base import DecisionLogEntry, DecisionLogStore

_logger = get_logger("decision.scorer")

# option risk -> caller risk tolerance -> fit
RISK_FIT: dict[RiskLevel, dict[RiskLevel, float]] = {
    RiskLevel.LOW: {RiskLevel.LOW: 1.0, RiskLevel.MEDIUM: 0.8, RiskLevel.HIGH: 0.6},
    RiskLevel.MEDIUM: {RiskLevel.LOW: 0.7, RiskLevel.MEDIUM: 1.0, RiskLevel.HIGH: 0.8},
    RiskLevel.HIGH: {RiskLevel.LOW: 0.4, RiskLevel.MEDIUM: 0.7, RiskLevel.HIGH: 1.0},
}

# option effort -> time constraint -> fit
EFFORT_FIT: dict[RiskLevel, dict[str, float]] = {
    RiskLevel.LOW: {"urgent": 1.0, "normal": 0.9, "flexible": 0.8},
    RiskLevel.MEDIUM: {"urgent": 0.5, "normal": 1.0, "flexible": 0.9},
    RiskLevel.HIGH: {"urgent": 0.2, "normal": 0.7, "flexible": 1.0},
}

_EFFORT_FOR_TIME: dict[str, RiskLevel] = {
    "urgent": RiskLevel.LOW,
    "normal": RiskLevel.MEDIUM,
    "flexible": RiskLevel.HIGH,
}

LOW_CONFIDENCE_REASON = (
    "Multiple viable approaches - your input would help choose the best fit"
)
CLOSE_SCORES_REASON = "Options are very close in score - your preference matters"


@dataclass
class DecisionResult:
    """Ranked options plus the scorer's confidence in the ranking."""

    best: ScoredOption
    ranked: list[ScoredOption]
    overall_confidence: float
    requires_user_input: bool
    reasoning: str
    user_input_reason: str | None = None
    decision_id: str | None = None
    scenario_category: str = "general"
    oracle_degraded: list[str] = field(default_factory=list)
    """Option ids whose oracle prediction fell back to the neutral score."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision_id": self.decision_id,
            "scenario_category": self.scenario_category,
            "best": self.best.id,
            "overall_confidence": round(self.overall_confidence, 4),
            "requires_user_input": self.requires_user_input,
            "user_input_reason": self.user_input_reason,
            "reasoning": self.reasoning,
            "ranked": [
                {
                    "id": s.id,
                    "overall_score": round(s.overall_score, 4),
                    "confidence": round(s.confidence, 4),
                    "tier": s.recommendation_tier.value,
                    "reasoning": s.reasoning,
                }
                for s in self.ranked
            ],
        }


def context_fit(option: DecisionOption, context: DecisionContext) -> float:
    """Baseline 0.5 plus bonuses for matching stated preferences, capped at 1.0."""
    score = 0.5

    approach = context.preferred_approach
    if approach == "conservative" and option.risk == RiskLevel.LOW:
        score += 0.2
    elif approach == "innovative" and option.risk == RiskLevel.HIGH:
        score += 0.2
    elif approach == "balanced":
        score += 0.1

    if context.time is not None and option.effort == _EFFORT_FOR_TIME[context.time]:
        score += 0.15

    pref = context.speed_vs_quality
    if pref == "speed" and option.effort == RiskLevel.LOW:
        score += 0.15
    elif pref == "quality" and any("quality" in p.lower() for p in option.pros):
        score += 0.15

    return min(1.0, score)


def risk_fit(risk: RiskLevel, tolerance: RiskLevel | None) -> float:
    return RISK_FIT[RiskLevel(risk)][RiskLevel(tolerance or RiskLevel.MEDIUM)]


def effort_fit(effort: RiskLevel, time: str | None) -> float:
    return EFFORT_FIT[RiskLevel(effort)][time or "normal"]


def option_confidence(components: ComponentScores) -> float:
    """One minus the population standard deviation of the components."""
    return max(0.0, 1.0 - statistics.pstdev(components.as_tuple()))


def recommendation_tier(score: float, confidence: float) -> RecommendationTier:
    weighted = score * confidence
    if weighted > 0.8:
        return RecommendationTier.HIGHLY_RECOMMENDED
    if weighted > 0.6:
        return RecommendationTier.RECOMMENDED
    if weighted > 0.4:
        return RecommendationTier.VIABLE
    return RecommendationTier.NOT_RECOMMENDED


def compute_overall_confidence(ranked: Sequence[ScoredOption]) -> float:
    """Blend the top-two separation (60%) with the top option's confidence (40%).

    ``ranked`` must be sorted best first. A single option's confidence is
    returned as is; no options yields 0.
    """
    if not ranked:
        return 0.0
    if len(ranked) == 1:
        return ranked[0].confidence
    gap = ranked[0].overall_score - ranked[1].overall_score
    separation = min(1.0, gap * 5)
    return separation * 0.6 + ranked[0].confidence * 0.4


def user_input_needed(
    ranked: Sequence[ScoredOption],
    overall_confidence: float,
    min_confidence: float = 0.75,
    min_gap: float = 0.1,
) -> tuple[bool, str | None]:
    """Decide whether a human should confirm the ranking.

    Returns:
        (requires_user_input, reason). The low-confidence reason takes
        precedence when both conditions hold.
    """
    if overall_confidence < min_confidence:
        return True, LOW_CONFIDENCE_REASON
    if len(ranked) > 1 and ranked[0].overall_score - ranked[1].overall_score < min_gap:
        return True, CLOSE_SCORES_REASON
    return False, None


def build_option_reasoning(option: DecisionOption, components: ComponentScores) -> str:
    reasons: list[str] = []
    if components.context_fit > 0.7:
        reasons.append("Excellent fit for your requirements")
    elif components.context_fit < 0.4:
        reasons.append("May not fully align with your needs")
    if components.historical_success > 0.7:
        reasons.append("Strong track record in similar scenarios")
    if option.risk == RiskLevel.LOW:
        reasons.append("Low risk approach")
    elif option.risk == RiskLevel.HIGH:
        reasons.append("Higher risk but potentially higher reward")
    if option.effort == RiskLevel.LOW:
        reasons.append("Quick to implement")
    if not reasons:
        return "Balanced option with no standout factors."
    return ". ".join(reasons) + "."


def build_decision_reasoning(ranked: Sequence[ScoredOption], min_gap: float = 0.1) -> str:
    best = ranked[0]
    reasoning = (
        f"{best.option.label} scores highest ({best.overall_score * 100:.1f}%) "
        f"because: {best.reasoning}"
    )
    if len(ranked) > 1 and best.overall_score - ranked[1].overall_score < min_gap:
        reasoning += (
            f" Note: {ranked[1].option.label} is a close alternative with similar viability."
        )
    return reasoning


def _oracle_request(option: DecisionOption, context: DecisionContext) -> OracleRequest:
    return OracleRequest(
        kind="decision",
        subject=option.label,
        details={
            "Description": option.description,
            "Pros": ", ".join(option.pros),
            "Cons": ", ".join(option.cons),
            "User goal": context.user_goal,
            "Scenario": context.scenario,
        },
    )


class DecisionScorer:
    """Scores and ranks decision options, logging every decision.

    Example:
        scorer = DecisionScorer(log_store, oracle=StaticOracle())
        result = await scorer.score(options, DecisionContext(scenario="api auth"))
        if result.requires_user_input:
            ask_user(result.ranked)
        await scorer.record_choice(result.decision_id, "oauth", was_successful=True)
    """

    def __init__(
        self,
        log_store: DecisionLogStore | None = None,
        oracle: Oracle | None = None,
        config: DecisionConfig | None = None,
        oracle_timeout_seconds: float = 30.0,
        neutral_score: float = NEUTRAL_SCORE,
    ) -> None:
        self._log_store = log_store
        self._oracle = oracle
        self.config = config or DecisionConfig()
        self._oracle_timeout = oracle_timeout_seconds
        self._neutral_score = neutral_score

    async def _historical_weights(self, scenario_category: str) -> dict[str, float]:
        if self._log_store is None:
            return {}
        try:
            return await self._log_store.query_historical_weights(
                scenario_category, limit=self.config.history_limit
            )
        except StoreError as e:
            _logger.warning(
                "decision.history_unavailable",
                scenario_category=scenario_category,
                error=str(e),
            )
            return {}

    async def _predict(self, option: DecisionOption, context: DecisionContext) -> tuple[float, bool]:
        if self._oracle is None:
            return self._neutral_score, False
        prediction = await predict_or_neutral(
            self._oracle,
            _oracle_request(option, context),
            timeout_seconds=self._oracle_timeout,
            neutral_score=self._neutral_score,
        )
        return prediction.score, prediction.degraded

    def _score_option(
        self,
        option: DecisionOption,
        context: DecisionContext,
        historical: dict[str, float],
        oracle_score: float,
    ) -> ScoredOption:
        components = ComponentScores(
            context_fit=context_fit(option, context),
            historical_success=historical.get(option.id, 0.5),
            risk_fit=risk_fit(option.risk, context.risk_tolerance),
            effort_fit=effort_fit(option.effort, context.time),
            oracle_prediction=oracle_score,
        )
        weights = self.config.weights.as_tuple()
        overall = sum(w * s for w, s in zip(weights, components.as_tuple(), strict=True))
        overall = max(0.0, min(1.0, overall))
        confidence = option_confidence(components)
        return ScoredOption(
            option=option,
            overall_score=overall,
            confidence=confidence,
            recommendation_tier=recommendation_tier(overall, confidence),
            components=components,
            reasoning=build_option_reasoning(option, components),
        )

    async def score(
        self,
        options: Sequence[DecisionOption],
        context: DecisionContext,
        log_decision: bool = True,
    ) -> DecisionResult:
        """Score, rank and gate a set of options.

        Args:
            options: Candidates to rank. Must not be empty.
            context: Constraints and preferences for this decision.
            log_decision: Write the decision to the log store so later
                outcomes can feed historical success.

        Returns:
            DecisionResult with options ranked best first.

        Raises:
            ValueError: If ``options`` is empty.
        """
        if not options:
            raise ValueError("DecisionScorer.score requires at least one option")

        category = context.scenario_category
        historical = await self._historical_weights(category)
        predictions = await asyncio.gather(*(self._predict(o, context) for o in options))

        scored = [
            self._score_option(option, context, historical, oracle_score)
            for option, (oracle_score, _) in zip(options, predictions, strict=True)
        ]
        ranked = sorted(scored, key=lambda s: s.overall_score, reverse=True)

        overall_confidence = compute_overall_confidence(ranked)
        requires_input, reason = user_input_needed(
            ranked,
            overall_confidence,
            min_confidence=self.config.user_input_confidence,
            min_gap=self.config.min_score_gap,
        )
        result = DecisionResult(
            best=ranked[0],
            ranked=ranked,
            overall_confidence=overall_confidence,
            requires_user_input=requires_input,
            user_input_reason=reason,
            reasoning=build_decision_reasoning(ranked, self.config.min_score_gap),
            scenario_category=category,
            oracle_degraded=[
                o.id for o, (_, degraded) in zip(options, predictions, strict=True) if degraded
            ],
        )

        if log_decision:
            result.decision_id = await self._log(result, context)

        _logger.info(
            "decision.scored",
            scenario_category=category,
            options=len(ranked),
            best=result.best.id,
            confidence=round(overall_confidence, 4),
            requires_user_input=requires_input,
        )
        return result

    async def _log(self, result: DecisionResult, context: DecisionContext) -> str | None:
        if self._log_store is None:
            return None
        entry = DecisionLogEntry(
            scenario_category=result.scenario_category,
            scenario=context.scenario,
            user_goal=context.user_goal,
            recommended_option_id=result.best.id,
            option_scores={s.id: s.overall_score for s in result.ranked},
            confidence=result.overall_confidence,
            reasoning=result.reasoning,
            requires_user_input=result.requires_user_input,
        )
        try:
            return await self._log_store.insert(entry)
        except StoreError as e:
            _logger.warning("decision.log_failed", error=str(e))
            return None

    async def record_choice(
        self,
        decision_id: str,
        chosen_option_id: str,
        was_successful: bool,
        feedback: str | None = None,
    ) -> bool:
        """Record which option was chosen and whether it worked.

        Returns:
            False if there is no log store or the decision is unknown.
        """
        if self._log_store is None:
            return False
        recorded = await self._log_store.record_choice(
            decision_id, chosen_option_id, was_successful, feedback
        )
        if recorded:
            _logger.info(
                "decision.choice_recorded",
                decision_id=decision_id,
                chosen=chosen_option_id,
                was_successful=was_successful,
            )
        else:
            _logger.warning("decision.unknown_decision", decision_id=decision_id)
        return recorded
