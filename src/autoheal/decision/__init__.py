"""Multi-criteria decision scoring."""

from autoheal.decision.context import DecisionContext, DecisionRequest, categorize_scenario
from autoheal.decision.scorer import (
    DecisionResult,
    DecisionScorer,
    compute_overall_confidence,
    user_input_needed,
)

__all__ = [
    "DecisionContext",
    "DecisionRequest",
    "DecisionResult",
    "DecisionScorer",
    "categorize_scenario",
    "compute_overall_confidence",
    "user_input_needed",
]
