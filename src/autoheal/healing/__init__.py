"""Strategy ladder, escalation and cycle orchestration."""

from autoheal.healing.escalation import EscalationEntry, human_action_for
from autoheal.healing.ladder import (
    STRATEGY_ORDER,
    Continue,
    Escalated,
    Healed,
    LadderState,
    StrategyLadder,
)
from autoheal.healing.orchestrator import CycleOutcome, CycleReport, HealingOrchestrator
from autoheal.healing.strategies import (
    DETERMINISTIC_FIXES,
    HealingStrategies,
    RemedyApplier,
    StrategyOutcome,
)

__all__ = [
    "Continue",
    "CycleOutcome",
    "CycleReport",
    "DETERMINISTIC_FIXES",
    "EscalationEntry",
    "Escalated",
    "Healed",
    "HealingOrchestrator",
    "HealingStrategies",
    "LadderState",
    "RemedyApplier",
    "STRATEGY_ORDER",
    "StrategyLadder",
    "StrategyOutcome",
    "human_action_for",
]
