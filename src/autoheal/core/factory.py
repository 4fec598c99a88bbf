"""Wiring of engine components from configuration."""

from __future__ import annotations

from dataclasses import dataclass

from autoheal.core.config import EngineConfig
from autoheal.decision.scorer import DecisionScorer
from autoheal.detection.detector import Detector
from autoheal.healing.ladder import StrategyLadder
from autoheal.healing.orchestrator import HealingOrchestrator
from autoheal.healing.strategies import HealingStrategies, RemedyApplier
from autoheal.learning.confidence import ConfidenceLearner
from autoheal.oracle import Oracle, create_oracle
from autoheal.store.base import DecisionLogStore, ErrorStore, PatternStore
from autoheal.store.memory import (
    InMemoryDecisionLogStore,
    InMemoryErrorStore,
    InMemoryPatternStore,
)
from autoheal.store.sqlite_backend import (
    SQLiteDatabase,
    SQLiteDecisionLogStore,
    SQLiteErrorStore,
    SQLitePatternStore,
)


@dataclass
class Engine:
    """A fully wired engine. Each instance owns its own stores."""

    config: EngineConfig
    errors: ErrorStore
    patterns: PatternStore
    decisions: DecisionLogStore
    oracle: Oracle
    detector: Detector
    learner: ConfidenceLearner
    scorer: DecisionScorer
    ladder: StrategyLadder
    orchestrator: HealingOrchestrator

    async def close(self) -> None:
        """Release oracle connections. Stores hold no open handles between calls."""
        close = getattr(self.oracle, "close", None)
        if close is not None:
            await close()


async def build_engine(
    config: EngineConfig,
    oracle: Oracle | None = None,
    applier: RemedyApplier | None = None,
) -> Engine:
    """Create stores, oracle and components described by ``config``.

    SQLite stores are opened and migrated here, so an unusable database
    fails at startup rather than mid-cycle.

    Raises:
        StoreUnavailableError: If the SQLite database cannot be opened.
    """
    errors: ErrorStore
    patterns: PatternStore
    decisions: DecisionLogStore
    if config.store.type == "sqlite":
        database = SQLiteDatabase(config.store.path)
        await database.initialize()
        errors = SQLiteErrorStore(database)
        patterns = SQLitePatternStore(database)
        decisions = SQLiteDecisionLogStore(database)
    else:
        errors = InMemoryErrorStore()
        patterns = InMemoryPatternStore()
        decisions = InMemoryDecisionLogStore()

    oracle = oracle or create_oracle(config.oracle)
    healing = config.healing

    scorer = DecisionScorer(
        log_store=decisions,
        oracle=oracle,
        config=config.decision,
        oracle_timeout_seconds=config.oracle.timeout_seconds,
        neutral_score=config.oracle.neutral_score,
    )
    learner = ConfidenceLearner(patterns, config.learning)
    strategies = HealingStrategies(
        patterns,
        oracle=oracle,
        scorer=scorer,
        confidence_threshold=healing.confidence_threshold,
        oracle_timeout_seconds=config.oracle.timeout_seconds,
        neutral_score=config.oracle.neutral_score,
    )
    ladder = StrategyLadder(
        errors,
        strategies,
        learner,
        applier=applier,
        max_attempts=healing.max_attempts,
        confidence_threshold=healing.confidence_threshold,
        auto_apply=healing.auto_apply,
    )
    detector = Detector(errors)
    orchestrator = HealingOrchestrator(
        detector,
        ladder,
        learner,
        errors,
        max_errors=healing.max_errors,
        target_categories=healing.target_categories,
    )
    return Engine(
        config=config,
        errors=errors,
        patterns=patterns,
        decisions=decisions,
        oracle=oracle,
        detector=detector,
        learner=learner,
        scorer=scorer,
        ladder=ladder,
        orchestrator=orchestrator,
    )
