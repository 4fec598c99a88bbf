"""Pytest fixtures for autoheal tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from autoheal.cli import helpers as cli_helpers
from autoheal.core.config import EngineConfig, StoreConfig
from autoheal.healing.ladder import StrategyLadder
from autoheal.healing.strategies import HealingStrategies, RemedyApplier
from autoheal.learning.confidence import ConfidenceLearner
from autoheal.oracle.base import Oracle
from autoheal.store.memory import (
    InMemoryDecisionLogStore,
    InMemoryErrorStore,
    InMemoryPatternStore,
)
from tests.helpers import LadderFactory


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset CLI and logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    cli_helpers.reset_cli_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_cli_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def error_store() -> InMemoryErrorStore:
    return InMemoryErrorStore()


@pytest.fixture
def pattern_store() -> InMemoryPatternStore:
    return InMemoryPatternStore()


@pytest.fixture
def decision_store() -> InMemoryDecisionLogStore:
    return InMemoryDecisionLogStore()


@pytest.fixture
def learner(pattern_store: InMemoryPatternStore) -> ConfidenceLearner:
    return ConfidenceLearner(pattern_store)


@pytest.fixture
def make_ladder(
    error_store: InMemoryErrorStore,
    pattern_store: InMemoryPatternStore,
    learner: ConfidenceLearner,
) -> LadderFactory:
    """Build a ladder over the shared memory stores.

    Keyword arguments: ``oracle``, ``applier``, ``max_attempts``,
    ``confidence_threshold``, ``auto_apply`` and ``patterns`` (a pattern
    store to use instead of the shared one).
    """

    def _make(
        oracle: Oracle | None = None,
        applier: RemedyApplier | None = None,
        max_attempts: int = 3,
        confidence_threshold: float = 0.7,
        auto_apply: bool = True,
        patterns: InMemoryPatternStore | None = None,
    ) -> StrategyLadder:
        strategies = HealingStrategies(
            patterns or pattern_store,
            oracle=oracle,
            confidence_threshold=confidence_threshold,
            oracle_timeout_seconds=1.0,
        )
        return StrategyLadder(
            error_store,
            strategies,
            learner,
            applier=applier,
            max_attempts=max_attempts,
            confidence_threshold=confidence_threshold,
            auto_apply=auto_apply,
        )

    return _make


@pytest.fixture
def memory_config() -> EngineConfig:
    return EngineConfig(store=StoreConfig(type="memory"))


@pytest.fixture
def sqlite_config_file(tmp_path: Path) -> Path:
    """Engine config file using a SQLite store under ``tmp_path``."""
    config_file = tmp_path / "autoheal.yaml"
    config_file.write_text(
        "store:\n"
        "  type: sqlite\n"
        f"  path: {tmp_path / 'autoheal.db'}\n"
        "logging:\n"
        "  level: ERROR\n"
    )
    return config_file
