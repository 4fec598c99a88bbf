"""Test doubles shared across the autoheal test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from autoheal.core.errors import OracleError, StoreError
from autoheal.core.models import (
    ErrorCategory,
    ErrorRecord,
    HealingStrategy,
    Pattern,
)
from autoheal.healing.ladder import StrategyLadder
from autoheal.oracle.base import OraclePrediction, OracleRequest, parse_prediction
from autoheal.store.base import ErrorFilter
from autoheal.store.memory import (
    InMemoryDecisionLogStore,
    InMemoryErrorStore,
    InMemoryPatternStore,
)

LadderFactory = Callable[..., StrategyLadder]


class RaisingOracle:
    """Oracle that always fails."""

    def __init__(self) -> None:
        self.calls = 0

    @property
    def name(self) -> str:
        return "raising"

    async def predict(self, request: OracleRequest) -> OraclePrediction:
        self.calls += 1
        raise OracleError("oracle is down")


class SlowOracle:
    """Oracle that answers only after ``delay`` seconds."""

    def __init__(self, delay: float = 5.0, score: float = 0.9) -> None:
        self.delay = delay
        self.score = score

    @property
    def name(self) -> str:
        return "slow"

    async def predict(self, request: OracleRequest) -> OraclePrediction:
        await asyncio.sleep(self.delay)
        return OraclePrediction(score=self.score)


class ReplyOracle:
    """Oracle that parses a fixed raw reply, as a model backend would."""

    def __init__(self, reply: str) -> None:
        self.reply = reply

    @property
    def name(self) -> str:
        return "reply"

    async def predict(self, request: OracleRequest) -> OraclePrediction:
        return parse_prediction(self.reply)


class RecordingApplier:
    """Applier that records every fix it is asked to apply."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.applied: list[tuple[str, HealingStrategy, str]] = []

    async def apply(
        self, record: ErrorRecord, strategy: HealingStrategy, fix_description: str
    ) -> bool:
        self.applied.append((record.id, strategy, fix_description))
        return self.accept


class FailingCategoryErrorStore(InMemoryErrorStore):
    """Error store whose queries for one category raise StoreError."""

    def __init__(self, failing: ErrorCategory) -> None:
        super().__init__()
        self.failing = failing

    async def query(self, flt: ErrorFilter) -> list[ErrorRecord]:
        if flt.category == self.failing:
            raise StoreError(f"{self.failing.value} partition unavailable")
        return await super().query(flt)


class StatusBlindErrorStore(InMemoryErrorStore):
    """Error store that ignores the status filter, returning stale records."""

    async def query(self, flt: ErrorFilter) -> list[ErrorRecord]:
        return await super().query(
            ErrorFilter(category=flt.category, keywords=flt.keywords, limit=flt.limit)
        )


class BrokenPatternStore(InMemoryPatternStore):
    """Pattern store whose lookups always fail."""

    async def find(self, category: ErrorCategory, min_confidence: float = 0.0) -> list[Pattern]:
        raise StoreError("pattern index corrupted")


class FixedHistoryStore(InMemoryDecisionLogStore):
    """Decision log that reports the same success rate for every option."""

    def __init__(self, option_ids: list[str], rate: float) -> None:
        super().__init__()
        self.option_ids = option_ids
        self.rate = rate

    async def query_historical_weights(
        self, scenario_category: str, limit: int = 50
    ) -> dict[str, float]:
        return {option_id: self.rate for option_id in self.option_ids}
