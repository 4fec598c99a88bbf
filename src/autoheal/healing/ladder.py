"""Per-error strategy ladder.

The ladder drives one error record through an explicit, bounded sequence
of steps. Attempt ``n`` uses the ``n``-th strategy of ``STRATEGY_ORDER``;
the step after the last permitted attempt escalates. Every step returns a
discriminated result:

- ``Continue``: the attempt failed or fell short of the threshold.
- ``Healed``: the attempt succeeded with enough confidence; the record
  was marked resolved.
- ``Escalated``: attempts are exhausted; a human has to take over.

``run`` loops over ``step`` at most ``max_attempts + 1`` times, so every
run terminates in exactly one of ``Healed`` or ``Escalated``.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace

from autoheal.core.errors import ConfigurationError, InvariantViolationError, StoreError
from autoheal.core.logging import get_logger
from autoheal.core.models import (
    AttemptOutcome,
    ErrorRecord,
    ErrorStatus,
    HealingAttempt,
    HealingStrategy,
)
from autoheal.core.time import elapsed_ms
from autoheal.healing.escalation import EscalationEntry, escalate
from autoheal.healing.strategies import (
    AcceptingApplier,
    HealingStrategies,
    RemedyApplier,
    StrategyOutcome,
)
from autoheal.learning.confidence import ConfidenceLearner
from autoheal.store.base import ErrorStore

_logger = get_logger("healing.ladder")

STRATEGY_ORDER: tuple[HealingStrategy, ...] = (
    HealingStrategy.PATTERN,
    HealingStrategy.DETERMINISTIC,
    HealingStrategy.ORACLE,
)

StrategyHandler = Callable[[ErrorRecord], Awaitable[StrategyOutcome]]


def strategy_for_attempt(attempt_number: int, max_attempts: int) -> HealingStrategy:
    """Strategy used by ``attempt_number`` (1-based); ESCALATE past the limit."""
    if attempt_number < 1:
        raise InvariantViolationError(f"attempt number must be >= 1, got {attempt_number}")
    if attempt_number > max_attempts:
        return HealingStrategy.ESCALATE
    return STRATEGY_ORDER[attempt_number - 1]


@dataclass(frozen=True)
class LadderState:
    record: ErrorRecord
    attempt: int = 0
    """Attempts made so far."""

    attempts: tuple[HealingAttempt, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Continue:
    state: LadderState


@dataclass(frozen=True)
class Healed:
    record: ErrorRecord
    attempts: tuple[HealingAttempt, ...]

    @property
    def final_attempt(self) -> HealingAttempt:
        return self.attempts[-1]


@dataclass(frozen=True)
class Escalated:
    entry: EscalationEntry

    @property
    def attempts(self) -> tuple[HealingAttempt, ...]:
        return self.entry.attempts


StepResult = Continue | Healed | Escalated
LadderResult = Healed | Escalated


class StrategyLadder:
    """Bounded-retry state machine for a single error record.

    Args:
        error_store: Where attempts are logged and resolutions persisted.
        strategies: Implementations of the pattern, deterministic and oracle rungs.
        learner: Receives the outcome of every pattern attempt.
        applier: Puts fixes into effect when ``auto_apply`` is on.
        max_attempts: Attempts before escalation, 1 to 3.
        confidence_threshold: Minimum confidence for a success to resolve the error.
        auto_apply: Apply fixes. When off, fixes are recorded as pending.
    """

    def __init__(
        self,
        error_store: ErrorStore,
        strategies: HealingStrategies,
        learner: ConfidenceLearner,
        applier: RemedyApplier | None = None,
        max_attempts: int = 3,
        confidence_threshold: float = 0.7,
        auto_apply: bool = True,
    ) -> None:
        if not 1 <= max_attempts <= len(STRATEGY_ORDER):
            raise ConfigurationError(
                f"max_attempts must be between 1 and {len(STRATEGY_ORDER)}, got {max_attempts}"
            )
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ConfigurationError(
                f"confidence_threshold must be in [0, 1], got {confidence_threshold}"
            )
        self._store = error_store
        self._learner = learner
        self._applier: RemedyApplier = applier or AcceptingApplier()
        self.max_attempts = max_attempts
        self.confidence_threshold = confidence_threshold
        self.auto_apply = auto_apply
        self._handlers: dict[HealingStrategy, StrategyHandler] = {
            HealingStrategy.PATTERN: strategies.pattern,
            HealingStrategy.DETERMINISTIC: strategies.deterministic,
            HealingStrategy.ORACLE: strategies.oracle,
        }

    async def run(self, record: ErrorRecord) -> LadderResult:
        """Drive ``record`` to Healed or Escalated.

        Raises:
            InvariantViolationError: If the record is already resolved or the
                ladder breaks one of its own bounds.
        """
        if record.is_resolved:
            raise InvariantViolationError(f"error {record.id} is already resolved")

        state = LadderState(record=record)
        for _ in range(self.max_attempts + 1):
            result = await self.step(state)
            if isinstance(result, Continue):
                state = result.state
                continue
            return result
        raise InvariantViolationError(
            f"ladder for {record.id} did not terminate within {self.max_attempts + 1} steps"
        )

    async def step(self, state: LadderState) -> StepResult:
        """Make the next attempt for ``state`` and classify the outcome."""
        if len(state.attempts) != state.attempt:
            raise InvariantViolationError(
                f"ladder state for {state.record.id} has {len(state.attempts)} attempts "
                f"but counter {state.attempt}"
            )
        number = state.attempt + 1
        if number > self.max_attempts + 1:
            raise InvariantViolationError(
                f"attempt {number} exceeds max_attempts {self.max_attempts}"
            )

        strategy = strategy_for_attempt(number, self.max_attempts)
        if strategy is HealingStrategy.ESCALATE:
            entry = escalate(state.record, state.attempts)
            _logger.warning(
                "healing.escalated",
                error_id=state.record.id,
                category=state.record.category.value,
                reason=entry.escalation_reason,
            )
            return Escalated(entry=entry)

        attempt = await self._attempt(state.record, strategy, number)
        attempts = state.attempts + (attempt,)

        if attempt.succeeded and attempt.confidence >= self.confidence_threshold:
            resolved = await self._mark_resolved(state.record, attempt)
            return Healed(record=resolved, attempts=attempts)
        return Continue(LadderState(record=state.record, attempt=number, attempts=attempts))

    async def _attempt(
        self,
        record: ErrorRecord,
        strategy: HealingStrategy,
        number: int,
    ) -> HealingAttempt:
        handler = self._handlers[strategy]
        started = time.monotonic()
        try:
            outcome = await handler(record)
        except InvariantViolationError:
            raise
        except Exception as e:
            _logger.warning(
                "healing.strategy_failed",
                error_id=record.id,
                strategy=strategy.value,
                attempt=number,
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome = StrategyOutcome.failed(f"{type(e).__name__}: {e}")

        if not 0.0 <= outcome.confidence <= 1.0:
            raise InvariantViolationError(
                f"{strategy.value} strategy returned confidence {outcome.confidence} "
                f"for {record.id}"
            )

        success = outcome.success
        applied = False
        if success and self.auto_apply and outcome.fix_description:
            applied = await self._apply(record, strategy, outcome.fix_description)
            success = applied

        attempt = HealingAttempt(
            error_id=record.id,
            strategy=strategy,
            attempt_number=number,
            outcome=AttemptOutcome.SUCCESS if success else AttemptOutcome.FAILURE,
            confidence=outcome.confidence,
            duration_ms=elapsed_ms(started, time.monotonic()),
            fix_applied=outcome.fix_description,
            pattern_name=outcome.pattern_name,
            applied=applied,
        )
        _logger.info(
            "healing.attempt_complete",
            error_id=record.id,
            strategy=strategy.value,
            attempt=number,
            outcome=attempt.outcome.value,
            confidence=round(attempt.confidence, 4),
            detail=outcome.detail,
        )

        try:
            await self._store.record_attempt(attempt)
        except StoreError as e:
            _logger.warning("healing.attempt_log_failed", error_id=record.id, error=str(e))

        if attempt.pattern_name is not None:
            await self._learner.record_outcome(attempt.pattern_name, attempt.succeeded)
        return attempt

    async def _apply(self, record: ErrorRecord, strategy: HealingStrategy, fix: str) -> bool:
        try:
            accepted = await self._applier.apply(record, strategy, fix)
        except Exception as e:
            _logger.warning(
                "healing.apply_failed",
                error_id=record.id,
                strategy=strategy.value,
                error=str(e),
            )
            return False
        if not accepted:
            _logger.info("healing.fix_rejected", error_id=record.id, strategy=strategy.value)
        return accepted

    async def _mark_resolved(self, record: ErrorRecord, attempt: HealingAttempt) -> ErrorRecord:
        note = (
            f"Resolved by {attempt.strategy.value} strategy on attempt "
            f"{attempt.attempt_number}: {attempt.fix_applied}"
        )
        if not attempt.applied:
            note += " (fix pending manual application)"
        try:
            updated = await self._store.update(record.id, ErrorStatus.RESOLVED, note)
        except StoreError as e:
            _logger.error("healing.resolve_persist_failed", error_id=record.id, error=str(e))
            updated = None
        if updated is None:
            updated = replace(record, status=ErrorStatus.RESOLVED, resolution_note=note)
        _logger.info(
            "healing.resolved",
            error_id=record.id,
            strategy=attempt.strategy.value,
            attempt=attempt.attempt_number,
            confidence=round(attempt.confidence, 4),
        )
        return updated
