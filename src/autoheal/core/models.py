"""Data models shared across the healing engine.

Enumerations are closed ``str`` enums so they serialize directly into the
stores and CLI output. Error records and patterns are mutable dataclasses
owned by the stores; healing attempts are frozen, one per attempt.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from autoheal.core.time import utc_now


class ErrorCategory(str, Enum):
    """Closed set of error categories the detector scans for."""

    RUNTIME = "runtime"
    AUTH = "auth"
    BUILD = "build"
    INTEGRATION = "integration"
    PERFORMANCE = "performance"
    DEPENDENCY = "dependency"
    NETWORK = "network"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class HealingStrategy(str, Enum):
    """Remediation strategies, in the order the ladder tries them."""

    PATTERN = "pattern"
    """Reuse a learned pattern for the error's category."""

    DETERMINISTIC = "deterministic"
    """Static message-substring table with fixed confidences."""

    ORACLE = "oracle"
    """Ask the external oracle about the code or stack trace."""

    ESCALATE = "escalate"
    """Hand the error to a human."""


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Effort uses the same three-point scale as risk.
EffortLevel = RiskLevel


class RecommendationTier(str, Enum):
    HIGHLY_RECOMMENDED = "highly_recommended"
    RECOMMENDED = "recommended"
    VIABLE = "viable"
    NOT_RECOMMENDED = "not_recommended"


def new_error_id() -> str:
    """Generate an identifier for a new error record."""
    return f"err-{uuid.uuid4().hex[:12]}"


@dataclass
class ErrorRecord:
    """An error observed in the monitored system.

    Created externally (``Detector.record_error`` or a store insert). Only the
    strategy ladder moves it to ``resolved``; records are never deleted.
    """

    category: ErrorCategory
    message: str
    severity: Severity = Severity.MEDIUM
    context: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_error_id)
    created_at: datetime = field(default_factory=utc_now)
    status: ErrorStatus = ErrorStatus.OPEN
    resolution_note: str | None = None
    resolved_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status == ErrorStatus.RESOLVED

    def snippet(self) -> str | None:
        """Return the code or stack trace attached to the record, if any."""
        for key in ("code", "stack_trace"):
            value = self.context.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return None


@dataclass(frozen=True)
class HealingAttempt:
    """One immutable record per ladder attempt."""

    error_id: str
    strategy: HealingStrategy
    attempt_number: int
    outcome: AttemptOutcome
    confidence: float
    duration_ms: int
    timestamp: datetime = field(default_factory=utc_now)
    fix_applied: str | None = None
    pattern_name: str | None = None
    applied: bool = False
    """True when the fix was applied, False when it was left pending or failed."""

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


@dataclass
class Pattern:
    """A named remediation recipe scored by its track record."""

    name: str
    category: ErrorCategory
    confidence_score: float = 0.5
    success_count: int = 0
    failure_count: int = 0
    last_used_at: datetime | None = None
    fix_description: str = ""

    @property
    def total_samples(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Observed success rate, 0.0 when the pattern was never used."""
        if self.total_samples == 0:
            return 0.0
        return self.success_count / self.total_samples


@dataclass
class DecisionOption:
    """A candidate the decision scorer can rank."""

    id: str
    name: str = ""
    description: str = ""
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    effort: RiskLevel = RiskLevel.MEDIUM
    risk: RiskLevel = RiskLevel.MEDIUM
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.name or self.id


@dataclass
class ComponentScores:
    """The five criteria the decision scorer combines."""

    context_fit: float
    historical_success: float
    risk_fit: float
    effort_fit: float
    oracle_prediction: float

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (
            self.context_fit,
            self.historical_success,
            self.risk_fit,
            self.effort_fit,
            self.oracle_prediction,
        )


@dataclass
class ScoredOption:
    """A DecisionOption with its computed score, confidence and tier."""

    option: DecisionOption
    overall_score: float
    confidence: float
    recommendation_tier: RecommendationTier
    components: ComponentScores
    reasoning: str = ""

    @property
    def id(self) -> str:
        return self.option.id
