"""Escalation of errors the ladder could not heal."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from autoheal.core.models import ErrorCategory, ErrorRecord, HealingAttempt
from autoheal.core.time import utc_now

DEFAULT_HUMAN_ACTION = "Manual code review and debugging required"

HUMAN_ACTION_HINTS: dict[ErrorCategory, str] = {
    ErrorCategory.AUTH: "Review authentication configuration and RLS policies",
    ErrorCategory.NETWORK: "Check API endpoints and network connectivity",
    ErrorCategory.PERFORMANCE: "Profile application memory usage and identify leak source",
    ErrorCategory.BUILD: "Review build configuration and dependencies",
    ErrorCategory.DEPENDENCY: "Review dependency versions and lockfile consistency",
    ErrorCategory.INTEGRATION: "Check integration endpoints, credentials and timeouts",
    ErrorCategory.RUNTIME: DEFAULT_HUMAN_ACTION,
}


def human_action_for(category: ErrorCategory) -> str:
    """Static guidance for a human taking over an error of ``category``."""
    return HUMAN_ACTION_HINTS.get(category, DEFAULT_HUMAN_ACTION)


@dataclass(frozen=True)
class EscalationEntry:
    """An error handed to a human, with what was tried."""

    error: ErrorRecord
    escalation_reason: str
    human_action_needed: str
    attempts: tuple[HealingAttempt, ...] = field(default_factory=tuple)
    escalated_at: datetime = field(default_factory=utc_now)

    @property
    def error_id(self) -> str:
        return self.error.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error.id,
            "category": self.error.category.value,
            "severity": self.error.severity.value,
            "message": self.error.message,
            "escalation_reason": self.escalation_reason,
            "human_action_needed": self.human_action_needed,
            "attempts": len(self.attempts),
            "escalated_at": self.escalated_at.isoformat(),
        }


def escalate(record: ErrorRecord, attempts: tuple[HealingAttempt, ...]) -> EscalationEntry:
    """Build the escalation entry for an exhausted ladder run."""
    if attempts:
        reason = f"Failed after {len(attempts)} attempts"
    else:
        reason = "Max attempts reached without resolution"
    return EscalationEntry(
        error=record,
        escalation_reason=reason,
        human_action_needed=human_action_for(record.category),
        attempts=attempts,
    )
