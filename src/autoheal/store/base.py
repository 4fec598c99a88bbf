"""Abstract store interfaces.

The engine depends only on these three interfaces. Each orchestrator is
handed its own instances; nothing here is a process-wide singleton.
"""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from autoheal.core.errors import InvalidErrorRecordError
from autoheal.core.models import (
    ErrorCategory,
    ErrorRecord,
    ErrorStatus,
    HealingAttempt,
    Pattern,
)
from autoheal.core.time import utc_now


@dataclass(frozen=True)
class ErrorFilter:
    """Query filter for error records.

    ``status`` is always applied. ``category`` and ``keywords`` combine with
    OR: a record matches when its category equals ``category`` or its message
    contains any keyword (case-insensitive). With neither set, every record
    with the requested status matches.
    """

    category: ErrorCategory | None = None
    status: ErrorStatus | None = None
    keywords: tuple[str, ...] = ()
    limit: int | None = None

    def matches(self, record: ErrorRecord) -> bool:
        if self.status is not None and record.status != self.status:
            return False
        if self.category is None and not self.keywords:
            return True
        if self.category is not None and record.category == self.category:
            return True
        message = record.message.lower()
        return any(keyword.lower() in message for keyword in self.keywords)


@dataclass
class DecisionLogEntry:
    """One scored decision, later closed by ``record_choice``."""

    scenario_category: str
    scenario: str
    user_goal: str
    recommended_option_id: str
    option_scores: dict[str, float]
    confidence: float
    reasoning: str
    requires_user_input: bool
    id: str = field(default_factory=lambda: f"dec-{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=utc_now)
    chosen_option_id: str | None = None
    was_successful: bool | None = None
    feedback: str | None = None


def validate_context(context: Any) -> dict[str, Any]:
    """Validate the opaque context map of an error record.

    Returns:
        A plain dict copy of the context.

    Raises:
        InvalidErrorRecordError: If the context is not a JSON-serializable
            mapping with string keys.
    """
    if context is None:
        return {}
    if not isinstance(context, Mapping):
        raise InvalidErrorRecordError(
            f"context must be a mapping, got {type(context).__name__}"
        )
    bad_keys = [k for k in context if not isinstance(k, str)]
    if bad_keys:
        raise InvalidErrorRecordError(f"context keys must be strings: {bad_keys!r}")
    try:
        json.dumps(dict(context))
    except (TypeError, ValueError) as e:
        raise InvalidErrorRecordError(f"context is not JSON-serializable: {e}") from e
    return dict(context)


def validate_record(record: ErrorRecord) -> ErrorRecord:
    """Coerce enum fields and validate the context of ``record`` in place."""
    try:
        record.category = ErrorCategory(record.category)
    except ValueError as e:
        raise InvalidErrorRecordError(f"unknown category: {record.category!r}") from e
    if not record.message:
        raise InvalidErrorRecordError("message must not be empty")
    record.context = validate_context(record.context)
    return record


class ErrorStore(ABC):
    """Persistence for error records and the healing attempt log."""

    @abstractmethod
    async def query(self, flt: ErrorFilter) -> list[ErrorRecord]:
        """Return matching records, newest first, truncated to ``flt.limit``."""
        ...

    @abstractmethod
    async def get(self, error_id: str) -> ErrorRecord | None:
        ...

    @abstractmethod
    async def insert(self, record: ErrorRecord) -> ErrorRecord:
        """Validate and persist a new record.

        Raises:
            InvalidErrorRecordError: If the record fails validation.
        """
        ...

    @abstractmethod
    async def update(
        self,
        error_id: str,
        status: ErrorStatus,
        resolution_note: str | None = None,
    ) -> ErrorRecord | None:
        """Set the status of a record.

        Returns:
            The updated record, or None if no record has that id.
        """
        ...

    @abstractmethod
    async def record_attempt(self, attempt: HealingAttempt) -> None:
        ...

    @abstractmethod
    async def list_attempts(self, error_id: str | None = None) -> list[HealingAttempt]:
        """Return attempts in insertion order, optionally for one error."""
        ...


class PatternStore(ABC):
    """Persistence for remediation patterns."""

    @abstractmethod
    async def get(self, name: str) -> Pattern | None:
        ...

    @abstractmethod
    async def upsert(self, pattern: Pattern) -> None:
        ...

    @abstractmethod
    async def increment_counters(
        self,
        name: str,
        success: int = 0,
        failure: int = 0,
        used_at: datetime | None = None,
    ) -> Pattern | None:
        """Add to the pattern's counters and stamp ``last_used_at``.

        Returns:
            The updated pattern, or None if it does not exist.
        """
        ...

    @abstractmethod
    async def find(self, category: ErrorCategory, min_confidence: float = 0.0) -> list[Pattern]:
        """Return patterns of ``category`` at or above ``min_confidence``, best first."""
        ...

    @abstractmethod
    async def list_all(self) -> list[Pattern]:
        ...


class DecisionLogStore(ABC):
    """Persistence for scored decisions and their eventual outcomes."""

    @abstractmethod
    async def insert(self, entry: DecisionLogEntry) -> str:
        """Persist ``entry`` and return its id."""
        ...

    @abstractmethod
    async def query_historical_weights(
        self, scenario_category: str, limit: int = 50
    ) -> dict[str, float]:
        """Success rate per chosen option id.

        Considers the ``limit`` most recent decisions of the category that
        have a recorded choice.
        """
        ...

    @abstractmethod
    async def record_choice(
        self,
        decision_id: str,
        chosen_option_id: str,
        was_successful: bool,
        feedback: str | None = None,
    ) -> bool:
        """Close a decision. Returns False if the decision does not exist."""
        ...

    @abstractmethod
    async def get(self, decision_id: str) -> DecisionLogEntry | None:
        ...


def success_rates(entries: list[DecisionLogEntry]) -> dict[str, float]:
    """Aggregate closed decisions into a success rate per chosen option."""
    counts: dict[str, list[int]] = {}
    for entry in entries:
        if entry.chosen_option_id is None:
            continue
        tally = counts.setdefault(entry.chosen_option_id, [0, 0])
        tally[1] += 1
        if entry.was_successful:
            tally[0] += 1
    return {option_id: ok / total for option_id, (ok, total) in counts.items()}
