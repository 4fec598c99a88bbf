"""In-memory stores.

Useful for tests and for one-shot CLI runs with ``store.type: memory``.
Records are copied on the way in and out so callers cannot mutate stored
state behind the store's back.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime

from autoheal.core.models import (
    ErrorCategory,
    ErrorRecord,
    ErrorStatus,
    HealingAttempt,
    Pattern,
)
from autoheal.core.time import utc_now
from autoheal.store.base import (
    DecisionLogEntry,
    DecisionLogStore,
    ErrorFilter,
    ErrorStore,
    PatternStore,
    success_rates,
    validate_record,
)


def _copy_record(record: ErrorRecord) -> ErrorRecord:
    return replace(record, context=copy.deepcopy(record.context))


class InMemoryErrorStore(ErrorStore):
    def __init__(self) -> None:
        self.records: dict[str, ErrorRecord] = {}
        self.attempts: list[HealingAttempt] = []

    async def query(self, flt: ErrorFilter) -> list[ErrorRecord]:
        matched = [_copy_record(r) for r in self.records.values() if flt.matches(r)]
        matched.sort(key=lambda r: r.created_at, reverse=True)
        if flt.limit is not None:
            matched = matched[: flt.limit]
        return matched

    async def get(self, error_id: str) -> ErrorRecord | None:
        record = self.records.get(error_id)
        return _copy_record(record) if record else None

    async def insert(self, record: ErrorRecord) -> ErrorRecord:
        stored = validate_record(_copy_record(record))
        self.records[stored.id] = stored
        return _copy_record(stored)

    async def update(
        self,
        error_id: str,
        status: ErrorStatus,
        resolution_note: str | None = None,
    ) -> ErrorRecord | None:
        record = self.records.get(error_id)
        if record is None:
            return None
        record.status = status
        record.resolution_note = resolution_note
        record.resolved_at = utc_now() if status == ErrorStatus.RESOLVED else None
        return _copy_record(record)

    async def record_attempt(self, attempt: HealingAttempt) -> None:
        self.attempts.append(attempt)

    async def list_attempts(self, error_id: str | None = None) -> list[HealingAttempt]:
        if error_id is None:
            return list(self.attempts)
        return [a for a in self.attempts if a.error_id == error_id]


class InMemoryPatternStore(PatternStore):
    def __init__(self, patterns: list[Pattern] | None = None) -> None:
        self.patterns: dict[str, Pattern] = {}
        for pattern in patterns or []:
            self.patterns[pattern.name] = replace(pattern)

    async def get(self, name: str) -> Pattern | None:
        pattern = self.patterns.get(name)
        return replace(pattern) if pattern else None

    async def upsert(self, pattern: Pattern) -> None:
        self.patterns[pattern.name] = replace(pattern)

    async def increment_counters(
        self,
        name: str,
        success: int = 0,
        failure: int = 0,
        used_at: datetime | None = None,
    ) -> Pattern | None:
        pattern = self.patterns.get(name)
        if pattern is None:
            return None
        pattern.success_count += success
        pattern.failure_count += failure
        pattern.last_used_at = used_at or utc_now()
        return replace(pattern)

    async def find(self, category: ErrorCategory, min_confidence: float = 0.0) -> list[Pattern]:
        found = [
            replace(p)
            for p in self.patterns.values()
            if p.category == category and p.confidence_score >= min_confidence
        ]
        found.sort(key=lambda p: p.confidence_score, reverse=True)
        return found

    async def list_all(self) -> list[Pattern]:
        return [replace(p) for p in self.patterns.values()]


class InMemoryDecisionLogStore(DecisionLogStore):
    def __init__(self) -> None:
        self.entries: dict[str, DecisionLogEntry] = {}

    async def insert(self, entry: DecisionLogEntry) -> str:
        self.entries[entry.id] = replace(entry, option_scores=dict(entry.option_scores))
        return entry.id

    async def query_historical_weights(
        self, scenario_category: str, limit: int = 50
    ) -> dict[str, float]:
        closed = [
            e
            for e in self.entries.values()
            if e.scenario_category == scenario_category and e.chosen_option_id is not None
        ]
        closed.sort(key=lambda e: e.created_at, reverse=True)
        return success_rates(closed[:limit])

    async def record_choice(
        self,
        decision_id: str,
        chosen_option_id: str,
        was_successful: bool,
        feedback: str | None = None,
    ) -> bool:
        entry = self.entries.get(decision_id)
        if entry is None:
            return False
        entry.chosen_option_id = chosen_option_id
        entry.was_successful = was_successful
        entry.feedback = feedback
        return True

    async def get(self, decision_id: str) -> DecisionLogEntry | None:
        entry = self.entries.get(decision_id)
        return replace(entry, option_scores=dict(entry.option_scores)) if entry else None
