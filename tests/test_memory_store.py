"""Tests for the in-memory store backend."""

from __future__ import annotations

import pytest

from autoheal.core.models import ErrorCategory, ErrorRecord, ErrorStatus
from autoheal.store.base import DecisionLogEntry, ErrorFilter
from autoheal.store.memory import InMemoryDecisionLogStore, InMemoryErrorStore


def _record() -> ErrorRecord:
    return ErrorRecord(
        category=ErrorCategory.RUNTIME,
        message="TypeError: x is undefined",
        context={"stack_trace": "at render (app.js:10)", "files": ["app.js"]},
    )


class TestErrorStoreIsolation:
    """Callers never share mutable state with stored records."""

    @pytest.mark.asyncio
    async def test_caller_record_is_not_stored(self, error_store: InMemoryErrorStore) -> None:
        record = _record()
        await error_store.insert(record)

        record.context["stack_trace"] = "changed"
        record.context["files"].append("other.js")

        stored = await error_store.get(record.id)
        assert stored is not None
        assert stored.context == {"stack_trace": "at render (app.js:10)", "files": ["app.js"]}

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, error_store: InMemoryErrorStore) -> None:
        inserted = await error_store.insert(_record())
        inserted.context["injected"] = True

        fetched = await error_store.get(inserted.id)
        assert fetched is not None
        fetched.context["files"].append("other.js")

        queried = await error_store.query(ErrorFilter())
        queried[0].context.clear()

        updated = await error_store.update(inserted.id, ErrorStatus.RESOLVED, "fixed")
        assert updated is not None
        updated.context["stack_trace"] = "changed"

        stored = await error_store.get(inserted.id)
        assert stored is not None
        assert stored.status == ErrorStatus.RESOLVED
        assert stored.context == {"stack_trace": "at render (app.js:10)", "files": ["app.js"]}


class TestDecisionLogIsolation:
    @pytest.mark.asyncio
    async def test_option_scores_are_copied(
        self, decision_store: InMemoryDecisionLogStore
    ) -> None:
        entry = DecisionLogEntry(
            scenario_category="general",
            scenario="Pick a queue",
            user_goal="",
            recommended_option_id="a",
            option_scores={"a": 0.8, "b": 0.6},
            confidence=0.7,
            reasoning="a fits best",
            requires_user_input=False,
        )
        await decision_store.insert(entry)
        entry.option_scores["a"] = 0.0

        fetched = await decision_store.get(entry.id)
        assert fetched is not None
        fetched.option_scores.clear()

        again = await decision_store.get(entry.id)
        assert again is not None
        assert again.option_scores == {"a": 0.8, "b": 0.6}
