"""Tests for the SQLite store backend."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from autoheal.core.errors import InvalidErrorRecordError, StoreUnavailableError
from autoheal.core.models import (
    AttemptOutcome,
    ErrorCategory,
    ErrorRecord,
    ErrorStatus,
    HealingAttempt,
    HealingStrategy,
    Pattern,
    Severity,
)
from autoheal.core.time import utc_now
from autoheal.store.base import DecisionLogEntry, ErrorFilter
from autoheal.store.sqlite_backend import (
    SQLiteDatabase,
    SQLiteDecisionLogStore,
    SQLiteErrorStore,
    SQLitePatternStore,
)


@pytest.fixture
def database(tmp_path: Path) -> SQLiteDatabase:
    return SQLiteDatabase(tmp_path / "nested" / "autoheal.db")


@pytest.fixture
def errors(database: SQLiteDatabase) -> SQLiteErrorStore:
    return SQLiteErrorStore(database)


@pytest.fixture
def patterns(database: SQLiteDatabase) -> SQLitePatternStore:
    return SQLitePatternStore(database)


@pytest.fixture
def decisions(database: SQLiteDatabase) -> SQLiteDecisionLogStore:
    return SQLiteDecisionLogStore(database)


class TestDatabase:
    """Tests for schema setup and availability."""

    @pytest.mark.asyncio
    async def test_initialize_creates_file_and_is_idempotent(
        self, database: SQLiteDatabase, tmp_path: Path
    ) -> None:
        await database.initialize()
        await database.initialize()

        assert (tmp_path / "nested" / "autoheal.db").exists()

    @pytest.mark.asyncio
    async def test_reopening_existing_database(self, tmp_path: Path) -> None:
        path = tmp_path / "autoheal.db"
        first = SQLiteErrorStore(SQLiteDatabase(path))
        record = await first.insert(ErrorRecord(category=ErrorCategory.BUILD, message="boom"))

        second = SQLiteErrorStore(SQLiteDatabase(path))

        assert await second.get(record.id) is not None

    @pytest.mark.asyncio
    async def test_unavailable_path(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        database = SQLiteDatabase(blocker / "autoheal.db")

        with pytest.raises(StoreUnavailableError):
            await database.initialize()


class TestSQLiteErrorStore:
    """Tests for error records and attempts."""

    @pytest.mark.asyncio
    async def test_insert_and_get_round_trip(self, errors: SQLiteErrorStore) -> None:
        record = await errors.insert(
            ErrorRecord(
                category=ErrorCategory.BUILD,
                message="Cannot find module 'left-pad'",
                severity=Severity.HIGH,
                context={"file": "index.js", "line": 3},
            )
        )

        stored = await errors.get(record.id)

        assert stored is not None
        assert stored.category == ErrorCategory.BUILD
        assert stored.severity == Severity.HIGH
        assert stored.context == {"file": "index.js", "line": 3}
        assert stored.status == ErrorStatus.OPEN
        assert stored.created_at == record.created_at

    @pytest.mark.asyncio
    async def test_invalid_record_rejected(self, errors: SQLiteErrorStore) -> None:
        with pytest.raises(InvalidErrorRecordError):
            await errors.insert(
                ErrorRecord(category=ErrorCategory.BUILD, message="x", context={"f": object()})
            )

    @pytest.mark.asyncio
    async def test_query_combines_category_and_keywords_with_or(
        self, errors: SQLiteErrorStore
    ) -> None:
        now = utc_now()
        auth = await errors.insert(
            ErrorRecord(category=ErrorCategory.AUTH, message="Login loop", created_at=now)
        )
        keyword = await errors.insert(
            ErrorRecord(
                category=ErrorCategory.RUNTIME,
                message="401 UNAUTHORIZED from upstream",
                created_at=now - timedelta(seconds=1),
            )
        )
        await errors.insert(
            ErrorRecord(
                category=ErrorCategory.BUILD,
                message="Syntax error",
                created_at=now - timedelta(seconds=2),
            )
        )

        found = await errors.query(
            ErrorFilter(
                category=ErrorCategory.AUTH,
                status=ErrorStatus.OPEN,
                keywords=("unauthorized",),
            )
        )

        assert [r.id for r in found] == [auth.id, keyword.id]

    @pytest.mark.asyncio
    async def test_query_status_and_limit(self, errors: SQLiteErrorStore) -> None:
        now = utc_now()
        for i in range(3):
            await errors.insert(
                ErrorRecord(
                    category=ErrorCategory.BUILD,
                    message=f"error {i}",
                    created_at=now - timedelta(seconds=i),
                )
            )

        open_records = await errors.query(ErrorFilter(status=ErrorStatus.OPEN, limit=2))
        resolved = await errors.query(ErrorFilter(status=ErrorStatus.RESOLVED))

        assert [r.message for r in open_records] == ["error 0", "error 1"]
        assert resolved == []

    @pytest.mark.asyncio
    async def test_update_status(self, errors: SQLiteErrorStore) -> None:
        record = await errors.insert(ErrorRecord(category=ErrorCategory.BUILD, message="boom"))

        updated = await errors.update(record.id, ErrorStatus.RESOLVED, "fixed")

        assert updated is not None
        assert updated.status == ErrorStatus.RESOLVED
        assert updated.resolution_note == "fixed"
        assert updated.resolved_at is not None
        assert await errors.update("err-missing", ErrorStatus.RESOLVED) is None

    @pytest.mark.asyncio
    async def test_attempts_in_insertion_order(self, errors: SQLiteErrorStore) -> None:
        for number, outcome in ((1, AttemptOutcome.FAILURE), (2, AttemptOutcome.SUCCESS)):
            await errors.record_attempt(
                HealingAttempt(
                    error_id="err-1",
                    strategy=HealingStrategy.DETERMINISTIC,
                    attempt_number=number,
                    outcome=outcome,
                    confidence=0.8,
                    duration_ms=3,
                    fix_applied="Install the missing dependency",
                    applied=outcome == AttemptOutcome.SUCCESS,
                )
            )
        await errors.record_attempt(
            HealingAttempt(
                error_id="err-2",
                strategy=HealingStrategy.ESCALATE,
                attempt_number=1,
                outcome=AttemptOutcome.FAILURE,
                confidence=0.0,
                duration_ms=0,
            )
        )

        attempts = await errors.list_attempts("err-1")

        assert [a.attempt_number for a in attempts] == [1, 2]
        assert attempts[1].succeeded
        assert attempts[1].applied is True
        assert len(await errors.list_attempts()) == 3


class TestSQLitePatternStore:
    """Tests for pattern persistence."""

    @pytest.mark.asyncio
    async def test_upsert_replaces(self, patterns: SQLitePatternStore) -> None:
        await patterns.upsert(Pattern(name="retry", category=ErrorCategory.NETWORK))
        await patterns.upsert(
            Pattern(name="retry", category=ErrorCategory.NETWORK, confidence_score=0.9)
        )

        stored = await patterns.get("retry")

        assert stored is not None
        assert stored.confidence_score == 0.9
        assert len(await patterns.list_all()) == 1

    @pytest.mark.asyncio
    async def test_increment_counters(self, patterns: SQLitePatternStore) -> None:
        await patterns.upsert(Pattern(name="retry", category=ErrorCategory.NETWORK))
        used_at = utc_now()

        updated = await patterns.increment_counters("retry", success=2, failure=1, used_at=used_at)

        assert updated is not None
        assert (updated.success_count, updated.failure_count) == (2, 1)
        assert updated.last_used_at == used_at
        assert await patterns.increment_counters("missing", success=1) is None

    @pytest.mark.asyncio
    async def test_find_filters_and_orders(self, patterns: SQLitePatternStore) -> None:
        await patterns.upsert(Pattern(name="low", category=ErrorCategory.AUTH, confidence_score=0.3))
        await patterns.upsert(Pattern(name="mid", category=ErrorCategory.AUTH, confidence_score=0.7))
        await patterns.upsert(Pattern(name="top", category=ErrorCategory.AUTH, confidence_score=0.9))
        await patterns.upsert(Pattern(name="net", category=ErrorCategory.NETWORK, confidence_score=0.9))

        found = await patterns.find(ErrorCategory.AUTH, min_confidence=0.7)

        assert [p.name for p in found] == ["top", "mid"]


class TestSQLiteDecisionLogStore:
    """Tests for the decision log."""

    @staticmethod
    def _entry(category: str = "authentication", recommended: str = "oauth") -> DecisionLogEntry:
        return DecisionLogEntry(
            scenario_category=category,
            scenario="Add auth",
            user_goal="Ship",
            recommended_option_id=recommended,
            option_scores={"oauth": 0.7, "session": 0.6},
            confidence=0.5,
            reasoning="oauth scores highest",
            requires_user_input=True,
        )

    @pytest.mark.asyncio
    async def test_insert_and_get(self, decisions: SQLiteDecisionLogStore) -> None:
        decision_id = await decisions.insert(self._entry())

        entry = await decisions.get(decision_id)

        assert entry is not None
        assert entry.option_scores == {"oauth": 0.7, "session": 0.6}
        assert entry.requires_user_input is True
        assert entry.chosen_option_id is None
        assert entry.was_successful is None

    @pytest.mark.asyncio
    async def test_historical_weights(self, decisions: SQLiteDecisionLogStore) -> None:
        outcomes = [("oauth", True), ("oauth", False), ("session", True)]
        for chosen, ok in outcomes:
            decision_id = await decisions.insert(self._entry())
            assert await decisions.record_choice(decision_id, chosen, ok)
        await decisions.insert(self._entry())
        other = await decisions.insert(self._entry(category="general"))
        await decisions.record_choice(other, "oauth", False)

        weights = await decisions.query_historical_weights("authentication")

        assert weights == {"oauth": 0.5, "session": 1.0}

    @pytest.mark.asyncio
    async def test_record_choice_unknown(self, decisions: SQLiteDecisionLogStore) -> None:
        assert await decisions.record_choice("dec-missing", "oauth", True) is False
