"""SQLite-backed stores using aiosqlite.

A single ``SQLiteDatabase`` owns the file, the schema and migrations. The
three store classes share it, so one database holds errors, attempts,
patterns and the decision log.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from autoheal.core.errors import StoreError, StoreUnavailableError
from autoheal.core.logging import get_logger
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
from autoheal.store.base import (
    DecisionLogEntry,
    DecisionLogStore,
    ErrorFilter,
    ErrorStore,
    PatternStore,
    success_rates,
    validate_record,
)

_logger = get_logger("store.sqlite")

SCHEMA_VERSION = 2


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteDatabase:
    """Connection factory and schema owner for the SQLite stores."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an initialized connection. Driver errors surface as StoreError."""
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as e:
            raise StoreError(f"SQLite operation failed: {e}") from e

    async def initialize(self) -> None:
        """Open the database and apply migrations.

        Raises:
            StoreUnavailableError: If the file cannot be created or opened.
        """
        await self._ensure_initialized()

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiosqlite.connect(self.db_path) as db:
                    await self._run_migrations(db)
            except (OSError, aiosqlite.Error) as e:
                raise StoreUnavailableError(
                    f"Cannot open store at {self.db_path}: {e}"
                ) from e
            self._initialized = True

    async def _get_schema_version(self, db: aiosqlite.Connection) -> int:
        try:
            cursor = await db.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = await cursor.fetchone()
            return row[0] if row else 0
        except aiosqlite.OperationalError:
            return 0

    async def _run_migrations(self, db: aiosqlite.Connection) -> None:
        current_version = await self._get_schema_version(db)
        if current_version < 1:
            await self._migrate_v1(db)
            _logger.info("schema_migrated", from_version=0, to_version=1)
        if current_version < 2:
            await self._migrate_v2(db)
            _logger.info("schema_migrated", from_version=1, to_version=2)

    async def _migrate_v1(self, db: aiosqlite.Connection) -> None:
        """Errors, attempts and patterns."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS errors (
                id TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                severity TEXT NOT NULL,
                message TEXT NOT NULL,
                context TEXT NOT NULL DEFAULT '{}',
                status TEXT NOT NULL DEFAULT 'open',
                resolution_note TEXT,
                created_at TEXT NOT NULL,
                resolved_at TEXT
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS healing_attempts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                error_id TEXT NOT NULL,
                strategy TEXT NOT NULL,
                attempt_number INTEGER NOT NULL,
                outcome TEXT NOT NULL,
                confidence REAL NOT NULL,
                duration_ms INTEGER NOT NULL,
                fix_applied TEXT,
                pattern_name TEXT,
                applied INTEGER NOT NULL DEFAULT 0,
                timestamp TEXT NOT NULL
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS patterns (
                name TEXT PRIMARY KEY,
                category TEXT NOT NULL,
                confidence_score REAL NOT NULL,
                success_count INTEGER NOT NULL DEFAULT 0,
                failure_count INTEGER NOT NULL DEFAULT 0,
                last_used_at TEXT,
                fix_description TEXT NOT NULL DEFAULT ''
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_errors_status ON errors(status, category)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_attempts_error ON healing_attempts(error_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_patterns_category ON patterns(category)"
        )
        await db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (1, utc_now().isoformat()),
        )
        await db.commit()

    async def _migrate_v2(self, db: aiosqlite.Connection) -> None:
        """Decision log."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS decision_logs (
                id TEXT PRIMARY KEY,
                scenario_category TEXT NOT NULL,
                scenario TEXT NOT NULL,
                user_goal TEXT NOT NULL,
                recommended_option_id TEXT NOT NULL,
                option_scores TEXT NOT NULL,
                confidence REAL NOT NULL,
                reasoning TEXT NOT NULL,
                requires_user_input INTEGER NOT NULL,
                chosen_option_id TEXT,
                was_successful INTEGER,
                feedback TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_decisions_category "
            "ON decision_logs(scenario_category, created_at)"
        )
        await db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
            (2, utc_now().isoformat()),
        )
        await db.commit()


def _row_to_error(row: aiosqlite.Row) -> ErrorRecord:
    return ErrorRecord(
        id=row["id"],
        category=ErrorCategory(row["category"]),
        severity=Severity(row["severity"]),
        message=row["message"],
        context=json.loads(row["context"]),
        status=ErrorStatus(row["status"]),
        resolution_note=row["resolution_note"],
        created_at=datetime.fromisoformat(row["created_at"]),
        resolved_at=_parse_dt(row["resolved_at"]),
    )


def _row_to_attempt(row: aiosqlite.Row) -> HealingAttempt:
    return HealingAttempt(
        error_id=row["error_id"],
        strategy=HealingStrategy(row["strategy"]),
        attempt_number=row["attempt_number"],
        outcome=AttemptOutcome(row["outcome"]),
        confidence=row["confidence"],
        duration_ms=row["duration_ms"],
        fix_applied=row["fix_applied"],
        pattern_name=row["pattern_name"],
        applied=bool(row["applied"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


def _row_to_pattern(row: aiosqlite.Row) -> Pattern:
    return Pattern(
        name=row["name"],
        category=ErrorCategory(row["category"]),
        confidence_score=row["confidence_score"],
        success_count=row["success_count"],
        failure_count=row["failure_count"],
        last_used_at=_parse_dt(row["last_used_at"]),
        fix_description=row["fix_description"],
    )


def _row_to_decision(row: aiosqlite.Row) -> DecisionLogEntry:
    was_successful = row["was_successful"]
    return DecisionLogEntry(
        id=row["id"],
        scenario_category=row["scenario_category"],
        scenario=row["scenario"],
        user_goal=row["user_goal"],
        recommended_option_id=row["recommended_option_id"],
        option_scores=json.loads(row["option_scores"]),
        confidence=row["confidence"],
        reasoning=row["reasoning"],
        requires_user_input=bool(row["requires_user_input"]),
        chosen_option_id=row["chosen_option_id"],
        was_successful=None if was_successful is None else bool(was_successful),
        feedback=row["feedback"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SQLiteErrorStore(ErrorStore):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def query(self, flt: ErrorFilter) -> list[ErrorRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if flt.status is not None:
            clauses.append("status = ?")
            params.append(flt.status.value)

        alternatives: list[str] = []
        if flt.category is not None:
            alternatives.append("category = ?")
            params.append(flt.category.value)
        for keyword in flt.keywords:
            alternatives.append("LOWER(message) LIKE ?")
            params.append(f"%{keyword.lower()}%")
        if alternatives:
            clauses.append("(" + " OR ".join(alternatives) + ")")

        sql = "SELECT * FROM errors"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"
        if flt.limit is not None:
            sql += " LIMIT ?"
            params.append(flt.limit)

        async with self._db.connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_error(row) for row in rows]

    async def get(self, error_id: str) -> ErrorRecord | None:
        async with self._db.connect() as db:
            cursor = await db.execute("SELECT * FROM errors WHERE id = ?", (error_id,))
            row = await cursor.fetchone()
        return _row_to_error(row) if row else None

    async def insert(self, record: ErrorRecord) -> ErrorRecord:
        record = validate_record(record)
        async with self._db.connect() as db:
            await db.execute(
                """
                INSERT INTO errors (
                    id, category, severity, message, context, status,
                    resolution_note, created_at, resolved_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.category.value,
                    Severity(record.severity).value,
                    record.message,
                    json.dumps(record.context),
                    ErrorStatus(record.status).value,
                    record.resolution_note,
                    record.created_at.isoformat(),
                    _iso(record.resolved_at),
                ),
            )
            await db.commit()
        return record

    async def update(
        self,
        error_id: str,
        status: ErrorStatus,
        resolution_note: str | None = None,
    ) -> ErrorRecord | None:
        resolved_at = utc_now() if status == ErrorStatus.RESOLVED else None
        async with self._db.connect() as db:
            cursor = await db.execute(
                "UPDATE errors SET status = ?, resolution_note = ?, resolved_at = ? "
                "WHERE id = ?",
                (status.value, resolution_note, _iso(resolved_at), error_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
        return await self.get(error_id)

    async def record_attempt(self, attempt: HealingAttempt) -> None:
        async with self._db.connect() as db:
            await db.execute(
                """
                INSERT INTO healing_attempts (
                    error_id, strategy, attempt_number, outcome, confidence,
                    duration_ms, fix_applied, pattern_name, applied, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    attempt.error_id,
                    attempt.strategy.value,
                    attempt.attempt_number,
                    attempt.outcome.value,
                    attempt.confidence,
                    attempt.duration_ms,
                    attempt.fix_applied,
                    attempt.pattern_name,
                    int(attempt.applied),
                    attempt.timestamp.isoformat(),
                ),
            )
            await db.commit()

    async def list_attempts(self, error_id: str | None = None) -> list[HealingAttempt]:
        sql = "SELECT * FROM healing_attempts"
        params: tuple[Any, ...] = ()
        if error_id is not None:
            sql += " WHERE error_id = ?"
            params = (error_id,)
        sql += " ORDER BY id"
        async with self._db.connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_attempt(row) for row in rows]


class SQLitePatternStore(PatternStore):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def get(self, name: str) -> Pattern | None:
        async with self._db.connect() as db:
            cursor = await db.execute("SELECT * FROM patterns WHERE name = ?", (name,))
            row = await cursor.fetchone()
        return _row_to_pattern(row) if row else None

    async def upsert(self, pattern: Pattern) -> None:
        async with self._db.connect() as db:
            await db.execute(
                """
                INSERT INTO patterns (
                    name, category, confidence_score, success_count,
                    failure_count, last_used_at, fix_description
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    category = excluded.category,
                    confidence_score = excluded.confidence_score,
                    success_count = excluded.success_count,
                    failure_count = excluded.failure_count,
                    last_used_at = excluded.last_used_at,
                    fix_description = excluded.fix_description
                """,
                (
                    pattern.name,
                    ErrorCategory(pattern.category).value,
                    pattern.confidence_score,
                    pattern.success_count,
                    pattern.failure_count,
                    _iso(pattern.last_used_at),
                    pattern.fix_description,
                ),
            )
            await db.commit()

    async def increment_counters(
        self,
        name: str,
        success: int = 0,
        failure: int = 0,
        used_at: datetime | None = None,
    ) -> Pattern | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                """
                UPDATE patterns SET
                    success_count = success_count + ?,
                    failure_count = failure_count + ?,
                    last_used_at = ?
                WHERE name = ?
                """,
                (success, failure, (used_at or utc_now()).isoformat(), name),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
        return await self.get(name)

    async def find(self, category: ErrorCategory, min_confidence: float = 0.0) -> list[Pattern]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT * FROM patterns WHERE category = ? AND confidence_score >= ? "
                "ORDER BY confidence_score DESC",
                (category.value, min_confidence),
            )
            rows = await cursor.fetchall()
        return [_row_to_pattern(row) for row in rows]

    async def list_all(self) -> list[Pattern]:
        async with self._db.connect() as db:
            cursor = await db.execute("SELECT * FROM patterns ORDER BY category, name")
            rows = await cursor.fetchall()
        return [_row_to_pattern(row) for row in rows]


class SQLiteDecisionLogStore(DecisionLogStore):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def insert(self, entry: DecisionLogEntry) -> str:
        async with self._db.connect() as db:
            await db.execute(
                """
                INSERT INTO decision_logs (
                    id, scenario_category, scenario, user_goal,
                    recommended_option_id, option_scores, confidence, reasoning,
                    requires_user_input, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.scenario_category,
                    entry.scenario,
                    entry.user_goal,
                    entry.recommended_option_id,
                    json.dumps(entry.option_scores),
                    entry.confidence,
                    entry.reasoning,
                    int(entry.requires_user_input),
                    entry.created_at.isoformat(),
                ),
            )
            await db.commit()
        return entry.id

    async def query_historical_weights(
        self, scenario_category: str, limit: int = 50
    ) -> dict[str, float]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT * FROM decision_logs "
                "WHERE scenario_category = ? AND chosen_option_id IS NOT NULL "
                "ORDER BY created_at DESC LIMIT ?",
                (scenario_category, limit),
            )
            rows = await cursor.fetchall()
        return success_rates([_row_to_decision(row) for row in rows])

    async def record_choice(
        self,
        decision_id: str,
        chosen_option_id: str,
        was_successful: bool,
        feedback: str | None = None,
    ) -> bool:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "UPDATE decision_logs SET chosen_option_id = ?, was_successful = ?, "
                "feedback = ?, updated_at = ? WHERE id = ?",
                (
                    chosen_option_id,
                    int(was_successful),
                    feedback,
                    utc_now().isoformat(),
                    decision_id,
                ),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def get(self, decision_id: str) -> DecisionLogEntry | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT * FROM decision_logs WHERE id = ?", (decision_id,)
            )
            row = await cursor.fetchone()
        return _row_to_decision(row) if row else None
