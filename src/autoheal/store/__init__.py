"""Store interfaces and their in-memory and SQLite implementations."""

from autoheal.store.base import (
    DecisionLogEntry,
    DecisionLogStore,
    ErrorFilter,
    ErrorStore,
    PatternStore,
)
from autoheal.store.memory import (
    InMemoryDecisionLogStore,
    InMemoryErrorStore,
    InMemoryPatternStore,
)
from autoheal.store.sqlite_backend import (
    SQLiteDatabase,
    SQLiteDecisionLogStore,
    SQLiteErrorStore,
    SQLitePatternStore,
)

__all__ = [
    "DecisionLogEntry",
    "DecisionLogStore",
    "ErrorFilter",
    "ErrorStore",
    "InMemoryDecisionLogStore",
    "InMemoryErrorStore",
    "InMemoryPatternStore",
    "PatternStore",
    "SQLiteDatabase",
    "SQLiteDecisionLogStore",
    "SQLiteErrorStore",
    "SQLitePatternStore",
]
