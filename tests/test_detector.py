"""Tests for the multi-category error detector."""

from __future__ import annotations

import pytest

from autoheal.core.errors import InvalidErrorRecordError
from autoheal.core.models import ErrorCategory, ErrorRecord, ErrorStatus, Severity
from autoheal.detection.detector import Detector, analyze
from autoheal.detection.rules import SCAN_RULES
from autoheal.store.memory import InMemoryErrorStore
from tests.helpers import FailingCategoryErrorStore


class TestDetectAll:
    """Tests for Detector.detect_all()."""

    @pytest.mark.asyncio
    async def test_empty_store(self, error_store: InMemoryErrorStore) -> None:
        summary = await Detector(error_store).detect_all()

        assert summary.total == 0
        assert summary.critical_count == 0
        assert summary.recommendations == []
        assert summary.failed_categories == []
        assert set(summary.findings) == set(ErrorCategory)

    @pytest.mark.asyncio
    async def test_record_matched_by_two_scans_is_counted_once(
        self, error_store: InMemoryErrorStore
    ) -> None:
        detector = Detector(error_store)
        await detector.record_error(ErrorCategory.BUILD, "Cannot find module 'foo'")

        summary = await detector.detect_all()

        # build matches by category, dependency by keyword
        assert summary.category_counts["build"] == 1
        assert summary.category_counts["dependency"] == 1
        assert summary.total == 1
        assert (
            "Module resolution errors - verify import paths and installed dependencies"
            in summary.recommendations
        )
        assert (
            "Missing dependencies detected - install the required packages"
            in summary.recommendations
        )

    @pytest.mark.asyncio
    async def test_keyword_pulls_in_other_categories(
        self, error_store: InMemoryErrorStore
    ) -> None:
        detector = Detector(error_store)
        await detector.record_error(ErrorCategory.NETWORK, "API call returned 401 Unauthorized")

        summary = await detector.detect_all()

        assert summary.findings[ErrorCategory.AUTH].count == 1
        assert summary.findings[ErrorCategory.NETWORK].count == 1
        assert summary.total == 1

    @pytest.mark.asyncio
    async def test_resolved_errors_are_not_detected(
        self, error_store: InMemoryErrorStore
    ) -> None:
        detector = Detector(error_store)
        record = await detector.record_error(ErrorCategory.BUILD, "Syntax error in app.ts")
        await error_store.update(record.id, ErrorStatus.RESOLVED, "fixed")

        summary = await detector.detect_all()

        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_critical_severity_is_flagged(self, error_store: InMemoryErrorStore) -> None:
        detector = Detector(error_store)
        await detector.record_error(
            ErrorCategory.RUNTIME, "Uncaught TypeError", severity=Severity.CRITICAL
        )

        summary = await detector.detect_all()

        assert summary.critical_count == 1
        assert (
            "1 critical runtime errors detected - immediate attention required"
            in summary.recommendations
        )

    @pytest.mark.asyncio
    async def test_rls_errors_are_critical(self, error_store: InMemoryErrorStore) -> None:
        detector = Detector(error_store)
        await detector.record_error(
            ErrorCategory.AUTH, "new row violates row level security policy"
        )

        summary = await detector.detect_all()

        assert summary.critical_count == 1
        assert "RLS policy issues detected - check table policies" in summary.recommendations

    @pytest.mark.asyncio
    async def test_failed_scan_does_not_hide_other_categories(self) -> None:
        store = FailingCategoryErrorStore(failing=ErrorCategory.AUTH)
        detector = Detector(store)
        await detector.record_error(ErrorCategory.BUILD, "Syntax error: unexpected token")

        summary = await detector.detect_all()

        assert summary.failed_categories == [ErrorCategory.AUTH]
        assert "Failed to detect auth errors - store query issue" in summary.recommendations
        assert summary.findings[ErrorCategory.BUILD].count == 1
        assert summary.total == 1

    @pytest.mark.asyncio
    async def test_to_dict(self, error_store: InMemoryErrorStore) -> None:
        detector = Detector(error_store)
        await detector.record_error(ErrorCategory.PERFORMANCE, "Slow query on dashboard")

        data = (await detector.detect_all()).to_dict()

        assert data["total"] == 1
        assert data["category_counts"]["performance"] == 1
        assert data["failed_categories"] == []


class TestAnalyze:
    """Tests for the pure analyze() step."""

    def test_min_count_gates_recommendation(self) -> None:
        rule = SCAN_RULES[ErrorCategory.RUNTIME]
        three = [
            ErrorRecord(category=ErrorCategory.RUNTIME, message=f"React component {i} crashed")
            for i in range(3)
        ]
        four = three + [
            ErrorRecord(category=ErrorCategory.RUNTIME, message="Invalid hook call")
        ]

        assert analyze(rule, three).recommendations == []
        assert analyze(rule, four).recommendations == [
            "Component errors detected - check hook usage and component lifecycle"
        ]

    def test_slow_context_counts_as_slow(self) -> None:
        rule = SCAN_RULES[ErrorCategory.PERFORMANCE]
        record = ErrorRecord(
            category=ErrorCategory.PERFORMANCE,
            message="Dashboard render",
            context={"duration_ms": 8000},
        )

        findings = analyze(rule, [record])

        assert any(r.startswith("Slow operations detected") for r in findings.recommendations)


class TestRecordError:
    """Tests for Detector.record_error()."""

    @pytest.mark.asyncio
    async def test_records_open_error(self, error_store: InMemoryErrorStore) -> None:
        record = await Detector(error_store).record_error(
            ErrorCategory.NETWORK,
            "fetch failed",
            severity=Severity.HIGH,
            context={"url": "/api/items"},
        )

        stored = await error_store.get(record.id)
        assert stored is not None
        assert stored.status == ErrorStatus.OPEN
        assert stored.severity == Severity.HIGH
        assert stored.context == {"url": "/api/items"}

    @pytest.mark.asyncio
    async def test_rejects_unserializable_context(
        self, error_store: InMemoryErrorStore
    ) -> None:
        with pytest.raises(InvalidErrorRecordError):
            await Detector(error_store).record_error(
                ErrorCategory.RUNTIME, "boom", context={"handle": object()}
            )
        assert error_store.records == {}

    @pytest.mark.asyncio
    async def test_rejects_non_string_keys(self, error_store: InMemoryErrorStore) -> None:
        with pytest.raises(InvalidErrorRecordError):
            await Detector(error_store).record_error(
                ErrorCategory.RUNTIME, "boom", context={1: "one"}  # type: ignore[dict-item]
            )

    @pytest.mark.asyncio
    async def test_rejects_empty_message(self, error_store: InMemoryErrorStore) -> None:
        with pytest.raises(InvalidErrorRecordError):
            await Detector(error_store).record_error(ErrorCategory.RUNTIME, "")
