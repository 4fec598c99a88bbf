"""Tests for the autoheal CLI.

Every test runs against a throwaway SQLite database under ``tmp_path`` so
separate invocations share state the way real shell usage does.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from autoheal import __version__
from autoheal.cli import app

runner = CliRunner()

DECISION_FILE = """\
context:
  scenario: Add auth to the admin API
  time: urgent
  risk_tolerance: low
options:
  - id: session
    name: Session cookies
    effort: low
    risk: low
  - id: oauth
    name: OAuth
    effort: high
    risk: medium
"""


def _invoke(config_file: Path, *args: str) -> Any:
    return runner.invoke(app, ["--config", str(config_file), *args])


def _json(result: Any) -> Any:
    assert result.exit_code in (0, 2), result.stdout
    return json.loads(result.stdout)


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"autoheal v{__version__}" in result.stdout

    def test_invalid_config_exits_1(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("healing:\n  max_attempts: 9\n")

        result = _invoke(config_file, "detect")

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout

    def test_missing_config_exits_1(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path / "missing.yaml", "detect")

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout


class TestDetectionCommands:
    """Tests for report-error and detect."""

    def test_report_then_detect(self, sqlite_config_file: Path) -> None:
        reported = _json(
            _invoke(
                sqlite_config_file,
                "report-error",
                "build",
                "Cannot find module 'left-pad'",
                "--severity",
                "critical",
                "--json",
            )
        )

        summary = _json(_invoke(sqlite_config_file, "detect", "--errors", "--json"))

        assert reported["status"] == "open"
        assert summary["total"] == 1
        assert summary["critical_count"] == 1
        assert summary["category_counts"]["build"] == 1
        assert summary["errors"][0]["id"] == reported["id"]
        assert summary["recommendations"]

    def test_detect_empty_store(self, sqlite_config_file: Path) -> None:
        result = _invoke(sqlite_config_file, "detect")

        assert result.exit_code == 0
        assert "0" in result.stdout
        assert "open error(s)" in result.stdout

    def test_report_with_context(self, sqlite_config_file: Path) -> None:
        result = _invoke(
            sqlite_config_file,
            "report-error",
            "runtime",
            "TypeError: x is undefined",
            "--context",
            '{"stack_trace": "at render (app.js:10)"}',
        )

        assert result.exit_code == 0
        assert "Recorded" in result.stdout

    @pytest.mark.parametrize(
        ("context", "message"),
        [("not json", "Invalid --context JSON"), ("[1, 2]", "must be a JSON object")],
    )
    def test_invalid_context_exits_1(
        self, sqlite_config_file: Path, context: str, message: str
    ) -> None:
        result = _invoke(
            sqlite_config_file, "report-error", "runtime", "boom", "--context", context
        )

        assert result.exit_code == 1
        assert message in result.stdout


class TestCycleCommands:
    """Tests for cycle and watch."""

    def test_cycle_heals(self, sqlite_config_file: Path) -> None:
        _invoke(sqlite_config_file, "report-error", "build", "Cannot find module 'left-pad'")

        result = _invoke(sqlite_config_file, "cycle", "--json")
        report = _json(result)

        assert result.exit_code == 0
        assert report["outcome"] == "healed"
        assert report["healed"] == 1

        after = _json(_invoke(sqlite_config_file, "detect", "--json"))
        assert after["total"] == 0

    def test_escalated_cycle_exits_2(self, sqlite_config_file: Path) -> None:
        _invoke(sqlite_config_file, "report-error", "auth", "Session cookie missing")

        result = _invoke(sqlite_config_file, "cycle", "--json")
        report = _json(result)

        assert result.exit_code == 2
        assert report["outcome"] == "escalated"
        assert report["escalations"][0]["human_action_needed"]

    def test_cycle_text_report(self, sqlite_config_file: Path) -> None:
        _invoke(sqlite_config_file, "report-error", "build", "Cannot find module 'left-pad'")

        result = _invoke(sqlite_config_file, "cycle")

        assert result.exit_code == 0
        assert "Healing Cycle" in result.stdout

    def test_watch_bounded(self, sqlite_config_file: Path) -> None:
        result = _invoke(sqlite_config_file, "watch", "--cycles", "2", "--interval", "0")

        assert result.exit_code == 0
        assert "Completed 2 cycle(s)" in result.stdout


class TestDecisionCommands:
    """Tests for decide and record-choice."""

    def test_decide_and_record_choice(self, sqlite_config_file: Path, tmp_path: Path) -> None:
        options_file = tmp_path / "decision.yaml"
        options_file.write_text(DECISION_FILE)

        decision = _json(_invoke(sqlite_config_file, "decide", str(options_file), "--json"))

        assert decision["best"] == "session"
        assert decision["scenario_category"] == "authentication"
        assert decision["decision_id"]

        recorded = _invoke(
            sqlite_config_file,
            "record-choice",
            decision["decision_id"],
            "session",
            "--success",
        )
        assert recorded.exit_code == 0
        assert "Recorded" in recorded.stdout

    def test_decide_text(self, sqlite_config_file: Path, tmp_path: Path) -> None:
        options_file = tmp_path / "decision.yaml"
        options_file.write_text(DECISION_FILE)

        result = _invoke(sqlite_config_file, "decide", str(options_file), "--no-log")

        assert result.exit_code == 0
        assert "Recommendation" in result.stdout
        assert "Decision id" not in result.stdout

    def test_invalid_decision_file(self, sqlite_config_file: Path, tmp_path: Path) -> None:
        options_file = tmp_path / "decision.yaml"
        options_file.write_text("options: []\n")

        result = _invoke(sqlite_config_file, "decide", str(options_file))

        assert result.exit_code == 1
        assert "Invalid decision file" in result.stdout

    def test_record_choice_unknown_decision(self, sqlite_config_file: Path) -> None:
        result = _invoke(sqlite_config_file, "record-choice", "dec-missing", "session")

        assert result.exit_code == 1
        assert "No decision found" in result.stdout


class TestPatternCommands:
    """Tests for the patterns sub-app."""

    def test_add_and_list(self, sqlite_config_file: Path) -> None:
        added = _invoke(
            sqlite_config_file,
            "patterns",
            "add",
            "reinstall-deps",
            "dependency",
            "--fix",
            "Delete node_modules and reinstall",
            "--confidence",
            "0.8",
        )
        assert added.exit_code == 0
        assert "Saved pattern" in added.stdout

        listed = _json(_invoke(sqlite_config_file, "patterns", "list", "--json"))
        filtered = _json(
            _invoke(sqlite_config_file, "patterns", "list", "--category", "build", "--json")
        )

        assert [p["name"] for p in listed] == ["reinstall-deps"]
        assert listed[0]["confidence_score"] == 0.8
        assert listed[0]["category"] == "dependency"
        assert filtered == []

    def test_list_empty(self, sqlite_config_file: Path) -> None:
        result = _invoke(sqlite_config_file, "patterns", "list")

        assert result.exit_code == 0
        assert "No patterns found" in result.stdout

    def test_decay_without_idle_patterns(self, sqlite_config_file: Path) -> None:
        result = _invoke(sqlite_config_file, "patterns", "decay")

        assert result.exit_code == 0
        assert "No idle patterns" in result.stdout
