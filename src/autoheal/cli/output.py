"""Rich output formatting for the autoheal CLI.

Color mappings and table builders live here so every command renders
errors, patterns and decisions the same way.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from autoheal.core.models import RecommendationTier, Severity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autoheal.core.models import ErrorRecord, Pattern
    from autoheal.decision.scorer import DecisionResult
    from autoheal.detection.detector import DetectionSummary
    from autoheal.healing.orchestrator import CycleReport

# =============================================================================
# Shared console instance
# =============================================================================

console = Console()


# =============================================================================
# Color schemes
# =============================================================================


class StatusColors:
    """Color mappings for severities, tiers and cycle outcomes."""

    SEVERITY: dict[Severity, str] = {
        Severity.LOW: "dim",
        Severity.MEDIUM: "yellow",
        Severity.HIGH: "red",
        Severity.CRITICAL: "bold red",
    }

    TIER: dict[RecommendationTier, str] = {
        RecommendationTier.HIGHLY_RECOMMENDED: "bold green",
        RecommendationTier.RECOMMENDED: "green",
        RecommendationTier.VIABLE: "yellow",
        RecommendationTier.NOT_RECOMMENDED: "red",
    }

    OUTCOME: dict[str, str] = {
        "noop": "dim",
        "healed": "green",
        "partial": "yellow",
        "escalated": "red",
    }


def confidence_style(value: float) -> str:
    if value >= 0.8:
        return "green"
    if value >= 0.5:
        return "yellow"
    return "red"


def format_confidence(value: float) -> str:
    return f"[{confidence_style(value)}]{value:.0%}[/{confidence_style(value)}]"


def print_json(data: Any) -> None:
    """Print ``data`` as JSON with no markup, highlighting or wrapping."""
    console.print(
        json.dumps(data, indent=2, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


# =============================================================================
# Table builders
# =============================================================================


def create_findings_table(summary: DetectionSummary) -> Table:
    """Per-category counts from a detection pass."""
    table = Table(title="Open Errors by Category")
    table.add_column("Category", style="cyan")
    table.add_column("Open", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Status")

    for findings in summary.findings.values():
        status = "[red]scan failed[/red]" if findings.failed else "[green]ok[/green]"
        critical = len(findings.critical_items)
        table.add_row(
            findings.category.value,
            str(findings.count),
            f"[red]{critical}[/red]" if critical else "0",
            status,
        )
    return table


def create_errors_table(records: Sequence[ErrorRecord]) -> Table:
    table = Table(title="Errors")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Message")

    for record in records:
        color = StatusColors.SEVERITY.get(record.severity, "white")
        table.add_row(
            record.id,
            record.category.value,
            f"[{color}]{record.severity.value}[/{color}]",
            record.message,
        )
    return table


def create_patterns_table(patterns: Sequence[Pattern]) -> Table:
    table = Table(title="Learned Patterns")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Confidence", justify="right")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Failure", justify="right", style="red")
    table.add_column("Last Used", style="dim")

    for p in patterns:
        last_used = p.last_used_at.strftime("%Y-%m-%d %H:%M") if p.last_used_at else "-"
        table.add_row(
            p.name,
            p.category.value,
            format_confidence(p.confidence_score),
            str(p.success_count),
            str(p.failure_count),
            last_used,
        )
    return table


def create_decision_table(result: DecisionResult) -> Table:
    table = Table(title=f"Options ({result.scenario_category})")
    table.add_column("Rank", justify="right", style="dim")
    table.add_column("Option", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Tier")

    for rank, scored in enumerate(result.ranked, start=1):
        color = StatusColors.TIER.get(scored.recommendation_tier, "white")
        table.add_row(
            str(rank),
            scored.option.label,
            f"{scored.overall_score:.3f}",
            format_confidence(scored.confidence),
            f"[{color}]{scored.recommendation_tier.value}[/{color}]",
        )
    return table


# =============================================================================
# Report rendering
# =============================================================================


def print_cycle_report(report: CycleReport) -> None:
    """Render a cycle report as a summary panel plus escalations."""
    outcome = report.outcome.value
    color = StatusColors.OUTCOME.get(outcome, "white")
    console.print(Panel(
        f"[bold]Outcome:[/bold] [{color}]{outcome.upper()}[/{color}]\n"
        f"Detected: {report.detected}  Processed: {report.processed}  "
        f"Healed: [green]{report.healed}[/green]  "
        f"Escalated: [red]{len(report.escalations)}[/red]",
        title=f"Healing Cycle {report.cycle_id}",
        border_style=color,
    ))

    if report.attempts:
        table = Table(show_header=True)
        table.add_column("Error", style="cyan", no_wrap=True)
        table.add_column("#", justify="right")
        table.add_column("Strategy")
        table.add_column("Outcome")
        table.add_column("Confidence", justify="right")
        for a in report.attempts:
            mark = "[green]✓[/green]" if a.succeeded else "[red]✗[/red]"
            table.add_row(
                a.error_id,
                str(a.attempt_number),
                a.strategy.value,
                mark,
                format_confidence(a.confidence),
            )
        console.print(table)

    for entry in report.escalations:
        console.print(
            f"[yellow]Needs attention:[/yellow] {entry.error_id} "
            f"[dim]({entry.error.category.value})[/dim] {entry.escalation_reason}"
        )
        console.print(f"  [dim]→[/dim] {entry.human_action_needed}")

    for update in report.reconciled:
        if update.applied:
            console.print(
                f"[blue]Confidence:[/blue] {update.pattern_name} "
                f"{update.old_confidence:.2f} → {update.new_confidence:.2f}"
            )

    for rec in report.recommendations:
        console.print(f"[dim]•[/dim] {rec}")
