"""Detection commands: scan for open errors and record new ones."""

from __future__ import annotations

import json

import typer

from autoheal.core.factory import Engine
from autoheal.core.models import ErrorCategory, ErrorRecord, Severity
from autoheal.detection.detector import DetectionSummary
from autoheal.detection.prioritizer import prioritize

from ..helpers import run_with_engine
from ..output import console, create_errors_table, create_findings_table, print_json


def detect(
    show_errors: bool = typer.Option(
        False,
        "--errors",
        "-e",
        help="List the detected errors in priority order",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Scan every category for open errors and show recommendations.

    Examples:
        autoheal detect
        autoheal detect --errors
        autoheal detect --json
    """

    async def _run(engine: Engine) -> DetectionSummary:
        return await engine.detector.detect_all()

    summary = run_with_engine(_run)

    if json_output:
        data = summary.to_dict()
        if show_errors:
            data["errors"] = [
                {
                    "id": r.id,
                    "category": r.category.value,
                    "severity": r.severity.value,
                    "message": r.message,
                }
                for r in prioritize(summary.items)
            ]
        print_json(data)
        return

    console.print(create_findings_table(summary))
    console.print(
        f"\n[bold]{summary.total}[/bold] open error(s), "
        f"[red]{summary.critical_count}[/red] critical"
    )
    if show_errors and summary.items:
        console.print(create_errors_table(prioritize(summary.items)))
    if summary.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for rec in summary.recommendations:
            console.print(f"  • {rec}")


def report_error(
    category: ErrorCategory = typer.Argument(..., help="Error category"),
    message: str = typer.Argument(..., help="Error message"),
    severity: Severity = typer.Option(
        Severity.MEDIUM,
        "--severity",
        "-s",
        help="Error severity",
    ),
    context: str | None = typer.Option(
        None,
        "--context",
        help="JSON object with extra context (e.g. code, stack_trace)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output the stored record as JSON",
    ),
) -> None:
    """Record a new open error so the next cycle can heal it.

    Examples:
        autoheal report-error build "Cannot find module 'left-pad'"
        autoheal report-error runtime "TypeError" --severity high \\
            --context '{"stack_trace": "at render (app.js:10)"}'
    """
    parsed_context: object = {}
    if context:
        try:
            parsed_context = json.loads(context)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid --context JSON:[/red] {e}")
            raise typer.Exit(1) from None
        if not isinstance(parsed_context, dict):
            console.print("[red]--context must be a JSON object[/red]")
            raise typer.Exit(1)

    async def _run(engine: Engine) -> ErrorRecord:
        return await engine.detector.record_error(
            category, message, severity=severity, context=parsed_context  # type: ignore[arg-type]
        )

    record = run_with_engine(_run)

    if json_output:
        print_json({
            "id": record.id,
            "category": record.category.value,
            "severity": record.severity.value,
            "message": record.message,
            "status": record.status.value,
        })
        return
    console.print(f"[green]Recorded[/green] [cyan]{record.id}[/cyan] ({record.category.value})")
