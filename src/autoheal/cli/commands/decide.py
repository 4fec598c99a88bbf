"""Decision commands: score a set of options and record the outcome."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from autoheal.core.errors import ConfigurationError
from autoheal.core.factory import Engine
from autoheal.decision.context import DecisionRequest
from autoheal.decision.scorer import DecisionResult

from ..helpers import run_with_engine
from ..output import console, create_decision_table, print_json


def decide(
    options_file: Path = typer.Argument(
        ...,
        help="YAML file with a 'context' mapping and a list of 'options'",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    no_log: bool = typer.Option(
        False,
        "--no-log",
        help="Do not write the decision to the decision log",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Rank options for a decision and say whether a human should choose.

    The printed decision id can be passed to ``record-choice`` later so the
    outcome feeds historical success for the same kind of scenario.

    Examples:
        autoheal decide options.yaml
        autoheal decide options.yaml --json
    """
    try:
        request = DecisionRequest.from_yaml(options_file)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    async def _run(engine: Engine) -> DecisionResult:
        return await engine.scorer.score(
            request.to_options(),
            request.context.to_context(),
            log_decision=not no_log,
        )

    result = run_with_engine(_run)

    if json_output:
        print_json(result.to_dict())
        return

    console.print(create_decision_table(result))
    best = result.best
    body = (
        f"[bold]{best.option.label}[/bold] "
        f"(score {best.overall_score:.3f}, confidence {result.overall_confidence:.0%})\n"
        f"{result.reasoning}"
    )
    if result.requires_user_input:
        body += f"\n\n[yellow]User input needed:[/yellow] {result.user_input_reason}"
    if result.oracle_degraded:
        body += f"\n[dim]Oracle unavailable for: {', '.join(result.oracle_degraded)}[/dim]"
    console.print(Panel(
        body,
        title="Recommendation",
        border_style="yellow" if result.requires_user_input else "green",
    ))
    if result.decision_id:
        console.print(f"[dim]Decision id: {result.decision_id}[/dim]")


def record_choice(
    decision_id: str = typer.Argument(..., help="Decision id printed by 'decide'"),
    chosen_option: str = typer.Argument(..., help="Id of the option that was chosen"),
    success: bool = typer.Option(
        True,
        "--success/--failure",
        help="Whether the chosen option worked out",
    ),
    feedback: str | None = typer.Option(
        None,
        "--feedback",
        "-f",
        help="Free-text notes about the outcome",
    ),
) -> None:
    """Record which option was chosen for a logged decision and how it went.

    Examples:
        autoheal record-choice dec-1a2b3c4d5e6f session --success
        autoheal record-choice dec-1a2b3c4d5e6f oauth --failure -f "too slow"
    """

    async def _run(engine: Engine) -> bool:
        return await engine.scorer.record_choice(decision_id, chosen_option, success, feedback)

    if not run_with_engine(_run):
        console.print(f"[red]No decision found with id '{decision_id}'[/red]")
        raise typer.Exit(1)
    outcome = "[green]success[/green]" if success else "[red]failure[/red]"
    console.print(f"Recorded [cyan]{chosen_option}[/cyan] for {decision_id}: {outcome}")
