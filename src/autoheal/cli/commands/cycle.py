"""Healing cycle commands: ``cycle`` runs once, ``watch`` runs on an interval."""

from __future__ import annotations

import asyncio

import typer

from autoheal.core.factory import Engine
from autoheal.core.logging import get_logger
from autoheal.core.models import ErrorCategory
from autoheal.healing.orchestrator import CycleReport

from ..helpers import run_with_engine
from ..output import console, print_cycle_report, print_json

_logger = get_logger("cli.cycle")


def cycle(
    category: list[ErrorCategory] | None = typer.Option(
        None,
        "--category",
        "-c",
        help="Only heal this category. Repeat for several.",
    ),
    max_errors: int | None = typer.Option(
        None,
        "--max-errors",
        "-n",
        min=1,
        help="Maximum errors to process this cycle (default from config)",
    ),
    no_auto_apply: bool = typer.Option(
        False,
        "--no-auto-apply",
        help="Record fixes as pending instead of applying them",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output the cycle report as JSON",
    ),
) -> None:
    """Run one detect, heal and learn cycle.

    Exits with status 2 when errors were escalated and nothing healed.

    Examples:
        autoheal cycle
        autoheal cycle --category build --category dependency
        autoheal cycle --no-auto-apply --json
    """

    async def _run(engine: Engine) -> CycleReport:
        return await engine.orchestrator.run_cycle(
            max_errors=max_errors,
            target_categories=category or None,
            auto_apply=False if no_auto_apply else None,
        )

    report = run_with_engine(_run)
    if json_output:
        print_json(report.to_dict())
    else:
        print_cycle_report(report)
    if not report.success:
        raise typer.Exit(2)


def watch(
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.0,
        help="Seconds between cycles (default from config, 300)",
    ),
    cycles: int | None = typer.Option(
        None,
        "--cycles",
        min=1,
        help="Stop after this many cycles. Runs until interrupted by default.",
    ),
    max_errors: int | None = typer.Option(
        None,
        "--max-errors",
        "-n",
        min=1,
        help="Maximum errors to process per cycle",
    ),
) -> None:
    """Run healing cycles periodically until interrupted.

    Examples:
        autoheal watch
        autoheal watch --interval 60
        autoheal watch --cycles 3 --interval 0
    """

    async def _run(engine: Engine) -> int:
        delay = interval if interval is not None else engine.config.watch.interval_seconds
        completed = 0
        while cycles is None or completed < cycles:
            report = await engine.orchestrator.run_cycle(max_errors=max_errors)
            completed += 1
            print_cycle_report(report)
            if cycles is not None and completed >= cycles:
                break
            _logger.debug("watch.sleeping", seconds=delay, completed=completed)
            await asyncio.sleep(delay)
        return completed

    try:
        completed = run_with_engine(_run)
    except KeyboardInterrupt:
        console.print("\n[yellow]Watch interrupted.[/yellow]")
        return
    console.print(f"[dim]Completed {completed} cycle(s).[/dim]")
