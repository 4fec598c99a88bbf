"""Pattern management commands.

Commands:
- patterns list: show learned patterns and their track records
- patterns add: register a new pattern or replace an existing one
- patterns decay: soften the confidence of patterns that went unused
"""

from __future__ import annotations

import typer

from autoheal.core.factory import Engine
from autoheal.core.models import ErrorCategory, Pattern
from autoheal.learning.confidence import ConfidenceUpdate

from ..helpers import run_with_engine
from ..output import console, create_patterns_table, print_json

patterns_app = typer.Typer(
    name="patterns",
    help="Inspect and manage learned healing patterns",
    no_args_is_help=True,
)


@patterns_app.command(name="list")
def patterns_list(
    category: ErrorCategory | None = typer.Option(
        None,
        "--category",
        "-c",
        help="Only show patterns for this category",
    ),
    min_confidence: float = typer.Option(
        0.0,
        "--min-confidence",
        "-m",
        min=0.0,
        max=1.0,
        help="Only show patterns at or above this confidence",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """List learned patterns, most confident first.

    Examples:
        autoheal patterns list
        autoheal patterns list --category build --min-confidence 0.7
    """

    async def _run(engine: Engine) -> list[Pattern]:
        if category is not None:
            return await engine.patterns.find(category, min_confidence)
        found = await engine.patterns.list_all()
        return sorted(
            (p for p in found if p.confidence_score >= min_confidence),
            key=lambda p: p.confidence_score,
            reverse=True,
        )

    patterns = run_with_engine(_run)

    if json_output:
        print_json([
            {
                "name": p.name,
                "category": p.category.value,
                "confidence_score": round(p.confidence_score, 4),
                "success_count": p.success_count,
                "failure_count": p.failure_count,
                "last_used_at": p.last_used_at.isoformat() if p.last_used_at else None,
                "fix_description": p.fix_description,
            }
            for p in patterns
        ])
        return

    if not patterns:
        console.print("[dim]No patterns found.[/dim]")
        return
    console.print(create_patterns_table(patterns))


@patterns_app.command(name="add")
def patterns_add(
    name: str = typer.Argument(..., help="Unique pattern name"),
    category: ErrorCategory = typer.Argument(..., help="Category the pattern heals"),
    fix: str = typer.Option(
        ...,
        "--fix",
        "-f",
        help="Description of the fix the pattern applies",
    ),
    confidence: float = typer.Option(
        0.5,
        "--confidence",
        min=0.0,
        max=1.0,
        help="Initial confidence score",
    ),
) -> None:
    """Register a pattern. An existing pattern with the same name is replaced.

    Examples:
        autoheal patterns add reinstall-deps dependency \\
            --fix "Delete node_modules and reinstall" --confidence 0.8
    """

    async def _run(engine: Engine) -> Pattern:
        pattern = Pattern(
            name=name,
            category=category,
            confidence_score=confidence,
            fix_description=fix,
        )
        await engine.patterns.upsert(pattern)
        return pattern

    pattern = run_with_engine(_run)
    console.print(
        f"[green]Saved pattern[/green] [cyan]{pattern.name}[/cyan] "
        f"({pattern.category.value}, confidence {pattern.confidence_score:.2f})"
    )


@patterns_app.command(name="decay")
def patterns_decay() -> None:
    """Apply idle decay to patterns unused for longer than the configured window."""

    async def _run(engine: Engine) -> list[ConfidenceUpdate]:
        return await engine.learner.decay_idle()

    updates = run_with_engine(_run)
    if not updates:
        console.print("[dim]No idle patterns to decay.[/dim]")
        return
    for u in updates:
        console.print(
            f"  [cyan]{u.pattern_name}[/cyan] {u.old_confidence:.2f} → {u.new_confidence:.2f}"
        )
    console.print(f"[green]Decayed {len(updates)} pattern(s).[/green]")
