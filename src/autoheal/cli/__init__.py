"""autoheal CLI.

The CLI is built with Typer. Global options (config file, logging) are
captured by the app callback; each command lives in ``commands/`` and runs
its work through ``helpers.run_with_engine``.

Package structure:
    cli/
    ├── __init__.py           # App assembly
    ├── helpers.py            # Global state, config loading, engine runner
    ├── output.py             # Rich formatting
    └── commands/
        ├── cycle.py          # cycle, watch
        ├── detect.py         # detect, report-error
        ├── decide.py         # decide, record-choice
        └── patterns.py       # patterns list/add/decay
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from autoheal import __version__

from . import helpers as helpers
from .commands import (
    cycle,
    decide,
    detect,
    patterns_app,
    record_choice,
    report_error,
    watch,
)
from .helpers import get_state
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="autoheal",
    help="Self-healing engine: detect errors, heal them with learned patterns, "
    "and score decisions",
    add_completion=False,
    no_args_is_help=True,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"autoheal v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-C",
            help="Engine config file (default: ./autoheal.yaml if present)",
            envvar="AUTOHEAL_CONFIG",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="AUTOHEAL_LOG_LEVEL",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            help="Log format: json or console",
            envvar="AUTOHEAL_LOG_FORMAT",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Write logs to this rotating file",
            envvar="AUTOHEAL_LOG_FILE",
        ),
    ] = None,
) -> None:
    """autoheal - detect, heal and learn from application errors."""
    state = get_state()
    state.config_path = config
    state.log_level = log_level
    state.log_format = log_format
    state.log_file = log_file


# =============================================================================
# Command registration
# =============================================================================

app.command()(cycle)
app.command()(watch)
app.command()(detect)
app.command(name="report-error")(report_error)
app.command()(decide)
app.command(name="record-choice")(record_choice)
app.add_typer(patterns_app)


__all__ = [
    "app",
    "main",
    "console",
]
