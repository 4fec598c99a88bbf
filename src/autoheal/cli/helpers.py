"""Shared state and helpers for CLI commands.

Global options (config path, log overrides) are captured by the app
callback into ``_cli_state``. Commands then call ``run_with_engine`` which
loads the config, configures logging once, builds an engine and runs the
command's coroutine against it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import typer

from autoheal.core.config import EngineConfig
from autoheal.core.errors import ConfigurationError, StoreError
from autoheal.core.factory import Engine, build_engine
from autoheal.core.logging import configure_logging

from .output import console

T = TypeVar("T")

DEFAULT_CONFIG_FILE = Path("autoheal.yaml")


@dataclass
class CliState:
    config_path: Path | None = None
    log_level: str | None = None
    log_format: str | None = None
    log_file: Path | None = None
    logging_configured: bool = False


_cli_state = CliState()


def get_state() -> CliState:
    return _cli_state


def reset_cli_state() -> None:
    """Reset global CLI state (primarily for testing)."""
    global _cli_state
    _cli_state = CliState()


def load_config() -> EngineConfig:
    """Load the engine config named by ``--config``.

    Without ``--config`` an ``autoheal.yaml`` in the working directory is
    used when present; otherwise defaults apply.

    Raises:
        typer.Exit: If the config file is missing or invalid.
    """
    path = _cli_state.config_path
    if path is None:
        if not DEFAULT_CONFIG_FILE.exists():
            return EngineConfig()
        path = DEFAULT_CONFIG_FILE
    try:
        return EngineConfig.from_yaml(path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def configure_global_logging(config: EngineConfig) -> None:
    """Configure logging from config, with CLI options taking precedence.

    Only configures once per process.
    """
    if _cli_state.logging_configured:
        return
    level = (_cli_state.log_level or config.logging.level).upper()
    fmt = _cli_state.log_format or config.logging.format
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        console.print(f"[red]Logging configuration error:[/red] unknown level {level}")
        raise typer.Exit(1)
    if fmt not in ("json", "console"):
        console.print(f"[red]Logging configuration error:[/red] unknown format {fmt}")
        raise typer.Exit(1)
    configure_logging(
        level=level,  # type: ignore[arg-type]
        format=fmt,  # type: ignore[arg-type]
        file_path=_cli_state.log_file or config.logging.file_path,
    )
    _cli_state.logging_configured = True


def run_with_engine(command: Callable[[Engine], Awaitable[T]]) -> T:
    """Build an engine from the active config and run ``command`` on it.

    Configuration and store failures are reported and exit with status 1.
    """
    config = load_config()
    configure_global_logging(config)

    async def _main() -> T:
        engine = await build_engine(config)
        try:
            return await command(engine)
        finally:
            await engine.close()

    try:
        return asyncio.run(_main())
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    except StoreError as e:
        console.print(f"[red]Store error:[/red] {e}")
        raise typer.Exit(1) from None
