"""Store and logging configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Backend for error records, patterns and the decision log."""

    type: Literal["memory", "sqlite"] = Field(default="sqlite")
    path: Path = Field(
        default=Path(".autoheal/autoheal.db"),
        description="SQLite database file (sqlite only).",
    )


class LogConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console"] = "console"
    file_path: Path | None = Field(
        default=None,
        description="Write JSON lines to this rotating file instead of stderr.",
    )
