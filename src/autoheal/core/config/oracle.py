"""Oracle backend configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class OracleConfig(BaseModel):
    """Which external predictor to consult and how long to wait for it."""

    type: Literal["none", "anthropic", "ollama"] = Field(
        default="none",
        description="none uses a static neutral oracle.",
    )
    model: str = Field(
        default="claude-sonnet-4-5",
        description="Model name passed to the backend.",
    )
    api_key_env: str = Field(
        default="ANTHROPIC_API_KEY",
        description="Environment variable holding the API key (anthropic only).",
    )
    base_url: str = Field(
        default="http://localhost:11434",
        description="Server URL (ollama only).",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=120.0,
        description="Per-call timeout. Timeouts degrade to neutral_score.",
    )
    max_tokens: int = Field(default=512, ge=16, le=8192)
    neutral_score: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Score used whenever the oracle fails.",
    )
