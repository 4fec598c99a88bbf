"""Healing, learning and watch configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from autoheal.core.models import ErrorCategory


class HealingConfig(BaseModel):
    """Bounds for the strategy ladder and the per-cycle batch."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=3,
        description="Attempts per error before escalation. Attempt n uses the "
        "n-th strategy: pattern, deterministic, oracle.",
    )
    confidence_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a successful attempt to resolve an error, "
        "and minimum pattern confidence for the pattern strategy to pick it.",
    )
    max_errors: int = Field(
        default=10,
        ge=1,
        description="Maximum errors processed per cycle, after prioritization.",
    )
    auto_apply: bool = Field(
        default=True,
        description="Apply fixes immediately. When false, attempts are recorded as pending.",
    )
    target_categories: list[ErrorCategory] | None = Field(
        default=None,
        description="Restrict cycles to these categories. None processes all.",
    )


class LearningConfig(BaseModel):
    """Parameters of the confidence update rule and idle decay."""

    min_samples: int = Field(
        default=5,
        ge=1,
        description="Samples (success + failure) required before confidence is recomputed.",
    )
    learning_rate: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Weight of the observed success rate. "
        "new = rate * learning_rate + old * (1 - learning_rate).",
    )
    hysteresis: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Updates whose magnitude does not exceed this are discarded.",
    )
    decay_rate_per_month: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of confidence lost per idle month.",
    )
    idle_days_before_decay: int = Field(
        default=30,
        ge=1,
        description="Patterns unused for fewer days than this are not decayed.",
    )


class WatchConfig(BaseModel):
    """Periodic cycle scheduling used by ``autoheal watch``."""

    interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Delay between the end of one cycle and the start of the next.",
    )
