"""Decision scorer configuration."""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, model_validator


class ScoringWeights(BaseModel):
    """Weights of the five scoring components. Must sum to 1.0."""

    context_fit: float = Field(default=0.40, ge=0.0, le=1.0)
    historical_success: float = Field(default=0.30, ge=0.0, le=1.0)
    risk_fit: float = Field(default=0.15, ge=0.0, le=1.0)
    effort_fit: float = Field(default=0.10, ge=0.0, le=1.0)
    oracle_prediction: float = Field(default=0.05, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> ScoringWeights:
        total = (
            self.context_fit
            + self.historical_success
            + self.risk_fit
            + self.effort_fit
            + self.oracle_prediction
        )
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"scoring weights must sum to 1.0, got {total:.3f}")
        return self

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (
            self.context_fit,
            self.historical_success,
            self.risk_fit,
            self.effort_fit,
            self.oracle_prediction,
        )


class DecisionConfig(BaseModel):
    """Gating and history settings for the decision scorer."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    user_input_confidence: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Overall confidence below which user input is requested.",
    )
    min_score_gap: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Top-two score gap below which user input is requested.",
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        description="Most recent decisions considered when computing historical success.",
    )
