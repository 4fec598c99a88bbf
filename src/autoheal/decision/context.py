"""Decision context and request parsing.

``DecisionContext`` carries the caller's constraints and preferences.
``DecisionRequest`` is the pydantic model behind ``autoheal decide``: it
validates a YAML file of options plus context and converts it to the
plain dataclasses the scorer works on.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from autoheal.core.errors import ConfigurationError
from autoheal.core.models import DecisionOption, RiskLevel

TimeConstraint = Literal["urgent", "normal", "flexible"]
Approach = Literal["conservative", "balanced", "innovative"]
SpeedVsQuality = Literal["speed", "balanced", "quality"]


@dataclass(frozen=True)
class DecisionContext:
    """What the decision is about and what the caller prefers.

    Unset preferences contribute nothing to context fit; unset tolerance
    and time constraint fall back to ``medium`` and ``normal`` in the
    lookup tables.
    """

    scenario: str
    user_goal: str = ""
    time: TimeConstraint | None = None
    budget: RiskLevel | None = None
    complexity: Literal["simple", "moderate", "complex"] | None = None
    preferred_approach: Approach | None = None
    risk_tolerance: RiskLevel | None = None
    speed_vs_quality: SpeedVsQuality | None = None

    @property
    def scenario_category(self) -> str:
        return categorize_scenario(self.scenario)


_SCENARIO_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("auth",), "authentication"),
    (("database", "data"), "data_management"),
    (("ui", "design"), "user_interface"),
    (("api",), "api_integration"),
    (("performance",), "optimization"),
)


def categorize_scenario(scenario: str) -> str:
    """Map free-text scenario to the category used for historical lookups.

    First matching keyword group wins, so "auth api" is ``authentication``.
    """
    lower = scenario.lower()
    for keywords, category in _SCENARIO_KEYWORDS:
        if any(k in lower for k in keywords):
            return category
    return "general"


class OptionModel(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    effort: RiskLevel = RiskLevel.MEDIUM
    risk: RiskLevel = RiskLevel.MEDIUM
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_option(self) -> DecisionOption:
        return DecisionOption(
            id=self.id,
            name=self.name,
            description=self.description,
            pros=list(self.pros),
            cons=list(self.cons),
            effort=self.effort,
            risk=self.risk,
            metadata=dict(self.metadata),
        )


class ContextModel(BaseModel):
    scenario: str = Field(min_length=1)
    user_goal: str = ""
    time: TimeConstraint | None = None
    budget: RiskLevel | None = None
    complexity: Literal["simple", "moderate", "complex"] | None = None
    preferred_approach: Approach | None = None
    risk_tolerance: RiskLevel | None = None
    speed_vs_quality: SpeedVsQuality | None = None

    def to_context(self) -> DecisionContext:
        return DecisionContext(**self.model_dump())


class DecisionRequest(BaseModel):
    """A decision to score, as written in a YAML file.

    Example:
        context:
          scenario: Add auth to the admin API
          user_goal: Ship this week
          time: urgent
          risk_tolerance: low
        options:
          - id: session
            effort: low
            risk: low
          - id: oauth
            effort: high
            risk: medium
    """

    context: ContextModel
    options: list[OptionModel] = Field(min_length=1)

    @classmethod
    def from_yaml(cls, path: Path) -> DecisionRequest:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
            return cls.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise ConfigurationError(f"Invalid decision file {path}: {e}") from e

    def to_options(self) -> list[DecisionOption]:
        return [o.to_option() for o in self.options]
