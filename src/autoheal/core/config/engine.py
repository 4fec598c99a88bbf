"""Top-level engine configuration."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from autoheal.core.config.decision import DecisionConfig
from autoheal.core.config.healing import HealingConfig, LearningConfig, WatchConfig
from autoheal.core.config.oracle import OracleConfig
from autoheal.core.config.store import LogConfig, StoreConfig
from autoheal.core.errors import ConfigurationError


class EngineConfig(BaseModel):
    """Complete configuration, usually loaded from ``autoheal.yaml``."""

    healing: HealingConfig = Field(default_factory=HealingConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LogConfig = Field(default_factory=LogConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> EngineConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid.
        """
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> EngineConfig:
        """Load configuration from a YAML string. An empty document yields defaults."""
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
