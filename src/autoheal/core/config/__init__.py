"""Configuration models for autoheal.

All models are re-exported here so callers can import from
``autoheal.core.config`` directly.
"""

from autoheal.core.config.decision import DecisionConfig, ScoringWeights
from autoheal.core.config.engine import EngineConfig
from autoheal.core.config.healing import HealingConfig, LearningConfig, WatchConfig
from autoheal.core.config.oracle import OracleConfig
from autoheal.core.config.store import LogConfig, StoreConfig

__all__ = [
    "DecisionConfig",
    "EngineConfig",
    "HealingConfig",
    "LearningConfig",
    "LogConfig",
    "OracleConfig",
    "ScoringWeights",
    "StoreConfig",
    "WatchConfig",
]
