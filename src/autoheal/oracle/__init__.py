"""External oracles consulted for bounded, stateless scores."""

from autoheal.core.config import OracleConfig
from autoheal.oracle.base import (
    NEUTRAL_SCORE,
    Oracle,
    OraclePrediction,
    OracleRequest,
    parse_prediction,
    predict_or_neutral,
)
from autoheal.oracle.static import StaticOracle


def create_oracle(config: OracleConfig) -> Oracle:
    """Build the oracle named by ``config.type``.

    Backends are imported lazily so their SDKs load only when used.
    """
    if config.type == "anthropic":
        from autoheal.oracle.anthropic_api import AnthropicOracle

        return AnthropicOracle.from_config(config)
    if config.type == "ollama":
        from autoheal.oracle.ollama import OllamaOracle

        return OllamaOracle.from_config(config)
    return StaticOracle(score=config.neutral_score)


__all__ = [
    "NEUTRAL_SCORE",
    "Oracle",
    "OraclePrediction",
    "OracleRequest",
    "StaticOracle",
    "create_oracle",
    "parse_prediction",
    "predict_or_neutral",
]
