"""Oracle that always returns the same score."""

from __future__ import annotations

from autoheal.oracle.base import NEUTRAL_SCORE, OraclePrediction, OracleRequest


class StaticOracle:
    """Fixed-score oracle, used when no external oracle is configured.

    With the default neutral score it contributes nothing that would tip a
    decision either way.
    """

    def __init__(self, score: float = NEUTRAL_SCORE, suggestion: str | None = None) -> None:
        self.score = score
        self.suggestion = suggestion
        self.requests: list[OracleRequest] = []

    @property
    def name(self) -> str:
        return "static"

    async def predict(self, request: OracleRequest) -> OraclePrediction:
        self.requests.append(request)
        return OraclePrediction(score=self.score, suggestion=self.suggestion)
