"""Oracle interface and response handling.

An oracle is an external predictor asked for one bounded, stateless score:
how likely a fix is to work, or how likely a decision option is to succeed.
Implementations raise ``OracleError`` on failure. Callers go through
``predict_or_neutral``, which imposes the timeout and degrades every
failure to a neutral score instead of propagating it.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

from autoheal.core.errors import OracleError
from autoheal.core.logging import get_logger

_logger = get_logger("oracle")

NEUTRAL_SCORE = 0.5

_BARE_SCORE_RE = re.compile(r"^\s*([01](?:\.\d+)?)\s*$")


@dataclass(frozen=True)
class OracleRequest:
    """What the oracle is asked about.

    Attributes:
        kind: ``fix`` asks whether a remedy for an error will work;
            ``decision`` asks whether a decision option will succeed.
        subject: One-line summary (error message or option name).
        details: Extra labelled sections rendered into the prompt.
    """

    kind: Literal["fix", "decision"]
    subject: str
    details: dict[str, str] = field(default_factory=dict)

    def render(self) -> str:
        if self.kind == "fix":
            header = (
                "You are assessing an automated fix for a software error. "
                "Estimate the probability that the error can be fixed "
                "automatically and propose the fix."
            )
        else:
            header = (
                "You are assessing one option in a technical decision. "
                "Estimate the probability that choosing it will succeed."
            )
        sections = [header, "", f"Subject: {self.subject}"]
        for label, text in self.details.items():
            if text:
                sections.extend(["", f"{label}:", text])
        sections.extend([
            "",
            'Respond with JSON only: {"score": <0.0-1.0>, "suggestion": "<one sentence>"}',
        ])
        return "\n".join(sections)


@dataclass(frozen=True)
class OraclePrediction:
    """A score in [0, 1] plus an optional suggested fix or rationale."""

    score: float
    suggestion: str | None = None
    degraded: bool = False
    """True when the score is the neutral fallback rather than a real answer."""


@runtime_checkable
class Oracle(Protocol):
    """Anything that can turn an OracleRequest into a prediction."""

    @property
    def name(self) -> str: ...

    async def predict(self, request: OracleRequest) -> OraclePrediction: ...


def clamp_score(value: float | str) -> float:
    return max(0.0, min(1.0, float(value)))


def parse_prediction(text: str) -> OraclePrediction:
    """Parse an oracle reply into a prediction.

    Accepts a JSON object with ``score`` (and optional ``suggestion``)
    anywhere in the text, or a reply that is nothing but a number. Scores
    are clamped to [0, 1]. Numbers elsewhere in the text are never read as
    a score.

    Raises:
        OracleError: If no score can be extracted, including a JSON object
            without ``score``.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start != -1 and end > start:
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            if "score" not in data:
                raise OracleError("Oracle reply has no score field")
            try:
                score = clamp_score(data["score"])
            except (TypeError, ValueError) as e:
                raise OracleError(f"Non-numeric score in oracle reply: {data['score']!r}") from e
            suggestion = data.get("suggestion")
            return OraclePrediction(
                score=score,
                suggestion=str(suggestion) if suggestion else None,
            )

    match = _BARE_SCORE_RE.match(text)
    if match:
        return OraclePrediction(score=clamp_score(match.group(1)))
    raise OracleError(f"No score found in oracle reply ({len(text)} chars)")


async def predict_or_neutral(
    oracle: Oracle,
    request: OracleRequest,
    timeout_seconds: float,
    neutral_score: float = NEUTRAL_SCORE,
) -> OraclePrediction:
    """Ask the oracle once, bounded by ``timeout_seconds``.

    Any failure, including the timeout, yields a degraded prediction with
    ``neutral_score``. Nothing is raised.
    """
    try:
        prediction = await asyncio.wait_for(oracle.predict(request), timeout=timeout_seconds)
    except TimeoutError:
        _logger.warning(
            "oracle.timeout",
            oracle=oracle.name,
            kind=request.kind,
            timeout_seconds=timeout_seconds,
        )
        return OraclePrediction(score=neutral_score, degraded=True)
    except Exception as e:
        _logger.warning(
            "oracle.prediction_failed",
            oracle=oracle.name,
            kind=request.kind,
            error=str(e),
            error_type=type(e).__name__,
        )
        return OraclePrediction(score=neutral_score, degraded=True)
    return OraclePrediction(
        score=clamp_score(prediction.score),
        suggestion=prediction.suggestion,
        degraded=prediction.degraded,
    )
