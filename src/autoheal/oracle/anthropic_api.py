"""Oracle backed by the Anthropic Messages API."""

from __future__ import annotations

import os

import anthropic

from autoheal.core.config import OracleConfig
from autoheal.core.errors import OracleError
from autoheal.core.logging import get_logger
from autoheal.oracle.base import OraclePrediction, OracleRequest, parse_prediction

_logger = get_logger("oracle.anthropic")


class AnthropicOracle:
    """Ask a Claude model for a score via the official SDK.

    The client is created lazily so a missing API key only fails when the
    oracle is actually consulted.
    """

    def __init__(
        self,
        model: str = "claude-sonnet-4-5",
        api_key_env: str = "ANTHROPIC_API_KEY",
        max_tokens: int = 512,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.model = model
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self._api_key = os.environ.get(api_key_env)
        self._client: anthropic.AsyncAnthropic | None = None

    @classmethod
    def from_config(cls, config: OracleConfig) -> AnthropicOracle:
        return cls(
            model=config.model,
            api_key_env=config.api_key_env,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "anthropic"

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self._api_key:
                raise OracleError(
                    f"API key not found in environment variable: {self.api_key_env}"
                )
            # No SDK retries; the ladder's next attempt is the retry
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        """Close the async client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def predict(self, request: OracleRequest) -> OraclePrediction:
        """Send one prompt and parse the score from the reply.

        Raises:
            OracleError: On any API failure or unparsable reply.
        """
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.3,
                messages=[{"role": "user", "content": request.render()}],
            )
        except anthropic.RateLimitError as e:
            raise OracleError(f"Rate limited: {e}") from e
        except anthropic.AuthenticationError as e:
            raise OracleError(f"Authentication failed: {e}") from e
        except anthropic.APITimeoutError as e:
            raise OracleError(f"API timeout after {self.timeout_seconds}s: {e}") from e
        except anthropic.APIConnectionError as e:
            raise OracleError(f"Connection error: {e}") from e
        except anthropic.APIStatusError as e:
            raise OracleError(f"API error {e.status_code}: {e}") from e

        text = "".join(block.text for block in response.content if hasattr(block, "text"))
        _logger.debug(
            "anthropic.prediction_received",
            kind=request.kind,
            response_length=len(text),
        )
        return parse_prediction(text)
