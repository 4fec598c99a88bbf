"""Oracle backed by a local Ollama server."""

from __future__ import annotations

from typing import Any

import httpx

from autoheal.core.config import OracleConfig
from autoheal.core.errors import OracleError
from autoheal.core.logging import get_logger
from autoheal.oracle.base import OraclePrediction, OracleRequest, parse_prediction

_logger = get_logger("oracle.ollama")


class OllamaOracle:
    """Ask a local model via Ollama's ``/api/chat`` endpoint.

    Requests use ``format: json`` and no streaming, so the whole reply is
    one JSON document.
    """

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_config(cls, config: OracleConfig) -> OllamaOracle:
        return cls(
            model=config.model,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "ollama"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout_seconds),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def predict(self, request: OracleRequest) -> OraclePrediction:
        """Send one chat request and parse the score from the reply.

        Raises:
            OracleError: On connection failure, timeout, HTTP error or bad reply.
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.render()}],
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.3},
        }
        try:
            response = await self._get_client().post("/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.ConnectError as e:
            raise OracleError(f"Cannot connect to Ollama at {self.base_url}: {e}") from e
        except httpx.TimeoutException as e:
            raise OracleError(f"Ollama timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            raise OracleError(f"Ollama returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise OracleError(f"Ollama request failed: {e}") from e

        content = (data.get("message") or {}).get("content", "")
        _logger.debug("ollama.prediction_received", kind=request.kind, response_length=len(content))
        return parse_prediction(content)
