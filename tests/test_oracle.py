"""Tests for oracle backends and response handling."""

from __future__ import annotations

import json

import httpx
import pytest

from autoheal.core.config import EngineConfig, OracleConfig, StoreConfig
from autoheal.core.errors import OracleError
from autoheal.core.factory import build_engine
from autoheal.core.models import ErrorCategory, ErrorRecord
from autoheal.healing.strategies import HealingStrategies
from autoheal.oracle import create_oracle
from autoheal.oracle.anthropic_api import AnthropicOracle
from autoheal.oracle.base import OracleRequest, parse_prediction, predict_or_neutral
from autoheal.oracle.ollama import OllamaOracle
from autoheal.oracle.static import StaticOracle
from autoheal.store.memory import InMemoryPatternStore
from tests.helpers import RaisingOracle, ReplyOracle, SlowOracle

REQUEST = OracleRequest(kind="fix", subject="Cannot find module 'left-pad'")


class TestParsePrediction:
    """Tests for extracting a score from free-form replies."""

    def test_json_inside_text(self) -> None:
        prediction = parse_prediction(
            'Sure. {"score": 0.85, "suggestion": "Add the dependency"} Hope that helps.'
        )

        assert prediction.score == 0.85
        assert prediction.suggestion == "Add the dependency"
        assert prediction.degraded is False

    def test_bare_number(self) -> None:
        assert parse_prediction("0.7").score == 0.7
        assert parse_prediction(" 1\n").score == 1.0

    @pytest.mark.parametrize(("text", "expected"), [('{"score": 1.7}', 1.0), ('{"score": -2}', 0.0)])
    def test_scores_are_clamped(self, text: str, expected: float) -> None:
        assert parse_prediction(text).score == expected

    @pytest.mark.parametrize("text", ["no idea", '{"score": "high"}', ""])
    def test_unparsable_reply_raises(self, text: str) -> None:
        with pytest.raises(OracleError):
            parse_prediction(text)

    def test_json_without_score_raises(self) -> None:
        with pytest.raises(OracleError, match="no score"):
            parse_prediction('{"suggestion": "Upgrade to version 1 of the client"}')

    @pytest.mark.parametrize(
        "text",
        ["I'd say 1", "Pin version 1 of the client", "Retry 0 times"],
    )
    def test_numbers_in_prose_are_not_scores(self, text: str) -> None:
        with pytest.raises(OracleError):
            parse_prediction(text)

    @pytest.mark.asyncio
    async def test_scoreless_reply_does_not_heal(self) -> None:
        strategies = HealingStrategies(
            InMemoryPatternStore(),
            oracle=ReplyOracle('{"suggestion": "Upgrade to version 1 of the client"}'),
        )
        record = ErrorRecord(
            category=ErrorCategory.RUNTIME,
            message="TypeError: client.send is not a function",
            context={"stack_trace": "at send (client.js:4)"},
        )

        outcome = await strategies.oracle(record)

        assert outcome.success is False
        assert outcome.confidence == 0.5


class TestPredictOrNeutral:
    """Tests for the timeout and failure fallback around oracle calls."""

    @pytest.mark.asyncio
    async def test_failure_is_neutral(self) -> None:
        oracle = RaisingOracle()

        prediction = await predict_or_neutral(oracle, REQUEST, timeout_seconds=1.0)

        assert prediction.score == 0.5
        assert prediction.degraded is True
        assert oracle.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_is_neutral(self) -> None:
        prediction = await predict_or_neutral(
            SlowOracle(delay=1.0), REQUEST, timeout_seconds=0.01, neutral_score=0.3
        )

        assert prediction.score == 0.3
        assert prediction.degraded is True

    @pytest.mark.asyncio
    async def test_answer_is_passed_through_clamped(self) -> None:
        ok = await predict_or_neutral(StaticOracle(score=0.9, suggestion="pin it"), REQUEST, 1.0)
        high = await predict_or_neutral(StaticOracle(score=1.5), REQUEST, 1.0)

        assert ok.score == 0.9
        assert ok.suggestion == "pin it"
        assert ok.degraded is False
        assert high.score == 1.0


class TestOracleRequest:
    def test_render_fix(self) -> None:
        request = OracleRequest(
            kind="fix",
            subject="boom",
            details={"Code": "import left_pad", "Stack trace": ""},
        )

        prompt = request.render()

        assert "automated fix" in prompt
        assert "Subject: boom" in prompt
        assert "Code:\nimport left_pad" in prompt
        assert "Stack trace:" not in prompt
        assert '"score"' in prompt

    def test_render_decision(self) -> None:
        assert "technical decision" in OracleRequest(kind="decision", subject="oauth").render()


class TestCreateOracle:
    def test_default_is_static(self) -> None:
        oracle = create_oracle(OracleConfig(neutral_score=0.4))

        assert isinstance(oracle, StaticOracle)
        assert oracle.score == 0.4

    def test_backends(self) -> None:
        assert isinstance(create_oracle(OracleConfig(type="ollama", model="llama3")), OllamaOracle)
        assert isinstance(create_oracle(OracleConfig(type="anthropic")), AnthropicOracle)


class TestOllamaOracle:
    """Tests for OllamaOracle against a mocked HTTP transport."""

    @staticmethod
    def _oracle(handler) -> OllamaOracle:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://ollama.test"
        )
        return OllamaOracle(model="llama3", base_url="http://ollama.test", client=client)

    @pytest.mark.asyncio
    async def test_predict(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            content = json.dumps({"score": 0.8, "suggestion": "Install left-pad"})
            return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})

        oracle = self._oracle(handler)
        try:
            prediction = await oracle.predict(REQUEST)
        finally:
            await oracle.close()

        assert prediction.score == 0.8
        assert prediction.suggestion == "Install left-pad"
        assert seen[0]["model"] == "llama3"
        assert seen[0]["stream"] is False
        assert seen[0]["format"] == "json"

    @pytest.mark.asyncio
    async def test_http_error_raises_oracle_error(self) -> None:
        oracle = self._oracle(lambda request: httpx.Response(500, text="boom"))
        try:
            with pytest.raises(OracleError, match="HTTP 500"):
                await oracle.predict(REQUEST)
        finally:
            await oracle.close()

    @pytest.mark.asyncio
    async def test_connection_error_raises_oracle_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        oracle = self._oracle(handler)
        try:
            with pytest.raises(OracleError, match="Cannot connect"):
                await oracle.predict(REQUEST)
        finally:
            await oracle.close()


class TestAnthropicOracle:
    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AUTOHEAL_TEST_KEY", raising=False)
        oracle = AnthropicOracle(api_key_env="AUTOHEAL_TEST_KEY")

        with pytest.raises(OracleError, match="AUTOHEAL_TEST_KEY"):
            await oracle.predict(REQUEST)

    @pytest.mark.asyncio
    async def test_missing_api_key_degrades_to_neutral(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AUTOHEAL_TEST_KEY", raising=False)
        oracle = AnthropicOracle(api_key_env="AUTOHEAL_TEST_KEY")

        prediction = await predict_or_neutral(oracle, REQUEST, timeout_seconds=1.0)

        assert prediction.degraded is True
        assert prediction.score == 0.5

    @pytest.mark.asyncio
    async def test_close_releases_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUTOHEAL_TEST_KEY", "sk-test")
        oracle = AnthropicOracle(api_key_env="AUTOHEAL_TEST_KEY")
        client = oracle._get_client()

        await oracle.close()

        assert client.is_closed()
        assert oracle._client is None
        await oracle.close()

    @pytest.mark.asyncio
    async def test_engine_close_closes_oracle(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUTOHEAL_TEST_KEY", "sk-test")
        engine = await build_engine(
            EngineConfig(
                store=StoreConfig(type="memory"),
                oracle=OracleConfig(type="anthropic", api_key_env="AUTOHEAL_TEST_KEY"),
            )
        )
        assert isinstance(engine.oracle, AnthropicOracle)
        client = engine.oracle._get_client()

        await engine.close()

        assert client.is_closed()
        assert engine.oracle._client is None
