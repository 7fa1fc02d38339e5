"""Tests for the chat completion client."""

import json

import httpx
import pytest

from smart_intake.config import ModelConfig
from smart_intake.errors import ModelServiceError
from smart_intake.model_client import ChatCompletionClient, CircuitBreaker


def _completion(text: str) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": text}}],
        "usage": {"prompt_tokens": 11, "completion_tokens": 7},
    }


def _client(handler, **overrides) -> ChatCompletionClient:
    config = ModelConfig(base_url="http://model.test/v1", retry_backoff_seconds=0, **overrides)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatCompletionClient(config, client=http)


class TestChatCompletionClient:
    """Wire format, retries and counters."""

    @pytest.mark.asyncio
    async def test_complete(self, monkeypatch):
        """Sends both prompts and returns the assistant text."""
        monkeypatch.setenv("SMART_INTAKE_API_KEY", "sk-test")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion('{"status": "READY"}'))

        client = _client(handler)
        text = await client.complete("system here", "user here")
        await client.close()

        assert text == '{"status": "READY"}'
        assert seen["url"] == "http://model.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]
        assert seen["body"]["messages"][1]["content"] == "user here"
        assert client.stats.input_tokens == 11
        assert client.stats.output_tokens == 7

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] < 3:
                return httpx.Response(503, json={"error": "busy"})
            return httpx.Response(200, json=_completion("ok"))

        client = _client(handler, max_retries=3)
        assert await client.complete("s", "u") == "ok"
        assert calls["n"] == 3
        assert client.stats.failures == 2
        assert client.breaker.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        client = _client(handler, max_retries=2)
        with pytest.raises(ModelServiceError):
            await client.complete("s", "u")
        assert client.stats.calls == 2

    @pytest.mark.asyncio
    async def test_malformed_body_is_a_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        client = _client(handler, max_retries=1)
        with pytest.raises(ModelServiceError):
            await client.complete("s", "u")

    @pytest.mark.asyncio
    async def test_circuit_opens(self):
        """After the threshold, calls fail fast without hitting the network."""
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(500)

        client = _client(handler, max_retries=1, circuit_breaker_threshold=2)
        for _ in range(2):
            with pytest.raises(ModelServiceError):
                await client.complete("s", "u")
        assert client.breaker.is_open

        with pytest.raises(ModelServiceError, match="circuit breaker"):
            await client.complete("s", "u")
        assert calls["n"] == 2


class TestCircuitBreaker:
    """Breaker state transitions."""

    def test_half_opens_after_reset(self):
        now = {"t": 0.0}
        breaker = CircuitBreaker(threshold=1, reset_seconds=60, clock=lambda: now["t"])

        breaker.record_failure()
        assert breaker.is_open

        now["t"] = 61.0
        assert not breaker.is_open

        breaker.record_success()
        assert breaker.consecutive_failures == 0
