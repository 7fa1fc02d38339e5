"""Language model client.

Speaks the OpenAI-compatible ``/chat/completions`` format over httpx with
retries, a consecutive-failure circuit breaker, and usage counters.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .config import ModelConfig
from .errors import ModelServiceError

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """Anything that turns a prompt pair into completion text."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str: ...


@dataclass
class ModelStats:
    """Usage counters for the model client."""

    calls: int = 0
    failures: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_latency_ms: float = 0.0

    @property
    def average_latency_ms(self) -> float:
        successes = self.calls - self.failures
        return self.total_latency_ms / successes if successes > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "average_latency_ms": round(self.average_latency_ms, 1),
        }


class CircuitBreaker:
    """Opens after N consecutive failures, half-opens after a cool-down."""

    def __init__(self, threshold: int = 5, reset_seconds: float = 60.0, clock=time.monotonic):
        self.threshold = threshold
        self.reset_seconds = reset_seconds
        self._clock = clock
        self.consecutive_failures = 0
        self._opened_at: float | None = None

    @property
    def is_open(self) -> bool:
        if self._opened_at is None:
            return False
        if self._clock() - self._opened_at >= self.reset_seconds:
            # Half-open: let the next call through
            return False
        return True

    def record_success(self) -> None:
        self.consecutive_failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self.consecutive_failures += 1
        if self.consecutive_failures >= self.threshold:
            if self._opened_at is None:
                logger.warning(f"Model circuit breaker opened after {self.consecutive_failures} failures")
            self._opened_at = self._clock()


class ChatCompletionClient:
    """Client for an OpenAI-compatible chat completion endpoint."""

    def __init__(
        self,
        config: ModelConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or ModelConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout_seconds))
        self.breaker = CircuitBreaker(
            self.config.circuit_breaker_threshold, self.config.circuit_breaker_reset_seconds
        )
        self.stats = ModelStats()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        key = self.config.api_key()
        if key:
            headers["Authorization"] = f"Bearer {key}"
        return headers

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one completion request.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The user's turn

        Returns:
            The assistant message text

        Raises:
            ModelServiceError: Circuit open, or every attempt failed
        """
        if self.breaker.is_open:
            raise ModelServiceError("Model service circuit breaker is open")

        payload = {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        attempts = max(self.config.max_retries, 1)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            self.stats.calls += 1
            started = time.perf_counter()
            try:
                response = await self.client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=self._headers()
                )
                response.raise_for_status()
                text = self._extract_text(response.json())
            except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError) as e:
                last_error = e
                self.stats.failures += 1
                self.breaker.record_failure()
                logger.warning(f"Model call attempt {attempt}/{attempts} failed: {e}")
                if self.breaker.is_open or attempt == attempts:
                    break
                await asyncio.sleep(self.config.retry_backoff_seconds * (2 ** (attempt - 1)))
                continue

            self.stats.total_latency_ms += (time.perf_counter() - started) * 1000
            self.breaker.record_success()
            return text

        raise ModelServiceError(f"Model call failed after {attempt} attempt(s): {last_error}")

    def _extract_text(self, body: dict[str, Any]) -> str:
        usage = body.get("usage") or {}
        self.stats.input_tokens += int(usage.get("prompt_tokens", 0) or 0)
        self.stats.output_tokens += int(usage.get("completion_tokens", 0) or 0)
        content = body["choices"][0]["message"]["content"]
        if not isinstance(content, str):
            raise ValueError("completion content is not text")
        return content
