"""Shared fixtures for smart intake tests."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from smart_intake.config import IntakeConfig
from smart_intake.orchestrator import IntakeOrchestrator


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 2, 20, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def model_reply(status: str = "READY", intent: str = "task", draft: dict | None = None, **extra) -> str:
    """Render a model response the way the model is asked to write it."""
    body = {
        "status": status,
        "intentType": intent,
        "confidence": extra.pop("confidence", 0.85),
        "reasoning": extra.pop("reasoning", "Looks like a " + intent),
        "draft": draft or {},
    }
    body.update(extra)
    return json.dumps(body)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def model() -> AsyncMock:
    fake = AsyncMock()
    fake.complete.return_value = model_reply(draft={"title": "Something", "lifeArea": "career"})
    return fake


@pytest.fixture
def orchestrator(model: AsyncMock, clock: FakeClock) -> IntakeOrchestrator:
    return IntakeOrchestrator(model, config=IntakeConfig(), clock=clock)
