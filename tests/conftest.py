"""Pytest fixtures for ask-credits-bot tests."""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from ask_credits_bot.config import Settings
from ask_credits_bot.credits import CreditLedger, InMemoryCreditStore
from ask_credits_bot.session import SessionAffinityCache

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        "HOST": "127.0.0.1",
        "PORT": "3000",
        "LOG_LEVEL": "DEBUG",
        "CREDIT_DB_PATH": "",
        "OPENAI_API_KEY": "",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def settings(mock_env_vars) -> Settings:
    """Create Settings instance with mocked environment."""
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> SessionAffinityCache:
    """Session cache with a one-hour TTL on a fake clock."""
    return SessionAffinityCache(ttl=3600, sweep_interval=1800, timer=clock)


@pytest.fixture
def store() -> InMemoryCreditStore:
    return InMemoryCreditStore()


@pytest.fixture
def ledger(store) -> CreditLedger:
    return CreditLedger(store, bonus_amount=250, timeout=1.0, clock=lambda: FIXED_NOW)


@pytest.fixture
def answerer():
    """Mock completion client answering every question the same way."""
    client = AsyncMock()
    client.answer = AsyncMock(return_value="The answer is 42.")
    client.close = AsyncMock()
    return client
