"""Pytest fixtures for backend tests."""
from collections.abc import Sequence
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from dogshuffle.config import settings
from dogshuffle.logic.rng import RNGBase
from dogshuffle.main import app
from dogshuffle.state_store import StateStore
from dogshuffle.telemetry import telemetry_service


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (long seeded simulations)"
    )


class MockRedis:
    """Mock Redis client for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._last_set_ex: int | None = None

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(
        self, key: str, value: str, nx: bool = False, ex: int | None = None
    ) -> bool | None:
        if nx and key in self._store:
            return None
        self._store[key] = value
        self._last_set_ex = ex
        return True

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._store[key] = value
        self._last_set_ex = ttl
        return True

    async def delete(self, key: str) -> int:
        if key in self._store:
            del self._store[key]
            return 1
        return 0

    async def eval(self, script: str, numkeys: int, *args) -> int:
        """Compare-and-delete, as done by the lock release script."""
        key = args[0]
        expected_value = args[1]
        if self._store.get(key) == expected_value:
            del self._store[key]
            return 1
        return 0

    async def close(self) -> None:
        pass

    def clear(self) -> None:
        self._store.clear()
        self._last_set_ex = None


class FailingRedis(MockRedis):
    """Mock Redis whose state reads and writes fail (server gone away)."""

    async def get(self, key: str) -> str | None:
        raise RedisConnectionError("Connection refused")

    async def set(
        self, key: str, value: str, nx: bool = False, ex: int | None = None
    ) -> bool | None:
        if nx:
            return await super().set(key, value, nx=nx, ex=ex)
        raise RedisConnectionError("Connection refused")

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        raise RedisConnectionError("Connection refused")

    async def delete(self, key: str) -> int:
        if key.startswith(StateStore.LOCK_PREFIX):
            return await super().delete(key)
        raise RedisConnectionError("Connection refused")


class ScriptedRNG(RNGBase):
    """RNG that replays fixed values, cycling when exhausted."""

    def __init__(self, floats: Sequence[float], ints: Sequence[int] = (1,)):
        self._floats = list(floats)
        self._ints = list(ints)
        self._fi = 0
        self._ii = 0
        self.randint_calls: list[tuple[int, int]] = []

    def random(self) -> float:
        value = self._floats[self._fi % len(self._floats)]
        self._fi += 1
        return value

    def randint(self, a: int, b: int) -> int:
        self.randint_calls.append((a, b))
        value = self._ints[self._ii % len(self._ints)]
        self._ii += 1
        return min(max(value, a), b)


class RecordingTelemetrySink:
    """Telemetry sink that keeps every event."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self.events.append((event_name, data))

    def get_events(self, event_name: str) -> list[dict[str, Any]]:
        return [data for name, data in self.events if name == event_name]


@pytest.fixture
def mock_redis() -> MockRedis:
    """Create a fresh mock Redis for each test."""
    return MockRedis()


@pytest.fixture
def store_with_mock(mock_redis: MockRedis) -> Generator[StateStore, None, None]:
    """Create StateStore with mock client."""
    store = StateStore()
    store._client = mock_redis
    yield store
    mock_redis.clear()


@pytest.fixture
def failing_store() -> StateStore:
    """StateStore whose Redis rejects every state read and write."""
    store = StateStore()
    store._client = FailingRedis()
    return store


@pytest.fixture
def no_spin_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Resolve spins immediately."""
    monkeypatch.setattr(settings, "spin_delay_seconds", 0.0)


@pytest.fixture
def client_with_mock_redis(
    mock_redis: MockRedis, no_spin_delay: None
) -> Generator[TestClient, None, None]:
    """Create TestClient with mocked Redis."""
    from dogshuffle.state_store import state_store

    original_client = state_store._client
    state_store._client = mock_redis

    with TestClient(app) as client:
        yield client

    state_store._client = original_client
    mock_redis.clear()


@pytest.fixture
def recording_telemetry() -> Generator[RecordingTelemetrySink, None, None]:
    """Swap the global telemetry sink for a recording one."""
    original_sink = telemetry_service._sink
    sink = RecordingTelemetrySink()
    telemetry_service.set_sink(sink)
    yield sink
    telemetry_service.set_sink(original_sink)
