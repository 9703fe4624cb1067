"""Redis-backed persistence for player game state and spin locking."""
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from dogshuffle.config import settings
from dogshuffle.errors import ErrorCode, GameError
from dogshuffle.logic.models import GameState


logger = logging.getLogger(__name__)


@dataclass
class LockMetrics:
    """Metrics from lock acquisition for telemetry."""

    acquire_ms: float
    wait_retries: int


class StateStore:
    """Redis client for the persisted game state and the per-player spin lock."""

    # Key prefixes
    LOCK_PREFIX = "lock:player:"
    STATE_PREFIX = "state:player:"

    LOCK_TTL = settings.lock_ttl_seconds
    STATE_TTL = settings.state_ttl_seconds

    # Compare-and-delete so a process never releases a lock it no longer owns
    RELEASE_LOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_url: str | None = None):
        self._url = redis_url or settings.redis_url
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client, raise if not connected."""
        if self._client is None:
            raise RuntimeError("Redis not connected")
        return self._client

    def _state_key(self, player_id: str) -> str:
        return f"{self.STATE_PREFIX}{player_id}"

    async def load(self, player_id: str) -> GameState:
        """
        Load player state.

        Returns the default state when the record is missing, is not valid
        JSON, is not an object, fails validation, or Redis cannot be read.
        Never raises for any of these.
        """
        key = self._state_key(player_id)
        try:
            cached = await self.client.get(key)
        except RedisError as e:
            logger.error("Error loading game state for %s: %s", player_id, e)
            return GameState()

        if cached is None:
            return GameState()

        try:
            data = json.loads(cached)
        except ValueError as e:
            logger.warning("Corrupt game state for %s, using defaults: %s", player_id, e)
            return GameState()

        if not isinstance(data, dict):
            logger.warning(
                "Game state for %s is %s, not an object; using defaults",
                player_id,
                type(data).__name__,
            )
            return GameState()

        try:
            return GameState.model_validate(data, strict=True)
        except ValidationError as e:
            logger.warning(
                "Invalid game state for %s, using defaults: %d error(s)",
                player_id,
                e.error_count(),
            )
            return GameState()

    async def save(self, player_id: str, state: GameState) -> None:
        """
        Save player state, overwriting any previous record.

        Best effort: a failed write is logged and the in-memory session
        carries on with stale persistence.
        """
        key = self._state_key(player_id)
        payload = state.model_dump_json()
        try:
            if self.STATE_TTL:
                await self.client.setex(key, self.STATE_TTL, payload)
            else:
                await self.client.set(key, payload)
        except RedisError as e:
            logger.warning("Error saving game state for %s: %s", player_id, e)

    async def reset(self, player_id: str) -> GameState:
        """Clear the persisted record and return the default state."""
        try:
            await self.client.delete(self._state_key(player_id))
        except RedisError as e:
            logger.warning("Error clearing game state for %s: %s", player_id, e)
        return GameState()

    async def acquire_spin_lock(self, player_id: str) -> str | None:
        """
        Attempt to acquire the per-player spin lock with a unique token.

        Returns token string if lock acquired, None if already locked.
        """
        key = f"{self.LOCK_PREFIX}{player_id}"
        token = str(uuid.uuid4())
        acquired = await self.client.set(key, token, nx=True, ex=self.LOCK_TTL)
        return token if acquired is True else None

    async def release_spin_lock(self, player_id: str, token: str) -> bool:
        """Release the lock only if the token still matches."""
        key = f"{self.LOCK_PREFIX}{player_id}"
        result = await self.client.eval(self.RELEASE_LOCK_SCRIPT, 1, key, token)
        return result == 1

    @asynccontextmanager
    async def spin_lock(self, player_id: str):
        """
        Context manager for the spin lock.

        Raises ROUND_IN_PROGRESS if another spin holds the lock.
        Always releases on exit. Yields LockMetrics for telemetry.
        """
        t0 = time.monotonic()
        token = await self.acquire_spin_lock(player_id)
        if token is None:
            raise GameError(
                ErrorCode.ROUND_IN_PROGRESS,
                "Another spin is in progress for this player.",
            )
        metrics = LockMetrics(acquire_ms=(time.monotonic() - t0) * 1000, wait_retries=0)
        try:
            yield metrics
        finally:
            await self.release_spin_lock(player_id, token)


# Global instance
state_store = StateStore()
