"""Application configuration derived from the environment."""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Server and game settings."""

    model_config = ConfigDict(env_prefix="DOGSHUFFLE_")

    # Server
    debug: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Protocol
    protocol_version: str = "1.0"
    currency: str = "USD"

    # Starting state
    starting_balance: int = 1000
    default_wager: int = 50

    # Wager limits
    min_wager: int = 50
    max_wager: int = 1000
    wager_step: int = 50

    # Outcome mapping: this category always wins, the other always loses
    win_category: str = "noah"
    image_pool_sizes: dict[str, int] = {"noah": 12, "dog": 12}

    # Delay between committing a bet and resolving it (drives the spin animation)
    spin_delay_seconds: float = 2.0

    # State persistence (None keeps the record until reset, like local storage)
    state_ttl_seconds: int | None = None

    # Lock TTL for per-player spin lock; auto-expires if a process dies mid-spin
    lock_ttl_seconds: int = 30


settings = Settings()
