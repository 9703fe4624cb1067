"""Game state and outcome models."""
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dogshuffle.config import Settings, settings


class Category(str, Enum):
    """What the lever landed on."""
    NOAH = "noah"
    DOG = "dog"


class SpinResult(str, Enum):
    """Win/loss result derived from the category."""
    WIN = "win"
    LOSS = "loss"


class GameState(BaseModel):
    """
    Persisted per-player session record.

    Only these four fields are stored. Unknown keys in a stored record are
    ignored and missing keys fall back to their defaults. Stored values are
    validated strictly: anything but a plain integer rejects the record.
    """
    model_config = ConfigDict(extra="ignore")

    balance: int = Field(default=settings.starting_balance, ge=0)
    wager: int = Field(default=settings.default_wager, ge=1)
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)

    @property
    def games_played(self) -> int:
        return self.wins + self.losses


class SpinOutcome(BaseModel):
    """Result of one lever pull. Not persisted."""
    category: Category
    result: SpinResult
    # 1-based index into the category's image pool; resolved to an asset by the client
    image_ref: int = Field(ge=1)


class SpinResolution(BaseModel):
    """Everything a completed spin produced."""
    outcome: SpinOutcome
    wager: int
    payout: int
    previous_balance: int
    next_state: GameState


class RulesConfig(BaseModel):
    """Rule parameters the engine runs with."""
    min_wager: int = 50
    max_wager: int = 1000
    wager_step: int = 50
    win_category: Category = Category.NOAH
    image_pool_sizes: dict[Category, int] = Field(
        default_factory=lambda: {Category.NOAH: 12, Category.DOG: 12}
    )

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "RulesConfig":
        source = source or settings
        return cls(
            min_wager=source.min_wager,
            max_wager=source.max_wager,
            wager_step=source.wager_step,
            win_category=Category(source.win_category),
            image_pool_sizes={
                Category(name): size for name, size in source.image_pool_sizes.items()
            },
        )

    @field_validator("image_pool_sizes")
    @classmethod
    def _every_category_has_images(cls, pools: dict[Category, int]) -> dict[Category, int]:
        missing = [c.value for c in Category if c not in pools]
        if missing:
            raise ValueError(f"image pool missing for: {', '.join(missing)}")
        empty = [c.value for c, size in pools.items() if size < 1]
        if empty:
            raise ValueError(f"image pool must hold at least one image: {', '.join(empty)}")
        return pools
