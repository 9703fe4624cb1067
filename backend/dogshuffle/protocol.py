"""Request and response models for the game API."""
from enum import Enum

from pydantic import BaseModel, Field

from dogshuffle.config import settings
from dogshuffle.logic.models import Category, GameState, SpinResult
from dogshuffle.logic.rules import win_rate


class WagerDirection(str, Enum):
    """Wager button pressed."""

    INCREASE = "increase"
    DECREASE = "decrease"

    @property
    def step(self) -> int:
        return 1 if self == WagerDirection.INCREASE else -1


# === Request Models ===


class SpinRequest(BaseModel):
    """POST /spin request body."""

    wager: int | None = Field(
        default=None, description="Amount to risk; the standing wager when omitted"
    )


class WagerRequest(BaseModel):
    """POST /wager request body."""

    direction: WagerDirection


# === Response Models ===


class Configuration(BaseModel):
    """Configuration object in /init response."""

    currency: str = settings.currency
    startingBalance: int = settings.starting_balance
    minWager: int = settings.min_wager
    maxWager: int = settings.max_wager
    wagerStep: int = settings.wager_step
    winCategory: str = settings.win_category
    imagePoolSizes: dict[str, int] = settings.image_pool_sizes
    spinDelayMs: int = int(settings.spin_delay_seconds * 1000)


class PlayerState(BaseModel):
    """Player state as shown to the client."""

    balance: int
    wager: int
    wins: int
    losses: int
    winRate: float

    @classmethod
    def from_game_state(cls, state: GameState) -> "PlayerState":
        return cls(
            balance=state.balance,
            wager=state.wager,
            wins=state.wins,
            losses=state.losses,
            winRate=win_rate(state.wins, state.losses),
        )


class InitResponse(BaseModel):
    """GET /init response."""

    protocolVersion: str = settings.protocol_version
    configuration: Configuration = Field(default_factory=Configuration)
    state: PlayerState


class StateResponse(BaseModel):
    """GET /state, POST /wager and POST /reset response."""

    protocolVersion: str = settings.protocol_version
    state: PlayerState


class Outcome(BaseModel):
    """Outcome object in spin response."""

    category: Category
    result: SpinResult
    imageRef: int


class SpinResponse(BaseModel):
    """POST /spin response."""

    protocolVersion: str = settings.protocol_version
    roundId: str
    wager: int
    payout: int
    outcome: Outcome
    state: PlayerState
