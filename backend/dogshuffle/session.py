"""In-memory game session with persistence and change notification."""
import asyncio
import logging
from collections.abc import Callable

from dogshuffle.errors import ErrorCode, GameError
from dogshuffle.logic.engine import GameEngine
from dogshuffle.logic.models import GameState, SpinResolution
from dogshuffle.state_store import StateStore


logger = logging.getLogger(__name__)

StateListener = Callable[[GameState], None]


class GameSession:
    """
    One player's live game.

    Holds the current GameState in memory, notifies subscribers on every
    change, and writes the state back to the store after every mutation.
    Only one spin may be pending at a time.
    """

    def __init__(
        self,
        player_id: str,
        store: StateStore,
        engine: GameEngine | None = None,
        spin_delay: float = 0.0,
    ):
        self.player_id = player_id
        self.store = store
        self.engine = engine or GameEngine()
        self.spin_delay = spin_delay
        self._state = GameState()
        self._listeners: list[StateListener] = []
        self._spinning = False

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def spinning(self) -> bool:
        return self._spinning

    def get(self) -> GameState:
        return self._state

    def set(self, state: GameState) -> None:
        """Replace the in-memory state and notify subscribers."""
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(
                    "State listener failed for %s: %s", self.player_id, e
                )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self) -> GameState:
        """Pull the persisted state into memory, re-clamping the stored wager."""
        state = self.engine.adjust_wager(await self.store.load(self.player_id), 0)
        self.set(state)
        return state

    async def spin(self, wager: int | None = None) -> SpinResolution:
        """
        Place a bet and resolve it after the spin delay.

        Raises ROUND_IN_PROGRESS if a spin is already pending, and the
        engine's INVALID_WAGER / INSUFFICIENT_FUNDS before any delay. If the
        delay is cancelled nothing is applied or saved.
        """
        if self._spinning:
            raise GameError(
                ErrorCode.ROUND_IN_PROGRESS,
                "Another spin is in progress for this player.",
            )
        self._spinning = True
        try:
            stake = self._state.wager if wager is None else wager
            self.engine.check_bet(self._state, stake)

            if self.spin_delay > 0:
                await asyncio.sleep(self.spin_delay)

            # Resolve against the state as it is now, in one step
            resolution = self.engine.resolve_spin(self._state, stake)
            self.set(resolution.next_state)
            await self.store.save(self.player_id, resolution.next_state)
            return resolution
        finally:
            self._spinning = False

    async def update_wager(self, direction: int) -> GameState:
        """Step the standing wager up or down and persist it."""
        state = self.engine.adjust_wager(self._state, direction)
        self.set(state)
        await self.store.save(self.player_id, state)
        return state

    async def reset(self) -> GameState:
        """Clear persisted state and start over with defaults."""
        state = await self.store.reset(self.player_id)
        self.set(state)
        return state
