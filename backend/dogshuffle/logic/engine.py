"""Game engine: applies the rules to a GameState."""
from dogshuffle.errors import ErrorCode, GameError
from dogshuffle.logic.models import (
    GameState,
    RulesConfig,
    SpinOutcome,
    SpinResolution,
    SpinResult,
)
from dogshuffle.logic.rng import ProductionRNG, RNGBase
from dogshuffle.logic.rules import (
    apply_balance_change,
    can_place_bet,
    compute_payout,
    generate_outcome,
    update_wager,
)


class GameEngine:
    """
    Game logic engine.

    Implements:
    - Outcome generation with an injected RNG
    - Spin resolution as a single transaction on a copy of the state
    - Wager stepping and clamping

    The engine never mutates the state it is given and never touches storage.
    """

    def __init__(self, rng: RNGBase | None = None, rules: RulesConfig | None = None):
        self.rng = rng or ProductionRNG()
        self.rules = rules or RulesConfig.from_settings()

    def generate_outcome(self) -> SpinOutcome:
        return generate_outcome(
            self.rng, self.rules.image_pool_sizes, self.rules.win_category
        )

    def check_bet(self, state: GameState, wager: int) -> None:
        """
        Reject a bet that cannot be placed.

        Raises INVALID_WAGER for non-positive wagers and INSUFFICIENT_FUNDS
        when the balance does not cover the wager.
        """
        if can_place_bet(state.balance, wager):
            return
        if wager <= 0:
            raise GameError(
                ErrorCode.INVALID_WAGER,
                f"Wager must be positive, got {wager}.",
            )
        raise GameError(
            ErrorCode.INSUFFICIENT_FUNDS,
            f"Wager {wager} exceeds balance {state.balance}.",
        )

    def resolve_spin(
        self,
        state: GameState,
        wager: int,
        outcome: SpinOutcome | None = None,
    ) -> SpinResolution:
        """
        Resolve one spin.

        Args:
            state: Current game state (left untouched)
            wager: Amount risked on this spin
            outcome: Pre-drawn outcome; drawn from the RNG when omitted

        Returns:
            SpinResolution holding the outcome, payout and next state
        """
        self.check_bet(state, wager)

        next_state = state.model_copy()

        # 1) Commit the bet
        next_state.balance = apply_balance_change(next_state.balance, -wager)

        # 2) Pull the lever
        if outcome is None:
            outcome = self.generate_outcome()

        # 3) Settle
        payout = compute_payout(wager, outcome.result)
        next_state.balance = apply_balance_change(next_state.balance, payout)

        # 4) Stats
        if outcome.result == SpinResult.WIN:
            next_state.wins += 1
        else:
            next_state.losses += 1

        # 5) Keep the standing wager placeable against the new balance
        next_state.wager = self._clamp_wager(next_state, 0)

        return SpinResolution(
            outcome=outcome,
            wager=wager,
            payout=payout,
            previous_balance=state.balance,
            next_state=next_state,
        )

    def adjust_wager(self, state: GameState, direction: int) -> GameState:
        """Step the wager up (+1) or down (-1) by wager_step; 0 only re-clamps."""
        next_state = state.model_copy()
        next_state.wager = self._clamp_wager(state, direction * self.rules.wager_step)
        return next_state

    def _clamp_wager(self, state: GameState, delta: int) -> int:
        return update_wager(
            state.wager,
            delta,
            self.rules.min_wager,
            self.rules.max_wager,
            state.balance,
        )
