"""Pure game rules: outcome generation, payouts, bet checks and clamping.

Every function here is total over its declared inputs and free of side
effects apart from drawing from the RNG it is handed.
"""
from collections.abc import Mapping

from dogshuffle.logic.models import Category, SpinOutcome, SpinResult
from dogshuffle.logic.rng import RNGBase


def result_for_category(category: Category, win_category: Category) -> SpinResult:
    """Fixed mapping: the winning category always wins, the other always loses."""
    return SpinResult.WIN if category == win_category else SpinResult.LOSS


def generate_outcome(
    rng: RNGBase,
    pool_sizes: Mapping[Category, int],
    win_category: Category = Category.NOAH,
) -> SpinOutcome:
    """
    Pull the lever once.

    Category is a fair coin flip, independent of history. The image index is
    drawn uniformly from the pool of the chosen category (pools may differ
    in size).
    """
    category = Category.NOAH if rng.random() < 0.5 else Category.DOG
    image_ref = rng.randint(1, pool_sizes[category])
    return SpinOutcome(
        category=category,
        result=result_for_category(category, win_category),
        image_ref=image_ref,
    )


def compute_payout(wager: int, result: SpinResult) -> int:
    """Signed balance change for a resolved spin: +wager on win, -wager on loss."""
    if result == SpinResult.WIN:
        return wager
    return -wager


def can_place_bet(balance: int, wager: int) -> bool:
    """True iff the wager is positive and affordable."""
    return 0 < wager <= balance


def apply_balance_change(balance: int, delta: int) -> int:
    """Apply delta to balance, never going below zero."""
    return max(0, balance + delta)


def update_wager(
    current: int,
    delta: int,
    min_wager: int,
    max_wager: int,
    balance: int,
) -> int:
    """
    Step the wager and clamp it into [min_wager, min(max_wager, balance)].

    If the balance cannot cover min_wager the range is empty and min_wager is
    returned; can_place_bet rejects it until the balance is reset.
    """
    upper = min(max_wager, balance)
    return max(min_wager, min(current + delta, upper))


def win_rate(wins: int, losses: int) -> float:
    """Percentage of spins won, one decimal place."""
    total = wins + losses
    if total == 0:
        return 0.0
    return round(wins / total * 100, 1)
