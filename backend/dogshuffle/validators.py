"""Request validators."""
from dogshuffle.config import settings
from dogshuffle.errors import ErrorCode, GameError


def validate_wager(wager: int) -> None:
    """
    Validate a wager against the configured limits.

    Raises INVALID_WAGER if the wager is outside [min_wager, max_wager].
    Affordability is checked by the engine against the loaded balance.
    """
    if wager < settings.min_wager or wager > settings.max_wager:
        raise GameError(
            ErrorCode.INVALID_WAGER,
            f"Wager {wager} not allowed. "
            f"Allowed range: {settings.min_wager}-{settings.max_wager}",
        )
