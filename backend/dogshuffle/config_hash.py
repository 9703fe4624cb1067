"""Hash of the active rules configuration.

Shared by the spin_processed telemetry event and the audit CSV so both can
be correlated with the rules a spin was played under.
"""
import hashlib
import json

from dogshuffle.config import settings


def get_config_hash() -> str:
    """Return 16-char hex hash of the rules configuration."""
    config_snapshot = {
        "starting_balance": settings.starting_balance,
        "min_wager": settings.min_wager,
        "max_wager": settings.max_wager,
        "wager_step": settings.wager_step,
        "win_category": settings.win_category,
        "image_pool_sizes": dict(settings.image_pool_sizes),
    }
    canonical = json.dumps(config_snapshot, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]
