"""Game rules, models and RNG."""
