"""Configuration helpers for tier sizing and roster slots."""

from .tiers import (
    CAPPED_TIER_RULES,
    DEFAULT_TIER_RULES,
    ROSTER_SLOTS,
    TIER_SLOTS,
    WILDCARD_SLOTS,
    TierRules,
    slot_pool,
)

__all__ = [
    "CAPPED_TIER_RULES",
    "DEFAULT_TIER_RULES",
    "ROSTER_SLOTS",
    "TIER_SLOTS",
    "WILDCARD_SLOTS",
    "TierRules",
    "slot_pool",
]
