"""Tier sizing rules and roster slot layout."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


TIER_SLOTS: Tuple[str, ...] = ("tier1", "tier2", "tier3")
WILDCARD_SLOTS: Tuple[str, ...] = ("wildcard1", "wildcard2", "wildcard3")

# Positional order for per-player home run lists.
ROSTER_SLOTS: Tuple[str, ...] = TIER_SLOTS + WILDCARD_SLOTS

TIER_MIN_SIZE = 6
# None lets tiers grow with the leaderboard; an int caps every tier.
TIER_SIZE_CAP: Optional[int] = None


@dataclass(frozen=True)
class TierRules:
    fractions: Tuple[float, float, float] = (0.10, 0.15, 0.20)
    min_size: int = TIER_MIN_SIZE
    max_size: Optional[int] = TIER_SIZE_CAP

    def __post_init__(self) -> None:
        if len(self.fractions) != len(TIER_SLOTS):
            raise ValueError(f"expected {len(TIER_SLOTS)} tier fractions, got {len(self.fractions)}")
        if any(fraction < 0 for fraction in self.fractions):
            raise ValueError("tier fractions must be non-negative")
        if self.min_size < 0:
            raise ValueError("min_size must be non-negative")
        if self.max_size is not None and self.max_size < self.min_size:
            raise ValueError("max_size must be at least min_size")

    def tier_size(self, fraction: float, total_players: int) -> int:
        """Nominal size of one tier for a leaderboard of ``total_players``."""

        # round() keeps float noise such as 0.1 * 30 from adding a player.
        size = max(self.min_size, math.ceil(round(fraction * total_players, 9)))
        if self.max_size is not None:
            size = min(size, self.max_size)
        return size

    def sizes(self, total_players: int) -> Dict[str, int]:
        return {
            slot: self.tier_size(fraction, total_players)
            for slot, fraction in zip(TIER_SLOTS, self.fractions)
        }


DEFAULT_TIER_RULES = TierRules()
CAPPED_TIER_RULES = TierRules(max_size=TIER_MIN_SIZE)


def slot_pool(slot: str) -> str:
    """Return the classification group a roster slot drafts from."""

    if slot in TIER_SLOTS:
        return slot
    if slot in WILDCARD_SLOTS:
        return "wildcard"
    raise KeyError(f"Unknown roster slot {slot!r}")
