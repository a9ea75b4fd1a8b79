"""Player pool utilities (tier classification)."""

from .tiers import TierClassification, classify_players

__all__ = ["TierClassification", "classify_players"]
