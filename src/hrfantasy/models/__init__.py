"""Domain models."""

from .player import Player, RecentHomeRun, RosterSlot, StatsSnapshot

__all__ = ["Player", "RecentHomeRun", "RosterSlot", "StatsSnapshot"]
