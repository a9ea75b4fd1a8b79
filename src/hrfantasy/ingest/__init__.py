"""Upstream statistics adapters and their cache."""

from .cache import CachedStatsProvider, SnapshotCache, utc_now
from .errors import StatsProviderError, UpstreamMalformed, UpstreamUnavailable
from .mlb_stats import (
    MlbStatsProvider,
    StatsProvider,
    parse_active_players,
    parse_game_home_runs,
    parse_home_run_leaders,
    parse_schedule_game_pks,
)

__all__ = [
    "CachedStatsProvider",
    "MlbStatsProvider",
    "SnapshotCache",
    "StatsProvider",
    "StatsProviderError",
    "UpstreamMalformed",
    "UpstreamUnavailable",
    "parse_active_players",
    "parse_game_home_runs",
    "parse_home_run_leaders",
    "parse_schedule_game_pks",
    "utc_now",
]
