"""Stats reconciliation and leaderboard ranking."""

from .export import leaderboard_to_csv
from .ranking import RankedTeam, rank_teams
from .reconcile import (
    ReconciliationReport,
    TeamDelta,
    TeamFailure,
    compute_player_home_runs,
    reconcile_teams,
    run_reconciliation,
)

__all__ = [
    "RankedTeam",
    "ReconciliationReport",
    "TeamDelta",
    "TeamFailure",
    "compute_player_home_runs",
    "leaderboard_to_csv",
    "rank_teams",
    "reconcile_teams",
    "run_reconciliation",
]
