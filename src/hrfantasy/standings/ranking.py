"""Leaderboard ordering with shared ranks for tied aggregates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from hrfantasy.persistence import TeamRecord


@dataclass(frozen=True)
class RankedTeam:
    rank: int
    team: TeamRecord

    @property
    def aggregate_home_runs(self) -> int:
        return self.team.aggregate_home_runs


def rank_teams(teams: Iterable[TeamRecord]) -> List[RankedTeam]:
    """Rank teams by aggregate home runs, highest first.

    Tied teams share the rank of the first team in their group and the next
    distinct aggregate takes its own 1-based position, so aggregates
    ``[30, 30, 25]`` rank ``[1, 1, 3]``. The sort is stable: teams tied on
    aggregate keep their insertion order. Teams without stats count as 0.
    """

    ordered = sorted(teams, key=lambda team: -team.aggregate_home_runs)
    ranked: List[RankedTeam] = []
    for position, team in enumerate(ordered):
        if ranked and team.aggregate_home_runs == ranked[-1].aggregate_home_runs:
            rank = ranked[-1].rank
        else:
            rank = position + 1
        ranked.append(RankedTeam(rank=rank, team=team))
    return ranked
