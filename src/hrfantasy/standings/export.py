"""CSV export of the ranked leaderboard."""

from __future__ import annotations

import csv
from io import StringIO
from typing import Iterable

from hrfantasy.config import ROSTER_SLOTS
from hrfantasy.standings.ranking import RankedTeam


LEADERBOARD_HEADERS = (
    "rank",
    "team_id",
    "team_name",
    "owner_id",
    "paid",
    "aggregate_home_runs",
    *(f"{slot}_player" for slot in ROSTER_SLOTS),
    *(f"{slot}_hr" for slot in ROSTER_SLOTS),
    "last_updated",
)


def leaderboard_to_csv(ranked: Iterable[RankedTeam]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(LEADERBOARD_HEADERS)
    for entry in ranked:
        team = entry.team
        per_player = team.player_home_runs or [0] * len(ROSTER_SLOTS)
        names = []
        for slot in ROSTER_SLOTS:
            pick = team.roster.get(slot)
            names.append((pick.name or pick.player_id) if pick else "")
        writer.writerow([
            entry.rank,
            team.team_id,
            team.name,
            team.owner_id,
            "yes" if team.paid else "no",
            team.aggregate_home_runs,
            *names,
            *per_player,
            team.last_updated.isoformat() if team.last_updated else "",
        ])
    return buffer.getvalue()
