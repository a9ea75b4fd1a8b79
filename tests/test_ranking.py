import csv
from datetime import datetime, timezone
from io import StringIO

from hrfantasy.persistence import TeamRecord
from hrfantasy.standings import leaderboard_to_csv, rank_teams


def _team(team_id: str, aggregate: int | None, paid: bool = False) -> TeamRecord:
    return TeamRecord(
        team_id=team_id,
        name=f"Team {team_id}",
        owner_id="owner",
        paid=paid,
        roster={},
        player_home_runs=None if aggregate is None else [aggregate, 0, 0, 0, 0, 0],
        created_at=datetime(2025, 4, 1, tzinfo=timezone.utc),
        last_updated=None,
    )


def test_competition_ranking_with_ties():
    teams = [_team(str(index), value) for index, value in enumerate([30, 30, 25, 20, 20, 20, 10])]

    ranked = rank_teams(teams)

    assert [entry.rank for entry in ranked] == [1, 1, 3, 4, 4, 4, 7]


def test_unsorted_input_is_ordered_by_aggregate():
    ranked = rank_teams([_team("low", 42), _team("top", 50), _team("mid", 42)])

    assert [entry.team.team_id for entry in ranked] == ["top", "low", "mid"]
    assert [entry.rank for entry in ranked] == [1, 2, 2]


def test_rank_is_non_decreasing_and_first_is_one():
    ranked = rank_teams([_team(str(index), (index * 7) % 5) for index in range(12)])

    ranks = [entry.rank for entry in ranked]
    assert ranks[0] == 1
    assert ranks == sorted(ranks)
    aggregates = [entry.aggregate_home_runs for entry in ranked]
    assert aggregates == sorted(aggregates, reverse=True)


def test_teams_without_stats_rank_as_zero():
    ranked = rank_teams([_team("fresh", None), _team("scored", 3), _team("blank", 0)])

    assert [(entry.team.team_id, entry.rank) for entry in ranked] == [("scored", 1), ("fresh", 2), ("blank", 2)]


def test_empty_leaderboard():
    assert rank_teams([]) == []


def test_csv_export_has_header_and_rows():
    exported = leaderboard_to_csv(rank_teams([_team("b", 5, paid=True), _team("a", 9)]))

    rows = list(csv.DictReader(StringIO(exported)))
    assert [row["team_id"] for row in rows] == ["a", "b"]
    assert rows[0]["rank"] == "1"
    assert rows[0]["aggregate_home_runs"] == "9"
    assert rows[1]["paid"] == "yes"
    assert rows[0]["tier1_hr"] == "9"
    assert rows[0]["tier1_player"] == ""
