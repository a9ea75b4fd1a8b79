import sqlite3
from datetime import datetime, timezone

import httpx
import pytest
from tenacity import wait_none

from hrfantasy.ingest import (
    CachedStatsProvider,
    MlbStatsProvider,
    SnapshotCache,
    UpstreamMalformed,
    UpstreamUnavailable,
)
from hrfantasy.models import Player, RosterSlot, StatsSnapshot
from hrfantasy.persistence import TeamStore
from hrfantasy.standings import compute_player_home_runs, reconcile_teams, run_reconciliation
from tests.conftest import FakeClock, StubProvider


PLAYERS = [
    Player(player_id="a", name="Alpha", team="NYY", home_runs=10),
    Player(player_id="b", name="Bravo", team="NYY", home_runs=5),
    Player(player_id="c", name="Charlie", team="BOS", home_runs=0),
]

ROSTER_IDS = ["a", "b", "c", "a2", "b2", "c2"]


def _snapshot(players=PLAYERS, stale=False) -> StatsSnapshot:
    return StatsSnapshot(
        season=2025,
        players=tuple(players),
        fetched_at=datetime(2025, 7, 1, tzinfo=timezone.utc),
        stale=stale,
    )


def _roster(ids=ROSTER_IDS):
    slots = ("tier1", "tier2", "tier3", "wildcard1", "wildcard2", "wildcard3")
    return {slot: RosterSlot(player_id=player_id) for slot, player_id in zip(slots, ids)}


def _players_with_mirrors(values=(10, 5, 0)):
    players = []
    for player_id, value in zip("abc", values):
        players.append(Player(player_id=player_id, name=player_id, team="NYY", home_runs=value))
        players.append(Player(player_id=f"{player_id}2", name=player_id, team="NYY", home_runs=value))
    return players


def test_compute_counts_missing_players_as_zero():
    roster = _roster()
    roster["wildcard3"] = None

    totals = compute_player_home_runs(roster, _snapshot().index())

    assert totals == [10, 5, 0, 0, 0, 0]


def test_team_aggregate_is_sum_of_roster(store: TeamStore, clock: FakeClock):
    team = store.create_team(name="Mirror", owner_id="o", roster=_roster())

    report = reconcile_teams(store, _snapshot(_players_with_mirrors()), clock=clock)

    refreshed = store.get_team(team.team_id)
    assert refreshed.player_home_runs == [10, 5, 0, 10, 5, 0]
    assert refreshed.aggregate_home_runs == 30
    assert refreshed.last_updated == clock.now
    assert report.updated_team_count == 1
    assert report.deltas[0].previous_aggregate == 0
    assert report.deltas[0].new_aggregate == 30


def test_reconcile_is_idempotent(store: TeamStore, clock: FakeClock):
    store.create_team(name="One", owner_id="o", roster=_roster())
    store.create_team(name="Two", owner_id="o", roster=_roster(["c", "b", "a", "c2", "b2", "a2"]))
    snapshot = _snapshot(_players_with_mirrors())

    reconcile_teams(store, snapshot, clock=clock)
    first = [(t.player_home_runs, t.aggregate_home_runs) for t in store.list_teams()]
    clock.advance(60)
    second_report = reconcile_teams(store, snapshot, clock=clock)
    second = [(t.player_home_runs, t.aggregate_home_runs) for t in store.list_teams()]

    assert first == second
    assert all(delta.previous_aggregate == delta.new_aggregate for delta in second_report.deltas)


def test_every_team_reflects_latest_snapshot(store: TeamStore, clock: FakeClock):
    store.create_team(name="One", owner_id="o", roster=_roster())
    reconcile_teams(store, _snapshot(_players_with_mirrors()), clock=clock)

    reconcile_teams(store, _snapshot(_players_with_mirrors((12, 5, 1))), clock=clock)

    team = store.list_teams()[0]
    assert team.player_home_runs == [12, 5, 1, 12, 5, 1]
    assert team.aggregate_home_runs == 36


class FlakyStore(TeamStore):
    def __init__(self, db_path, failing_team_id):
        super().__init__(db_path)
        self.failing_team_id = failing_team_id

    def update_team_stats(self, team_id, player_home_runs, *, last_updated=None, stats_as_of=None):
        if team_id == self.failing_team_id:
            raise sqlite3.OperationalError("database is locked")
        return super().update_team_stats(
            team_id, player_home_runs, last_updated=last_updated, stats_as_of=stats_as_of
        )


def test_persistence_failure_is_isolated_to_one_team(tmp_path, clock: FakeClock):
    store = FlakyStore(tmp_path / "flaky.sqlite", failing_team_id="broken")
    store.create_team(name="Broken", owner_id="o", roster=_roster(), team_id="broken")
    healthy = store.create_team(name="Healthy", owner_id="o", roster=_roster())

    report = reconcile_teams(store, _snapshot(_players_with_mirrors()), clock=clock)

    assert [failure.team_id for failure in report.failed] == ["broken"]
    assert "database is locked" in report.failed[0].error
    assert [delta.team_id for delta in report.deltas] == [healthy.team_id]
    assert store.get_team("broken").player_home_runs is None
    assert store.get_team(healthy.team_id).aggregate_home_runs == 30


def test_run_records_completed_run(store: TeamStore, clock: FakeClock):
    store.create_team(name="One", owner_id="o", roster=_roster())
    stats = CachedStatsProvider(StubProvider(_players_with_mirrors()), SnapshotCache(3600, clock=clock))

    report = run_reconciliation(store, stats, season=2025, trigger="manual", clock=clock)

    run = store.get_run(report.run_id)
    assert run.state == "completed"
    assert run.trigger == "manual"
    assert run.message == "Updated 1 teams"
    assert run.report["updated_team_count"] == 1
    assert run.report["snapshot"]["player_count"] == 6


def test_fetch_failure_without_cache_leaves_teams_untouched(
    store: TeamStore, clock: FakeClock, unavailable: UpstreamUnavailable
):
    team = store.create_team(name="One", owner_id="o", roster=_roster())
    store.update_team_stats(team.team_id, [1, 1, 1, 1, 1, 1], last_updated=clock.now)
    provider = StubProvider([])
    provider.error = unavailable
    stats = CachedStatsProvider(provider, SnapshotCache(3600, clock=clock))

    with pytest.raises(UpstreamUnavailable):
        run_reconciliation(store, stats, season=2025, trigger="cron", clock=clock)

    unchanged = store.get_team(team.team_id)
    assert unchanged.player_home_runs == [1, 1, 1, 1, 1, 1]
    assert unchanged.last_updated == clock.now
    runs = store.list_runs()
    assert runs[0].state == "failed"
    assert "503" in runs[0].message


def test_fetch_failure_with_cache_reconciles_against_stale_snapshot(
    store: TeamStore, clock: FakeClock, unavailable: UpstreamUnavailable
):
    store.create_team(name="One", owner_id="o", roster=_roster())
    provider = StubProvider(_players_with_mirrors())
    stats = CachedStatsProvider(provider, SnapshotCache(600, clock=clock))
    stats.get_snapshot(2025)

    clock.advance(3600)
    provider.error = unavailable
    report = run_reconciliation(store, stats, season=2025, trigger="cron", clock=clock)

    assert report.snapshot["stale"] is True
    assert store.get_run(report.run_id).message == "Updated 1 teams (stale snapshot)"
    assert store.list_teams()[0].aggregate_home_runs == 30


def test_run_limited_to_selected_teams(store: TeamStore, clock: FakeClock):
    chosen = store.create_team(name="Chosen", owner_id="o", roster=_roster())
    other = store.create_team(name="Other", owner_id="o", roster=_roster())
    stats = CachedStatsProvider(StubProvider(_players_with_mirrors()), SnapshotCache(3600, clock=clock))

    report = run_reconciliation(
        store, stats, season=2025, trigger="manual", team_ids=[chosen.team_id, "missing"], clock=clock
    )

    assert [delta.team_id for delta in report.deltas] == [chosen.team_id]
    assert store.get_team(other.team_id).player_home_runs is None


def test_roster_repeating_ids_across_slots_sums_each_slot(store: TeamStore, clock: FakeClock):
    team = store.create_team(name="Repeat", owner_id="o", roster=_roster(["a", "b", "c", "a", "b", "c"]))

    report = reconcile_teams(store, _snapshot(), clock=clock)

    refreshed = store.get_team(team.team_id)
    assert refreshed.player_home_runs == [10, 5, 0, 10, 5, 0]
    assert refreshed.aggregate_home_runs == 30
    assert report.deltas[0].new_aggregate == 30


def test_stale_snapshot_keeps_fetch_time_on_team(store: TeamStore, clock: FakeClock):
    team = store.create_team(name="One", owner_id="o", roster=_roster())
    snapshot = _snapshot(stale=True)
    clock.advance(86400)

    reconcile_teams(store, snapshot, clock=clock)

    refreshed = store.get_team(team.team_id)
    assert refreshed.last_updated == clock.now
    assert refreshed.stats_as_of == snapshot.fetched_at


def test_undecodable_upstream_response_fails_the_run(store: TeamStore, clock: FakeClock):
    team = store.create_team(name="One", owner_id="o", roster=_roster())

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    provider = MlbStatsProvider(client, base_url="https://stats.test/api/v1", wait=wait_none())
    stats = CachedStatsProvider(provider, SnapshotCache(3600, clock=clock))

    with pytest.raises(UpstreamMalformed):
        run_reconciliation(store, stats, season=2025, trigger="cron", clock=clock)

    run = store.list_runs()[0]
    assert run.state == "failed"
    assert "decoded" in run.message
    assert store.get_team(team.team_id).player_home_runs is None


class BrokenStats:
    def get_snapshot(self, season, *, force_refresh=False):
        raise RuntimeError("cache exploded")


def test_unexpected_error_still_closes_the_run(store: TeamStore, clock: FakeClock):
    with pytest.raises(RuntimeError):
        run_reconciliation(store, BrokenStats(), season=2025, trigger="manual", clock=clock)

    run = store.list_runs()[0]
    assert run.state == "failed"
    assert run.message == "RuntimeError: cache exploded"
    assert run.completed_at is not None
