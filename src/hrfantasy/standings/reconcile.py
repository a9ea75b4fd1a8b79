"""Refresh every team's home-run totals from a leaderboard snapshot."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from hrfantasy.config import ROSTER_SLOTS
from hrfantasy.ingest import CachedStatsProvider, StatsProviderError, utc_now
from hrfantasy.ingest.cache import Clock
from hrfantasy.models import Player, RosterSlot, StatsSnapshot
from hrfantasy.persistence import TeamRecord, TeamStore


logger = logging.getLogger(__name__)


@dataclass
class TeamDelta:
    team_id: str
    team_name: str
    previous_aggregate: int
    new_aggregate: int
    player_home_runs: List[int]


@dataclass
class TeamFailure:
    team_id: str
    team_name: str
    error: str


@dataclass
class ReconciliationReport:
    deltas: List[TeamDelta] = field(default_factory=list)
    failed: List[TeamFailure] = field(default_factory=list)
    snapshot: Dict[str, Any] = field(default_factory=dict)
    run_id: Optional[str] = None

    @property
    def updated_team_count(self) -> int:
        return len(self.deltas)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "updated_team_count": self.updated_team_count,
            "per_team_deltas": [asdict(delta) for delta in self.deltas],
            "failed_teams": [asdict(failure) for failure in self.failed],
            "snapshot": dict(self.snapshot),
        }


def compute_player_home_runs(
    roster: Mapping[str, Optional[RosterSlot]],
    index: Mapping[str, Player],
) -> List[int]:
    """Home runs per roster slot, in ``ROSTER_SLOTS`` order.

    A slot that is empty or whose player is absent from the snapshot counts 0.
    """

    totals: List[int] = []
    for slot in ROSTER_SLOTS:
        pick = roster.get(slot)
        player = index.get(pick.player_id) if pick is not None else None
        if player is None:
            logger.debug("No snapshot entry for %s (%s); counting 0", slot, pick.player_id if pick else "empty")
            totals.append(0)
            continue
        totals.append(player.home_runs)
    return totals


def reconcile_teams(
    store: TeamStore,
    snapshot: StatsSnapshot,
    *,
    teams: Iterable[TeamRecord] | None = None,
    clock: Clock | None = None,
) -> ReconciliationReport:
    """Recompute and persist per-player totals for ``teams`` (all by default).

    A failed write is recorded in ``failed`` and the remaining teams are still
    processed.
    """

    index = snapshot.index()
    now = (clock or utc_now)()
    report = ReconciliationReport(snapshot=snapshot.summary())
    for team in list(store.list_teams() if teams is None else teams):
        player_home_runs = compute_player_home_runs(team.roster, index)
        try:
            store.update_team_stats(
                team.team_id,
                player_home_runs,
                last_updated=now,
                stats_as_of=snapshot.fetched_at,
            )
        except (sqlite3.Error, KeyError) as exc:
            logger.warning("Failed to persist stats for team %s (%s): %s", team.team_id, team.name, exc)
            report.failed.append(TeamFailure(team_id=team.team_id, team_name=team.name, error=str(exc)))
            continue
        report.deltas.append(
            TeamDelta(
                team_id=team.team_id,
                team_name=team.name,
                previous_aggregate=team.aggregate_home_runs,
                new_aggregate=sum(player_home_runs),
                player_home_runs=player_home_runs,
            )
        )
    logger.info(
        "Reconciled %d teams against %d players (season %d, stale=%s); %d failed",
        len(report.deltas),
        len(snapshot.players),
        snapshot.season,
        snapshot.stale,
        len(report.failed),
    )
    return report


def run_reconciliation(
    store: TeamStore,
    stats: CachedStatsProvider,
    *,
    season: int,
    trigger: str,
    force_refresh: bool = True,
    team_ids: Iterable[str] | None = None,
    clock: Clock | None = None,
) -> ReconciliationReport:
    """Fetch a snapshot and reconcile, recording the run in the store.

    Raises :class:`StatsProviderError` when neither the provider nor the cache
    can supply a snapshot; in that case no team is touched. Any error raised
    before the report is complete marks the run ``failed`` and propagates.
    """

    run = store.create_run(trigger=trigger, season=season)
    logger.info("Reconciliation run %s started (trigger=%s, season=%d)", run.run_id, trigger, season)
    try:
        snapshot = stats.get_snapshot(season, force_refresh=force_refresh)
        teams = None
        if team_ids is not None:
            teams = [team for team in (store.get_team(team_id) for team_id in team_ids) if team is not None]
        report = reconcile_teams(store, snapshot, teams=teams, clock=clock)
    except StatsProviderError as exc:
        store.finish_run(run.run_id, state="failed", message=str(exc))
        logger.error("Reconciliation run %s failed: %s", run.run_id, exc)
        raise
    except Exception as exc:
        store.finish_run(run.run_id, state="failed", message=f"{type(exc).__name__}: {exc}")
        logger.exception("Reconciliation run %s aborted", run.run_id)
        raise

    report.run_id = run.run_id
    message = f"Updated {report.updated_team_count} teams"
    if report.failed:
        message += f", {len(report.failed)} failed"
    if snapshot.stale:
        message += " (stale snapshot)"
    store.finish_run(run.run_id, state="completed", message=message, report=report.to_dict())
    return report
