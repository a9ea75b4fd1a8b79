"""Command-line interface for scheduled reconciliation and quick reports."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from hrfantasy.config import CAPPED_TIER_RULES, DEFAULT_TIER_RULES
from hrfantasy.config_loader import AppSettings
from hrfantasy.ingest import (
    CachedStatsProvider,
    MlbStatsProvider,
    SnapshotCache,
    StatsProvider,
    StatsProviderError,
)
from hrfantasy.persistence import TeamStore
from hrfantasy.pool import classify_players
from hrfantasy.standings import leaderboard_to_csv, rank_teams, run_reconciliation


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Home run pool maintenance")
    parser.add_argument("--settings", type=Path, default=None, help="JSON settings file overlaid on the environment")
    parser.add_argument("--season", type=int, default=None, help="Season to use (default from settings)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    reconcile = commands.add_parser("reconcile", help="Pull current home runs and update every team")
    reconcile.add_argument(
        "--use-cache",
        action="store_true",
        help="Reuse a fresh cached snapshot instead of forcing a fetch",
    )
    reconcile.add_argument("--report", type=Path, default=None, help="Optional path to write the run report JSON")

    leaderboard = commands.add_parser("leaderboard", help="Print the ranked leaderboard")
    leaderboard.add_argument("--csv", type=Path, default=None, help="Write the leaderboard CSV to this path")

    tiers = commands.add_parser("tiers", help="Print the current draft tiers")
    tiers.add_argument("--capped", action="store_true", help="Cap every tier at the minimum size")
    return parser.parse_args(argv)


def _provider(settings: AppSettings) -> MlbStatsProvider:
    return MlbStatsProvider(
        base_url=settings.stats_base_url,
        limit=settings.leader_limit,
        timeout=settings.http_timeout,
        attempts=settings.fetch_attempts,
    )


def _stats(provider: StatsProvider, settings: AppSettings, store: TeamStore) -> CachedStatsProvider:
    return CachedStatsProvider(provider, SnapshotCache(settings.cache_ttl_seconds, store=store))


def _reconcile(args: argparse.Namespace, settings: AppSettings, store: TeamStore, stats: CachedStatsProvider) -> int:
    try:
        report = run_reconciliation(
            store,
            stats,
            season=settings.season,
            trigger="cli",
            force_refresh=not args.use_cache,
        )
    except StatsProviderError as exc:
        print(f"Reconciliation failed: {exc}", file=sys.stderr)
        return 1

    snapshot = report.snapshot
    print(
        f"Updated {report.updated_team_count} teams from {snapshot['player_count']} players "
        f"(season {snapshot['season']}, fetched {snapshot['fetched_at']})"
    )
    if snapshot["stale"]:
        print("Warning: provider unavailable, used a stale cached snapshot")
    for delta in report.deltas:
        change = delta.new_aggregate - delta.previous_aggregate
        print(f"  {delta.team_name}: {delta.previous_aggregate} -> {delta.new_aggregate} ({change:+d})")
    for failure in report.failed:
        print(f"  FAILED {failure.team_name} ({failure.team_id}): {failure.error}", file=sys.stderr)
    if args.report:
        args.report.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        print(f"Wrote run report to {args.report}")
    return 2 if report.failed else 0


def _leaderboard(args: argparse.Namespace, store: TeamStore) -> int:
    ranked = rank_teams(store.list_teams())
    if args.csv:
        args.csv.write_text(leaderboard_to_csv(ranked), encoding="utf-8")
        print(f"Wrote leaderboard to {args.csv}")
        return 0
    if not ranked:
        print("No teams yet.")
    for entry in ranked:
        paid = "" if entry.team.paid else " (unpaid)"
        print(f"{entry.rank:>4}  {entry.aggregate_home_runs:>4}  {entry.team.name}{paid}")
    return 0


def _tiers(args: argparse.Namespace, settings: AppSettings, stats: CachedStatsProvider) -> int:
    try:
        snapshot = stats.get_snapshot(settings.season)
    except StatsProviderError as exc:
        print(f"Unable to load players: {exc}", file=sys.stderr)
        return 1
    rules = CAPPED_TIER_RULES if args.capped else DEFAULT_TIER_RULES
    classification = classify_players(
        snapshot.players,
        rules=rules,
        universe=stats.get_universe(settings.season),
    )
    for group, players in classification.groups().items():
        print(f"{group} ({len(players)})")
        for player in players:
            print(f"  {player.home_runs:>3}  {player.name} ({player.team}, {player.position})")
    if snapshot.stale:
        print("Warning: stale cached snapshot")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = AppSettings.load(args.settings) if args.settings else AppSettings.from_env()
    if args.season is not None:
        settings.season = args.season
    store = TeamStore(Path(settings.db_path))

    if args.command == "leaderboard":
        return _leaderboard(args, store)
    with _provider(settings) as provider:
        stats = _stats(provider, settings, store)
        if args.command == "reconcile":
            return _reconcile(args, settings, store, stats)
        return _tiers(args, settings, stats)


if __name__ == "__main__":
    sys.exit(main())
