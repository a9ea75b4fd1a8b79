"""Lightweight REST client for the hrfantasy API."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

import httpx


def main() -> None:
    parser = argparse.ArgumentParser(description="Interact with the hrfantasy REST API")
    parser.add_argument("base_url", help="Base URL of the API, e.g. http://localhost:8000")
    parser.add_argument("--reconcile", action="store_true", help="Trigger a reconciliation run and print the summary")
    parser.add_argument("--runs", action="store_true", help="List recent reconciliation runs")
    parser.add_argument("--recent", metavar="TEAM_ID", help="Show the last week of home runs for a team")
    parser.add_argument("--export-path", type=Path, help="Download the leaderboard CSV to this path")
    parser.add_argument(
        "--admin-token",
        default=os.getenv("HRFANTASY_ADMIN_TOKEN", ""),
        help="Admin token (defaults to HRFANTASY_ADMIN_TOKEN)",
    )
    args = parser.parse_args()

    headers = {"X-Admin-Token": args.admin_token} if args.admin_token else {}
    with httpx.Client(base_url=args.base_url, headers=headers, timeout=120.0) as client:
        if args.reconcile:
            resp = client.post("/admin/reconcile")
            if resp.status_code == 502:
                raise SystemExit(f"Reconciliation failed: {json.dumps(resp.json().get('detail'))}")
            resp.raise_for_status()
            payload = resp.json()
            print(f"Updated {payload['updated_team_count']} teams (stale={payload['snapshot']['stale']})")
            for failure in payload["failed_teams"]:
                print(f"  FAILED {failure['team_name']}: {failure['error']}")
            return

        if args.runs:
            resp = client.get("/admin/reconciliations")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
            return

        if args.recent:
            resp = client.get(f"/teams/{args.recent}/recent")
            resp.raise_for_status()
            payload = resp.json()
            print(f"Home runs {payload['start_date']} to {payload['end_date']}:")
            for home_run in payload["home_runs"]:
                print(f"  {home_run['player_name']} ({home_run['team']} vs {home_run['opponent']}, game {home_run['game_pk']})")
            return

        if args.export_path:
            resp = client.get("/leaderboard/export.csv")
            resp.raise_for_status()
            args.export_path.write_text(resp.text, encoding="utf-8")
            print(f"Saved leaderboard CSV to {args.export_path}")
            return

        resp = client.get("/leaderboard")
        resp.raise_for_status()
        for team in resp.json():
            print(f"{team['rank']:>4}  {team['aggregate_home_runs']:>4}  {team['name']}")


if __name__ == "__main__":
    main()
