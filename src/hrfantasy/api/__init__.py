"""REST API for the home-run pool."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from html import escape
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response

from hrfantasy.api.schemas import (
    PaidUpdateRequest,
    ReconciliationResponse,
    RecentHomeRunsResponse,
    RosterUpdateRequest,
    TeamCreateRequest,
    TeamResponse,
    TierResponse,
)
from hrfantasy.config import ROSTER_SLOTS
from hrfantasy.config_loader import AppSettings
from hrfantasy.draft import (
    TeamLimitExceeded,
    TeamSelection,
    TeamValidationError,
    build_team,
    validate_roster,
)
from hrfantasy.ingest import (
    CachedStatsProvider,
    MlbStatsProvider,
    SnapshotCache,
    StatsProvider,
    StatsProviderError,
    UpstreamUnavailable,
    utc_now,
)
from hrfantasy.ingest.cache import Clock
from hrfantasy.persistence import ReconciliationRun, TeamRecord, TeamStore
from hrfantasy.pool import TierClassification, classify_players
from hrfantasy.standings import (
    RankedTeam,
    ReconciliationReport,
    leaderboard_to_csv,
    rank_teams,
    reconcile_teams,
    run_reconciliation,
)


logger = logging.getLogger(__name__)


def team_to_response(team: TeamRecord, rank: Optional[int] = None) -> TeamResponse:
    return TeamResponse(
        team_id=team.team_id,
        name=team.name,
        owner_id=team.owner_id,
        paid=team.paid,
        rank=rank,
        aggregate_home_runs=team.aggregate_home_runs,
        player_home_runs=team.player_home_runs,
        roster=team.roster,
        created_at=team.created_at,
        last_updated=team.last_updated,
        stats_as_of=team.stats_as_of,
    )


def run_to_dict(run: ReconciliationRun) -> dict:
    return {
        "run_id": run.run_id,
        "state": run.state,
        "trigger": run.trigger,
        "season": run.season,
        "message": run.message,
        "report": run.report,
        "created_at": run.created_at.isoformat() if run.created_at else None,
        "updated_at": run.updated_at.isoformat() if run.updated_at else None,
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
    }


def _upstream_http_error(exc: StatsProviderError) -> HTTPException:
    detail: dict[str, Any] = {"error": type(exc).__name__, "reason": str(exc)}
    if isinstance(exc, UpstreamUnavailable) and exc.status_code is not None:
        detail["upstream_status"] = exc.status_code
    return HTTPException(status_code=502, detail=detail)


def _report_response(report: ReconciliationReport) -> ReconciliationResponse:
    return ReconciliationResponse.model_validate(report.to_dict())


def _render_page(body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang=\"en\">
<head>
    <meta charset=\"utf-8\">
    <title>Home Run Pool</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 2rem; background: #f5f7fa; }}
        main {{ background: #fff; padding: 2rem; border-radius: 12px; box-shadow: 0 2px 6px rgba(0,0,0,0.08); }}
        nav a {{ margin-right: 1rem; color: #2563eb; text-decoration: none; }}
        table {{ border-collapse: collapse; width: 100%; margin-top: 1rem; }}
        th, td {{ padding: 0.5rem; border: 1px solid #e2e8f0; text-align: left; }}
        td.num {{ text-align: right; }}
        .notice {{ margin: 0.5rem 0; padding: 0.75rem 1rem; border-radius: 6px; }}
        .notice.stale {{ background: #fffbeb; color: #92400e; border: 1px solid #fde68a; }}
        .hint {{ color: #475569; margin: 0; }}
        .unpaid {{ color: #b91c1c; }}
    </style>
</head>
<body>
    <nav><a href=\"/ui\">Leaderboard</a><a href=\"/leaderboard/export.csv\">Export CSV</a></nav>
    <main>{body}</main>
</body>
</html>"""


def _render_leaderboard_page(ranked: list[RankedTeam], snapshot_info: Optional[dict[str, Any]]) -> str:
    if snapshot_info is None:
        status = "<p class=\"hint\">No statistics have been pulled yet.</p>"
    else:
        status = (
            f"<p class=\"hint\">Season {snapshot_info['season']} stats as of "
            f"{escape(snapshot_info['fetched_at'])}.</p>"
        )
        if snapshot_info["stale"]:
            status += "<div class=\"notice stale\">These numbers come from an older snapshot and may be behind.</div>"

    if not ranked:
        return _render_page(f"<h1>Leaderboard</h1>{status}<p>No teams yet.</p>")

    header_cells = "".join(f"<th>{escape(slot)}</th>" for slot in ROSTER_SLOTS)
    rows = []
    for entry in ranked:
        team = entry.team
        per_player = team.player_home_runs or [0] * len(ROSTER_SLOTS)
        cells = []
        for slot, home_runs in zip(ROSTER_SLOTS, per_player):
            pick = team.roster.get(slot)
            label = escape(pick.name or pick.player_id) if pick else "&ndash;"
            cells.append(f"<td>{label} <small>({home_runs})</small></td>")
        paid = "" if team.paid else " <small class=\"unpaid\">(unpaid)</small>"
        rows.append(
            f"<tr><td class=\"num\">{entry.rank}</td><td>{escape(team.name)}{paid}</td>"
            f"<td class=\"num\"><strong>{team.aggregate_home_runs}</strong></td>{''.join(cells)}</tr>"
        )
    table = (
        "<table><thead><tr><th>Rank</th><th>Team</th><th>HR</th>"
        f"{header_cells}</tr></thead><tbody>{''.join(rows)}</tbody></table>"
    )
    return _render_page(f"<h1>Leaderboard</h1>{status}{table}")


def create_app(
    settings: AppSettings | None = None,
    *,
    store: TeamStore | None = None,
    provider: StatsProvider | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    settings = settings or AppSettings.from_env()
    app = FastAPI(title="hrfantasy")
    store = store or TeamStore(Path(settings.db_path))
    provider = provider or MlbStatsProvider(
        base_url=settings.stats_base_url,
        limit=settings.leader_limit,
        timeout=settings.http_timeout,
        attempts=settings.fetch_attempts,
    )
    cache = SnapshotCache(settings.cache_ttl_seconds, clock=clock, store=store)
    stats = CachedStatsProvider(provider, cache)
    app.state.settings = settings
    app.state.team_store = store
    app.state.stats = stats

    if not settings.admin_token:
        logger.warning("HRFANTASY_ADMIN_TOKEN is not set; admin endpoints are unprotected")
    if not settings.cron_secret:
        logger.warning("HRFANTASY_CRON_SECRET is not set; the cron endpoint is unprotected")

    def require_admin(x_admin_token: str | None = Header(None)) -> None:
        if settings.admin_token and not secrets.compare_digest(x_admin_token or "", settings.admin_token):
            raise HTTPException(status_code=401, detail="Invalid admin token")

    def require_cron(authorization: str | None = Header(None)) -> None:
        if settings.cron_secret and not secrets.compare_digest(
            authorization or "", f"Bearer {settings.cron_secret}"
        ):
            logger.warning("Unauthorized cron reconciliation attempt")
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _fetch_team_or_404(team_id: str) -> TeamRecord:
        team = store.get_team(team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return team

    def _cached_classification() -> Optional[TierClassification]:
        snapshot = stats.peek(settings.season)
        if snapshot is None:
            return None
        return classify_players(snapshot.players)

    def _rank_of(team_id: str) -> Optional[int]:
        for entry in rank_teams(store.list_teams()):
            if entry.team.team_id == team_id:
                return entry.rank
        return None

    def _reconcile(trigger: str, *, force_refresh: bool = True, team_ids: list[str] | None = None) -> ReconciliationResponse:
        try:
            report = run_reconciliation(
                store,
                stats,
                season=settings.season,
                trigger=trigger,
                force_refresh=force_refresh,
                team_ids=team_ids,
                clock=clock,
            )
        except StatsProviderError as exc:
            raise _upstream_http_error(exc) from exc
        return _report_response(report)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/players", response_model=TierResponse)
    def players(refresh: bool = False):
        try:
            snapshot = stats.get_snapshot(settings.season, force_refresh=refresh)
        except StatsProviderError as exc:
            raise _upstream_http_error(exc) from exc
        classification = classify_players(snapshot.players, universe=stats.get_universe(settings.season))
        return TierResponse(
            tier1=list(classification.tier1),
            tier2=list(classification.tier2),
            tier3=list(classification.tier3),
            wildcard=list(classification.wildcard),
            snapshot=snapshot.summary(),
        )

    @app.post("/teams", response_model=TeamResponse, status_code=201)
    def create_team(payload: TeamCreateRequest):
        selection = TeamSelection(name=payload.name, owner_id=payload.owner_id, players=payload.players)
        try:
            team = build_team(
                store,
                selection,
                max_teams_per_owner=settings.max_teams_per_owner,
                classification=_cached_classification(),
            )
        except TeamLimitExceeded as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except TeamValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors) from exc
        snapshot = stats.peek(settings.season)
        if snapshot is not None:
            reconcile_teams(store, snapshot, teams=[team], clock=clock)
            team = _fetch_team_or_404(team.team_id)
        return team_to_response(team, _rank_of(team.team_id))

    @app.get("/teams/{team_id}", response_model=TeamResponse)
    async def get_team(team_id: str):
        team = _fetch_team_or_404(team_id)
        return team_to_response(team, _rank_of(team_id))

    @app.get("/teams/{team_id}/recent", response_model=RecentHomeRunsResponse)
    def recent_home_runs(team_id: str, days: int = Query(7, ge=1, le=30)):
        team = _fetch_team_or_404(team_id)
        end = (clock or utc_now)().date()
        player_ids = [player_id for player_id in team.slot_player_ids() if player_id]
        try:
            home_runs = provider.fetch_recent_home_runs(player_ids, days=days, end=end)
        except StatsProviderError as exc:
            raise _upstream_http_error(exc) from exc
        return RecentHomeRunsResponse(
            team_id=team_id,
            start_date=end - timedelta(days=days),
            end_date=end,
            home_runs=home_runs,
        )

    @app.get("/owners/{owner_id}/teams", response_model=list[TeamResponse])
    async def owner_teams(owner_id: str):
        ranked = rank_teams(store.list_teams())
        return [team_to_response(entry.team, entry.rank) for entry in ranked if entry.team.owner_id == owner_id]

    @app.get("/leaderboard", response_model=list[TeamResponse])
    async def leaderboard(paid_only: bool = False):
        teams = [team for team in store.list_teams() if team.paid or not paid_only]
        return [team_to_response(entry.team, entry.rank) for entry in rank_teams(teams)]

    @app.get("/leaderboard/export.csv")
    async def export_leaderboard():
        csv_text = leaderboard_to_csv(rank_teams(store.list_teams()))
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=leaderboard.csv"},
        )

    @app.get("/ui", response_class=HTMLResponse)
    async def ui_leaderboard(request: Request):
        snapshot = stats.peek(settings.season)
        content = _render_leaderboard_page(
            rank_teams(store.list_teams()),
            snapshot.summary() if snapshot else None,
        )
        return HTMLResponse(content)

    @app.post("/admin/reconcile", response_model=ReconciliationResponse, dependencies=[Depends(require_admin)])
    def admin_reconcile():
        return _reconcile("manual")

    @app.get("/cron/reconcile", response_model=ReconciliationResponse, dependencies=[Depends(require_cron)])
    def cron_reconcile():
        return _reconcile("cron")

    @app.get("/admin/reconciliations", dependencies=[Depends(require_admin)])
    async def list_reconciliations(limit: int = Query(20, ge=1, le=200)):
        return [run_to_dict(run) for run in store.list_runs(limit=limit)]

    @app.get("/admin/reconciliations/{run_id}", dependencies=[Depends(require_admin)])
    async def get_reconciliation(run_id: str):
        run = store.get_run(run_id)
        if run is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return run_to_dict(run)

    @app.post("/admin/teams/{team_id}/paid", response_model=TeamResponse, dependencies=[Depends(require_admin)])
    async def set_paid(team_id: str, payload: PaidUpdateRequest):
        _fetch_team_or_404(team_id)
        team = store.set_paid(team_id, payload.paid)
        logger.info("Team %s marked %s", team_id, "paid" if payload.paid else "unpaid")
        return team_to_response(team, _rank_of(team_id))

    @app.put("/admin/teams/{team_id}/roster", response_model=TeamResponse, dependencies=[Depends(require_admin)])
    def replace_roster(team_id: str, payload: RosterUpdateRequest):
        _fetch_team_or_404(team_id)
        errors = validate_roster(payload.players, classification=_cached_classification())
        if errors:
            raise HTTPException(status_code=400, detail=errors)
        team = store.update_roster(team_id, {slot: payload.players.get(slot) for slot in ROSTER_SLOTS})
        snapshot = stats.peek(settings.season)
        if snapshot is not None:
            reconcile_teams(store, snapshot, teams=[team], clock=clock)
            team = _fetch_team_or_404(team_id)
        return team_to_response(team, _rank_of(team_id))

    @app.post(
        "/admin/teams/{team_id}/reconcile",
        response_model=ReconciliationResponse,
        dependencies=[Depends(require_admin)],
    )
    def reconcile_single(team_id: str):
        _fetch_team_or_404(team_id)
        return _reconcile("team", force_refresh=False, team_ids=[team_id])

    @app.delete("/admin/teams/{team_id}", dependencies=[Depends(require_admin)])
    async def delete_team(team_id: str):
        deleted = store.delete_team(team_id)
        if deleted:
            logger.info("Deleted team %s", team_id)
        return {"team_id": team_id, "deleted": deleted}

    return app
