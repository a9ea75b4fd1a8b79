"""Persistence layer for teams, stats snapshots and reconciliation runs."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from pydantic import ValidationError

from hrfantasy.config import ROSTER_SLOTS
from hrfantasy.models import Player, RosterSlot, StatsSnapshot


logger = logging.getLogger(__name__)

RUN_FINAL_STATES = {"completed", "failed"}


@dataclass
class TeamRecord:
    team_id: str
    name: str
    owner_id: str
    paid: bool
    roster: Dict[str, Optional[RosterSlot]]
    player_home_runs: Optional[List[int]]
    created_at: datetime
    last_updated: Optional[datetime]
    # fetched_at of the snapshot behind player_home_runs.
    stats_as_of: Optional[datetime] = None

    @property
    def aggregate_home_runs(self) -> int:
        # Derived; never stored on its own.
        return sum(self.player_home_runs or [])

    def slot_player_ids(self) -> List[Optional[str]]:
        return [slot.player_id if slot else None for slot in (self.roster.get(name) for name in ROSTER_SLOTS)]


@dataclass
class ReconciliationRun:
    run_id: str
    state: str
    trigger: str
    season: int
    message: Optional[str]
    report: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _roster_to_json(roster: Mapping[str, Optional[RosterSlot]]) -> str:
    return json.dumps({slot: (player.model_dump() if player else None) for slot, player in roster.items()})


def _roster_from_json(raw: str) -> Dict[str, Optional[RosterSlot]]:
    data = json.loads(raw) if raw else {}
    roster: Dict[str, Optional[RosterSlot]] = {}
    for slot in ROSTER_SLOTS:
        value = data.get(slot) if isinstance(data, dict) else None
        if value is None:
            roster[slot] = None
            continue
        try:
            roster[slot] = RosterSlot.model_validate(value)
        except ValidationError:
            logger.debug("Unreadable roster slot %s: %r", slot, value)
            roster[slot] = None
    return roster


class TeamStore:
    """SQLite-backed document store keyed by team id."""

    def __init__(self, db_path: Path | str):
        self._use_uri = False
        env_db = os.getenv("HRFANTASY_DB_PATH")
        target = env_db or str(db_path)
        if target.startswith("file:"):
            self.db_path: Path | str = target
            self._use_uri = True
        else:
            self.db_path = Path(target)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.db_path, uri=self._use_uri)
        except sqlite3.OperationalError:
            fallback_dir = Path(tempfile.gettempdir()) / "hrfantasy-runtime"
            fallback_dir.mkdir(parents=True, exist_ok=True)
            fallback = fallback_dir / "hrfantasy.sqlite"
            logger.warning("Unable to open %s; falling back to %s", self.db_path, fallback)
            conn = sqlite3.connect(fallback)
            self.db_path = fallback
            self._use_uri = False
            self._create_schema(conn)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS teams (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                paid INTEGER NOT NULL DEFAULT 0,
                roster_json TEXT NOT NULL,
                player_home_runs_json TEXT,
                created_at TEXT NOT NULL,
                last_updated TEXT,
                stats_as_of TEXT
            )
            """
        )
        try:
            conn.execute("ALTER TABLE teams ADD COLUMN stats_as_of TEXT")
        except sqlite3.OperationalError:
            pass
        conn.execute("CREATE INDEX IF NOT EXISTS teams_owner ON teams (owner_id)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
                season INTEGER PRIMARY KEY,
                fetched_at TEXT NOT NULL,
                source TEXT NOT NULL,
                players_json TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS reconciliation_runs (
                id TEXT PRIMARY KEY,
                state TEXT NOT NULL,
                trigger TEXT NOT NULL,
                season INTEGER NOT NULL,
                message TEXT,
                report_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                completed_at TEXT
            )
            """
        )
        conn.commit()

    # Teams

    def create_team(
        self,
        *,
        name: str,
        owner_id: str,
        roster: Mapping[str, Optional[RosterSlot]],
        team_id: Optional[str] = None,
        paid: bool = False,
        created_at: Optional[datetime] = None,
    ) -> TeamRecord:
        team_id = team_id or uuid4().hex
        created_at = created_at or datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO teams (id, name, owner_id, paid, roster_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (team_id, name, owner_id, int(paid), _roster_to_json(roster), created_at.isoformat()),
            )
            conn.commit()
        team = self.get_team(team_id)
        if team is None:  # pragma: no cover
            raise KeyError(f"Team {team_id} not found after insert")
        return team

    def get_team(self, team_id: str) -> Optional[TeamRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
            if row is None:
                return None
            return self._row_to_team(row)

    def list_teams(self) -> List[TeamRecord]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM teams ORDER BY seq").fetchall()
        return [self._row_to_team(row) for row in rows]

    def list_teams_for_owner(self, owner_id: str) -> List[TeamRecord]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM teams WHERE owner_id = ? ORDER BY seq", (owner_id,)).fetchall()
        return [self._row_to_team(row) for row in rows]

    def count_teams_for_owner(self, owner_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM teams WHERE owner_id = ?", (owner_id,)).fetchone()
        return int(row[0])

    def set_paid(self, team_id: str, paid: bool) -> TeamRecord:
        self._update(team_id, "UPDATE teams SET paid = ? WHERE id = ?", (int(paid), team_id))
        return self._require(team_id)

    def update_roster(self, team_id: str, roster: Mapping[str, Optional[RosterSlot]]) -> TeamRecord:
        # Per-player totals are positional, so they are cleared with the roster.
        self._update(
            team_id,
            "UPDATE teams SET roster_json = ?, player_home_runs_json = NULL, stats_as_of = NULL WHERE id = ?",
            (_roster_to_json(roster), team_id),
        )
        return self._require(team_id)

    def update_team_stats(
        self,
        team_id: str,
        player_home_runs: Sequence[int],
        *,
        last_updated: Optional[datetime] = None,
        stats_as_of: Optional[datetime] = None,
    ) -> TeamRecord:
        """Write per-player totals and both timestamps in one statement.

        ``last_updated`` is when the write happened; ``stats_as_of`` is when
        the underlying snapshot was fetched (defaults to ``last_updated``).
        """

        if len(player_home_runs) != len(ROSTER_SLOTS):
            raise ValueError(f"expected {len(ROSTER_SLOTS)} per-player totals, got {len(player_home_runs)}")
        last_updated = last_updated or datetime.now(timezone.utc)
        stats_as_of = stats_as_of or last_updated
        self._update(
            team_id,
            "UPDATE teams SET player_home_runs_json = ?, last_updated = ?, stats_as_of = ? WHERE id = ?",
            (
                json.dumps([int(value) for value in player_home_runs]),
                last_updated.isoformat(),
                stats_as_of.isoformat(),
                team_id,
            ),
        )
        return self._require(team_id)

    def delete_team(self, team_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM teams WHERE id = ?", (team_id,))
            conn.commit()
        return cursor.rowcount > 0

    def _update(self, team_id: str, statement: str, params: tuple) -> None:
        with self._connect() as conn:
            cursor = conn.execute(statement, params)
            conn.commit()
        if cursor.rowcount == 0:
            raise KeyError(f"Team {team_id} not found")

    def _require(self, team_id: str) -> TeamRecord:
        team = self.get_team(team_id)
        if team is None:
            raise KeyError(f"Team {team_id} not found")
        return team

    def _row_to_team(self, row: sqlite3.Row) -> TeamRecord:
        raw_home_runs = row["player_home_runs_json"]
        return TeamRecord(
            team_id=row["id"],
            name=row["name"],
            owner_id=row["owner_id"],
            paid=bool(row["paid"]),
            roster=_roster_from_json(row["roster_json"]),
            player_home_runs=[int(value) for value in json.loads(raw_home_runs)] if raw_home_runs else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            last_updated=_parse_ts(row["last_updated"]),
            stats_as_of=_parse_ts(row["stats_as_of"]),
        )

    # Snapshots

    def save_snapshot(self, snapshot: StatsSnapshot) -> None:
        players = [player.model_dump() for player in snapshot.players]
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO snapshots (season, fetched_at, source, players_json)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(season) DO UPDATE SET
                    fetched_at = excluded.fetched_at,
                    source = excluded.source,
                    players_json = excluded.players_json
                """,
                (snapshot.season, snapshot.fetched_at.isoformat(), snapshot.source, json.dumps(players)),
            )
            conn.commit()

    def get_latest_snapshot(self, season: int) -> Optional[StatsSnapshot]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM snapshots WHERE season = ?", (season,)).fetchone()
        if row is None:
            return None
        return StatsSnapshot(
            season=row["season"],
            players=tuple(Player.model_validate(item) for item in json.loads(row["players_json"])),
            fetched_at=datetime.fromisoformat(row["fetched_at"]),
            source=row["source"],
        )

    # Reconciliation runs

    def create_run(self, *, trigger: str, season: int, message: Optional[str] = None) -> ReconciliationRun:
        run_id = uuid4().hex
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reconciliation_runs (
                    id, state, trigger, season, message, report_json, created_at, updated_at
                ) VALUES (?, 'running', ?, ?, ?, '{}', ?, ?)
                """,
                (run_id, trigger, season, message, now_iso, now_iso),
            )
            conn.commit()
        run = self.get_run(run_id)
        if run is None:  # pragma: no cover
            raise KeyError(f"Run {run_id} not found after insert")
        return run

    def finish_run(
        self,
        run_id: str,
        *,
        state: str,
        message: Optional[str] = None,
        report: Optional[Mapping[str, Any]] = None,
    ) -> ReconciliationRun:
        if state not in RUN_FINAL_STATES:
            raise ValueError(f"Unsupported final run state {state!r}")
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE reconciliation_runs
                SET state = ?, message = ?, report_json = ?, updated_at = ?, completed_at = ?
                WHERE id = ?
                """,
                (state, message, json.dumps(dict(report or {})), now_iso, now_iso, run_id),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise KeyError(f"Run {run_id} not found")
        run = self.get_run(run_id)
        if run is None:  # pragma: no cover
            raise KeyError(f"Run {run_id} not found after update")
        return run

    def get_run(self, run_id: str) -> Optional[ReconciliationRun]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM reconciliation_runs WHERE id = ?", (run_id,)).fetchone()
            if row is None:
                return None
            return self._row_to_run(row)

    def list_runs(self, limit: int = 50) -> List[ReconciliationRun]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM reconciliation_runs ORDER BY datetime(created_at) DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_run(row) for row in rows]

    def _row_to_run(self, row: sqlite3.Row) -> ReconciliationRun:
        return ReconciliationRun(
            run_id=row["id"],
            state=row["state"],
            trigger=row["trigger"],
            season=row["season"],
            message=row["message"],
            report=json.loads(row["report_json"]) if row["report_json"] else {},
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            completed_at=_parse_ts(row["completed_at"]),
        )
