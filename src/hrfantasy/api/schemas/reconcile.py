from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from .players import SnapshotInfo


class TeamDeltaResponse(BaseModel):
    team_id: str
    team_name: str
    previous_aggregate: int
    new_aggregate: int
    player_home_runs: List[int]


class TeamFailureResponse(BaseModel):
    team_id: str
    team_name: str
    error: str


class ReconciliationResponse(BaseModel):
    run_id: Optional[str] = None
    updated_team_count: int
    per_team_deltas: List[TeamDeltaResponse]
    failed_teams: List[TeamFailureResponse]
    snapshot: SnapshotInfo
