from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from hrfantasy.models import RecentHomeRun, RosterSlot


class TeamCreateRequest(BaseModel):
    name: str = Field(..., max_length=80)
    owner_id: str = Field(..., min_length=1)
    players: Dict[str, Optional[RosterSlot]] = Field(default_factory=dict)


class RosterUpdateRequest(BaseModel):
    players: Dict[str, Optional[RosterSlot]]


class PaidUpdateRequest(BaseModel):
    paid: bool


class TeamResponse(BaseModel):
    team_id: str
    name: str
    owner_id: str
    paid: bool
    rank: Optional[int] = None
    aggregate_home_runs: int
    player_home_runs: Optional[List[int]]
    roster: Dict[str, Optional[RosterSlot]]
    created_at: datetime
    last_updated: Optional[datetime]
    stats_as_of: Optional[datetime] = None


class RecentHomeRunsResponse(BaseModel):
    team_id: str
    start_date: date
    end_date: date
    home_runs: List[RecentHomeRun]
