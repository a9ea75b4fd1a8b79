from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel

from hrfantasy.models import Player


class SnapshotInfo(BaseModel):
    season: int
    fetched_at: datetime
    source: str
    stale: bool
    player_count: int


class TierResponse(BaseModel):
    tier1: List[Player]
    tier2: List[Player]
    tier3: List[Player]
    wildcard: List[Player]
    snapshot: SnapshotInfo
