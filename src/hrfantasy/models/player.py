"""Canonical player models shared across ingestion, drafting and standings."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class Player(BaseModel):
    """Home-run snapshot for one MLB player at fetch time."""

    player_id: str = Field(..., min_length=1)
    name: str
    team: str
    home_runs: int = Field(default=0, ge=0)
    position: str = "UNK"

    model_config = ConfigDict(frozen=True)


class RosterSlot(BaseModel):
    """Player reference embedded in a team when it is drafted."""

    player_id: str = Field(..., min_length=1)
    name: str = ""
    team: str = ""
    position: str = ""
    home_runs: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_player(cls, player: Player) -> "RosterSlot":
        return cls(
            player_id=player.player_id,
            name=player.name,
            team=player.team,
            position=player.position,
            home_runs=player.home_runs,
        )


class StatsSnapshot(BaseModel):
    """A full leaderboard pull with provenance.

    ``stale`` is set when the snapshot is served from cache after its
    freshness window has passed.
    """

    season: int
    players: Tuple[Player, ...]
    fetched_at: datetime
    source: str = "mlb-stats-api"
    stale: bool = False

    model_config = ConfigDict(frozen=True)

    def index(self) -> Dict[str, Player]:
        return {player.player_id: player for player in self.players}

    def summary(self) -> Dict[str, Any]:
        return {
            "season": self.season,
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source,
            "stale": self.stale,
            "player_count": len(self.players),
        }


class RecentHomeRun(BaseModel):
    """One home run hit by a rostered player in a recent game."""

    player_id: str
    player_name: str
    team: str = "UNK"
    opponent: str = "UNK"
    game_pk: str
    occurred_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)
