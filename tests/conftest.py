from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from hrfantasy.ingest import UpstreamUnavailable
from hrfantasy.models import Player, RecentHomeRun
from hrfantasy.persistence import TeamStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubProvider:
    """In-memory provider; set ``error`` to make the next fetches fail."""

    def __init__(
        self,
        players: list[Player],
        universe: list[Player] | None = None,
        recent: list[RecentHomeRun] | None = None,
    ):
        self.players = players
        self.universe = universe or []
        self.recent = recent or []
        self.error: Exception | None = None
        self.calls = 0
        self.recent_requests: list[tuple[list[str], int, date | None]] = []
        self.closed = False

    def __enter__(self) -> "StubProvider":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def fetch_home_run_leaders(self, season: int) -> list[Player]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.players)

    def fetch_active_players(self, season: int) -> list[Player]:
        if self.error is not None:
            raise self.error
        return list(self.universe)

    def fetch_recent_home_runs(self, player_ids, *, days: int = 7, end: date | None = None) -> list[RecentHomeRun]:
        self.recent_requests.append((list(player_ids), days, end))
        if self.error is not None:
            raise self.error
        wanted = set(player_ids)
        return [home_run for home_run in self.recent if home_run.player_id in wanted]


def sample_leaders(count: int = 30) -> list[Player]:
    return [
        Player(
            player_id=str(1000 + index),
            name=f"Slugger {index}",
            team="NYY" if index % 2 else "LAD",
            home_runs=max(0, 60 - index),
            position="OF",
        )
        for index in range(count)
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> TeamStore:
    return TeamStore(tmp_path / "hrfantasy.sqlite")


@pytest.fixture
def unavailable() -> UpstreamUnavailable:
    return UpstreamUnavailable("MLB Stats API responded with status 503", status_code=503)
