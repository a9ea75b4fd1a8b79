"""TTL cache in front of the statistics provider."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from hrfantasy.ingest.errors import StatsProviderError
from hrfantasy.models import Player, StatsSnapshot

if TYPE_CHECKING:
    from hrfantasy.ingest.mlb_stats import StatsProvider
    from hrfantasy.persistence import TeamStore


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotCache:
    """Latest leaderboard snapshot per season.

    Entries never expire from the cache; ``get`` labels them stale once they
    are older than ``ttl_seconds`` so callers can decide whether to refetch.
    When a store is attached, snapshots are persisted and reloaded after a
    restart.
    """

    def __init__(self, ttl_seconds: int, clock: Clock | None = None, store: "TeamStore | None" = None):
        self.ttl = timedelta(seconds=max(0, ttl_seconds))
        self._clock = clock or utc_now
        self._store = store
        self._entries: Dict[int, StatsSnapshot] = {}
        self._universe: Dict[int, Tuple[datetime, List[Player]]] = {}

    def now(self) -> datetime:
        return self._clock()

    def is_fresh(self, fetched_at: datetime) -> bool:
        return self.now() - fetched_at < self.ttl

    def get(self, season: int) -> Optional[StatsSnapshot]:
        snapshot = self._entries.get(season)
        if snapshot is None and self._store is not None:
            snapshot = self._store.get_latest_snapshot(season)
            if snapshot is not None:
                self._entries[season] = snapshot
        if snapshot is None:
            return None
        return snapshot.model_copy(update={"stale": not self.is_fresh(snapshot.fetched_at)})

    def put(self, snapshot: StatsSnapshot) -> None:
        snapshot = snapshot.model_copy(update={"stale": False})
        self._entries[snapshot.season] = snapshot
        if self._store is None:
            return
        try:
            self._store.save_snapshot(snapshot)
        except sqlite3.Error as exc:
            logger.warning("Unable to persist snapshot for season %d: %s", snapshot.season, exc)

    def get_universe(self, season: int) -> Optional[List[Player]]:
        entry = self._universe.get(season)
        if entry is None or not self.is_fresh(entry[0]):
            return None
        return list(entry[1])

    def put_universe(self, season: int, players: List[Player]) -> None:
        self._universe[season] = (self.now(), list(players))


class CachedStatsProvider:
    """Serve leaderboard snapshots, preferring fresh cache, then the provider,
    then stale-but-real cached data. Fabricated data is never returned."""

    def __init__(self, provider: "StatsProvider", cache: SnapshotCache, *, source: str = "mlb-stats-api"):
        self.provider = provider
        self.cache = cache
        self.source = source

    def peek(self, season: int) -> Optional[StatsSnapshot]:
        return self.cache.get(season)

    def get_snapshot(self, season: int, *, force_refresh: bool = False) -> StatsSnapshot:
        cached = self.cache.get(season)
        if cached is not None and not cached.stale and not force_refresh:
            logger.debug("Using cached snapshot for season %d fetched at %s", season, cached.fetched_at.isoformat())
            return cached
        try:
            players = self.provider.fetch_home_run_leaders(season)
        except StatsProviderError as exc:
            if cached is None:
                logger.error("Stats fetch for season %d failed with no cached snapshot: %s", season, exc)
                raise
            logger.warning(
                "Stats fetch for season %d failed (%s); serving cached snapshot from %s (stale=%s)",
                season,
                exc,
                cached.fetched_at.isoformat(),
                cached.stale,
            )
            return cached
        snapshot = StatsSnapshot(
            season=season,
            players=tuple(players),
            fetched_at=self.cache.now(),
            source=self.source,
        )
        self.cache.put(snapshot)
        return snapshot

    def get_universe(self, season: int) -> List[Player]:
        """Active players used to widen the wildcard pool; empty when unavailable."""

        cached = self.cache.get_universe(season)
        if cached is not None:
            return cached
        try:
            players = self.provider.fetch_active_players(season)
        except StatsProviderError as exc:
            logger.warning("Active player list for season %d unavailable: %s", season, exc)
            return []
        self.cache.put_universe(season, players)
        return players
