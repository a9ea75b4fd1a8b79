"""Client for the MLB Stats API home-run leaderboard and recent game feeds."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Set

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from hrfantasy.config_loader import DEFAULT_STATS_BASE_URL
from hrfantasy.ingest.errors import StatsProviderError, UpstreamMalformed, UpstreamUnavailable
from hrfantasy.models import Player, RecentHomeRun


logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
UNKNOWN = "UNK"
RECENT_GAME_LIMIT = 20


class StatsProvider(Protocol):
    def fetch_home_run_leaders(self, season: int) -> List[Player]: ...

    def fetch_active_players(self, season: int) -> List[Player]: ...

    def fetch_recent_home_runs(
        self, player_ids: Iterable[str], *, days: int = 7, end: date | None = None
    ) -> List[RecentHomeRun]: ...


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning("Retrying MLB Stats API request (attempt %d): %s", retry_state.attempt_number, retry_state.outcome)


def _abbreviation(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, Mapping):
        for key in ("abbreviation", "name"):
            raw = value.get(key)
            if isinstance(raw, str) and raw.strip():
                return raw.strip()
    return None


def _leader_to_player(leader: Any, position: int) -> Player:
    if not isinstance(leader, Mapping):
        raise UpstreamMalformed(f"leader #{position} is not an object")
    person = leader.get("person")
    if not isinstance(person, Mapping) or person.get("id") in (None, ""):
        raise UpstreamMalformed(f"leader #{position} has no person id")
    name = person.get("fullName")
    if not isinstance(name, str) or not name.strip():
        raise UpstreamMalformed(f"leader #{position} has no fullName")
    raw_value = leader.get("value")
    try:
        home_runs = int(raw_value)
    except (TypeError, ValueError) as exc:
        raise UpstreamMalformed(f"leader #{position} has non-integer value {raw_value!r}") from exc
    if home_runs < 0:
        raise UpstreamMalformed(f"leader #{position} has negative value {home_runs}")
    return Player(
        player_id=str(person["id"]),
        name=name.strip(),
        team=_abbreviation(leader.get("team")) or UNKNOWN,
        home_runs=home_runs,
        position=_abbreviation(leader.get("position")) or UNKNOWN,
    )


def parse_home_run_leaders(payload: Any) -> List[Player]:
    """Turn a ``stats/leaders`` payload into players ordered by home runs.

    The sort is stable, so provider order breaks ties.
    """

    if not isinstance(payload, Mapping):
        raise UpstreamMalformed("leaders response is not an object")
    blocks = payload.get("leagueLeaders")
    if not isinstance(blocks, list) or not blocks:
        raise UpstreamMalformed("leaders response has no leagueLeaders")
    block = next(
        (item for item in blocks if isinstance(item, Mapping) and item.get("leaderCategory") == "homeRuns"),
        blocks[0],
    )
    leaders = block.get("leaders") if isinstance(block, Mapping) else None
    if not isinstance(leaders, list):
        raise UpstreamMalformed("homeRuns leaderboard has no leaders list")
    players = [_leader_to_player(leader, index) for index, leader in enumerate(leaders, start=1)]
    players.sort(key=lambda player: -player.home_runs)
    return players


def parse_active_players(payload: Any) -> List[Player]:
    if not isinstance(payload, Mapping) or not isinstance(payload.get("people"), list):
        raise UpstreamMalformed("players response has no people list")
    players: List[Player] = []
    for entry in payload["people"]:
        if not isinstance(entry, Mapping) or entry.get("id") in (None, "") or not entry.get("fullName"):
            logger.debug("Skipping unusable player entry %r", entry)
            continue
        players.append(
            Player(
                player_id=str(entry["id"]),
                name=str(entry["fullName"]).strip(),
                team=_abbreviation(entry.get("currentTeam")) or UNKNOWN,
                home_runs=0,
                position=_abbreviation(entry.get("primaryPosition")) or UNKNOWN,
            )
        )
    return players


def parse_schedule_game_pks(payload: Any) -> List[str]:
    """Game ids from a ``schedule`` payload, in schedule order."""

    if not isinstance(payload, Mapping):
        raise UpstreamMalformed("schedule response is not an object")
    game_pks: List[str] = []
    for day in payload.get("dates") or []:
        games = day.get("games") if isinstance(day, Mapping) else None
        for game in games or []:
            if isinstance(game, Mapping) and game.get("gamePk") not in (None, ""):
                game_pks.append(str(game["gamePk"]))
    return game_pks


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _home_run_plays(play_by_play: Any, player_ids: Set[str]) -> List[Mapping[str, Any]]:
    if not isinstance(play_by_play, Mapping):
        raise UpstreamMalformed("playByPlay response is not an object")
    plays = []
    for play in play_by_play.get("allPlays") or []:
        if not isinstance(play, Mapping):
            continue
        result = play.get("result") or {}
        batter = (play.get("matchup") or {}).get("batter") or {}
        if result.get("event") == "Home Run" and str(batter.get("id")) in player_ids:
            plays.append(play)
    return plays


def parse_game_home_runs(
    play_by_play: Any,
    boxscore: Any,
    player_ids: Set[str],
    game_pk: str,
) -> List[RecentHomeRun]:
    """Home runs in one game hit by any of ``player_ids``.

    The batting side comes from the half inning: the away club bats in the
    top, the home club in the bottom.
    """

    teams = boxscore.get("teams") if isinstance(boxscore, Mapping) else None
    teams = teams if isinstance(teams, Mapping) else {}
    clubs = {
        side: _abbreviation((teams.get(side) or {}).get("team")) or UNKNOWN
        for side in ("away", "home")
    }
    home_runs: List[RecentHomeRun] = []
    for play in _home_run_plays(play_by_play, player_ids):
        batter = play["matchup"]["batter"]
        about = play.get("about") or {}
        half = about.get("halfInning")
        if half == "top":
            team, opponent = clubs["away"], clubs["home"]
        elif half == "bottom":
            team, opponent = clubs["home"], clubs["away"]
        else:
            team, opponent = UNKNOWN, UNKNOWN
        home_runs.append(
            RecentHomeRun(
                player_id=str(batter["id"]),
                player_name=str(batter.get("fullName") or batter["id"]),
                team=team,
                opponent=opponent,
                game_pk=str(game_pk),
                occurred_at=_parse_timestamp(about.get("endTime")),
            )
        )
    return home_runs


class MlbStatsProvider:
    """Fetch season home-run totals from statsapi.mlb.com.

    Only the single HTTP call is retried; any failure after the last attempt
    surfaces as :class:`UpstreamUnavailable` and no placeholder data is ever
    returned.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        base_url: str = DEFAULT_STATS_BASE_URL,
        limit: int = 500,
        timeout: float = 15.0,
        attempts: int = 3,
        wait: wait_base | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout, connect=5.0),
            headers={"User-Agent": "hrfantasy/0.1", "Accept": "application/json"},
        )
        self._base_url = base_url.rstrip("/")
        self._limit = limit
        self._attempts = max(1, attempts)
        self._wait = wait if wait is not None else wait_exponential_jitter(initial=1, max=10)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MlbStatsProvider":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get_once(self, url: str, params: Mapping[str, Any]) -> httpx.Response:
        response = self._client.get(url, params=dict(params))
        if response.status_code in RETRYABLE_STATUS_CODES:
            response.raise_for_status()
        if not response.is_success:
            raise UpstreamUnavailable(
                f"MLB Stats API responded with status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _get_json(self, path: str, params: Mapping[str, Any]) -> Any:
        url = f"{self._base_url}/{path}"
        logger.debug("GET %s %s", url, dict(params))
        fetch = retry(
            stop=stop_after_attempt(self._attempts),
            wait=self._wait,
            retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
            before_sleep=_log_retry,
            reraise=True,
        )(self._get_once)
        try:
            response = fetch(url, params)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(f"MLB Stats API timed out after {self._attempts} attempts") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise UpstreamUnavailable(
                f"MLB Stats API responded with status {status} after {self._attempts} attempts",
                status_code=status,
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(f"MLB Stats API unreachable: {exc}") from exc
        except httpx.DecodingError as exc:
            raise UpstreamMalformed(f"MLB Stats API response could not be decoded: {exc}") from exc
        except httpx.RequestError as exc:
            raise UpstreamUnavailable(f"MLB Stats API request failed: {exc}") from exc
        logger.debug("MLB Stats API responded %d", response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamMalformed("MLB Stats API returned invalid JSON") from exc

    def fetch_home_run_leaders(self, season: int) -> List[Player]:
        payload = self._get_json(
            "stats/leaders",
            {
                "leaderCategories": "homeRuns",
                "season": season,
                "limit": self._limit,
                "sportId": 1,
            },
        )
        players = parse_home_run_leaders(payload)
        logger.info("Fetched %d home run leaders for season %d", len(players), season)
        return players

    def fetch_active_players(self, season: int) -> List[Player]:
        payload = self._get_json("sports/1/players", {"season": season})
        players = parse_active_players(payload)
        logger.info("Fetched %d active players for season %d", len(players), season)
        return players

    def fetch_recent_home_runs(
        self,
        player_ids: Iterable[str],
        *,
        days: int = 7,
        end: date | None = None,
        max_games: int = RECENT_GAME_LIMIT,
    ) -> List[RecentHomeRun]:
        """Home runs by ``player_ids`` in regular-season games of the last ``days``.

        The schedule call must succeed; a game whose feed cannot be read is
        skipped with a warning. Only the latest ``max_games`` games are read,
        and the box score is fetched only for games with a matching home run.
        Results are newest first.
        """

        wanted = {str(player_id) for player_id in player_ids}
        if not wanted:
            return []
        end = end or datetime.now(timezone.utc).date()
        start = end - timedelta(days=days)
        schedule = self._get_json(
            "schedule",
            {
                "sportId": 1,
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
                "gameType": "R",
                "fields": "dates,games,gamePk",
            },
        )
        game_pks = parse_schedule_game_pks(schedule)[-max_games:] if max_games > 0 else []

        home_runs: List[RecentHomeRun] = []
        for game_pk in game_pks:
            try:
                play_by_play = self._get_json(f"game/{game_pk}/playByPlay", {})
                if not _home_run_plays(play_by_play, wanted):
                    continue
                boxscore = self._get_json(f"game/{game_pk}/boxscore", {})
                home_runs.extend(parse_game_home_runs(play_by_play, boxscore, wanted, game_pk))
            except StatsProviderError as exc:
                logger.warning("Skipping game %s while collecting recent home runs: %s", game_pk, exc)
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        home_runs.sort(key=lambda home_run: home_run.occurred_at or oldest, reverse=True)
        logger.info(
            "Found %d recent home runs for %d players across %d games (%s to %s)",
            len(home_runs),
            len(wanted),
            len(game_pks),
            start.isoformat(),
            end.isoformat(),
        )
        return home_runs
