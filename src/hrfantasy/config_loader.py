"""Load application settings from the environment and JSON profiles."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)

_ENV_PREFIX = "HRFANTASY_"

DEFAULT_DB_PATH = Path("hrfantasy.sqlite")
DEFAULT_STATS_BASE_URL = "https://statsapi.mlb.com/api/v1"


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    return raw


def _env_int(name: str, default: int, *, min_value: int | None = None) -> int:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s%s: %s; using default %d", _ENV_PREFIX, name, raw, default)
        return default
    if min_value is not None:
        value = max(min_value, value)
    return value


def _env_float(name: str, default: float, *, clamp_min: float | None = None) -> float:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float for %s%s: %s; using default %.2f", _ENV_PREFIX, name, raw, default)
        return default
    if clamp_min is not None:
        value = max(clamp_min, value)
    return value


def _current_season() -> int:
    return datetime.now(timezone.utc).year


@dataclass
class AppSettings:
    db_path: str = str(DEFAULT_DB_PATH)
    season: int = field(default_factory=_current_season)
    stats_base_url: str = DEFAULT_STATS_BASE_URL
    leader_limit: int = 500
    http_timeout: float = 15.0
    fetch_attempts: int = 3
    cache_ttl_seconds: int = 3600
    max_teams_per_owner: int = 3
    admin_token: Optional[str] = None
    cron_secret: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AppSettings":
        defaults = cls()
        return cls(
            db_path=_env_str("DB_PATH", defaults.db_path) or defaults.db_path,
            season=_env_int("SEASON", defaults.season, min_value=1876),
            stats_base_url=(_env_str("STATS_BASE_URL", defaults.stats_base_url) or defaults.stats_base_url).rstrip("/"),
            leader_limit=_env_int("LEADER_LIMIT", defaults.leader_limit, min_value=1),
            http_timeout=_env_float("HTTP_TIMEOUT", defaults.http_timeout, clamp_min=1.0),
            fetch_attempts=_env_int("FETCH_ATTEMPTS", defaults.fetch_attempts, min_value=1),
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", defaults.cache_ttl_seconds, min_value=0),
            max_teams_per_owner=_env_int("MAX_TEAMS_PER_OWNER", defaults.max_teams_per_owner, min_value=1),
            admin_token=_env_str("ADMIN_TOKEN", None),
            cron_secret=_env_str("CRON_SECRET", None),
        )

    @classmethod
    def load(cls, path: Path, *, base: "AppSettings | None" = None) -> "AppSettings":
        """Overlay the keys of a JSON settings file on ``base`` (env by default)."""

        data: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown settings in {path}: {', '.join(unknown)}")
        return replace(base or cls.from_env(), **data)

    def save(self, path: Path) -> None:
        payload = asdict(self)
        # Secrets stay in the environment.
        payload.pop("admin_token", None)
        payload.pop("cron_secret", None)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
