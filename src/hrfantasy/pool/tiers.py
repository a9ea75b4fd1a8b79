"""Partition the home-run leaderboard into draft tiers and a wildcard pool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from hrfantasy.config import DEFAULT_TIER_RULES, TIER_SLOTS, TierRules, slot_pool
from hrfantasy.models import Player


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierClassification:
    tier1: Tuple[Player, ...]
    tier2: Tuple[Player, ...]
    tier3: Tuple[Player, ...]
    wildcard: Tuple[Player, ...]

    def groups(self) -> Dict[str, Tuple[Player, ...]]:
        return {
            "tier1": self.tier1,
            "tier2": self.tier2,
            "tier3": self.tier3,
            "wildcard": self.wildcard,
        }

    def tier_of(self, player_id: str) -> Optional[str]:
        for group, players in self.groups().items():
            if any(player.player_id == player_id for player in players):
                return group
        return None

    def pool_for(self, slot: str) -> Tuple[Player, ...]:
        return self.groups()[slot_pool(slot)]

    def find(self, player_id: str) -> Optional[Player]:
        for players in self.groups().values():
            for player in players:
                if player.player_id == player_id:
                    return player
        return None


def classify_players(
    players: Iterable[Player],
    *,
    rules: TierRules = DEFAULT_TIER_RULES,
    universe: Iterable[Player] = (),
) -> TierClassification:
    """Split ``players`` into three tiers plus the wildcard pool.

    Players are ordered by descending home runs with a stable sort, so the
    incoming order breaks ties. Tiers are filled in sequence and simply come
    up short when the leaderboard is small. Everyone left over, followed by
    the ``universe`` of active players, lands in the wildcard pool with each
    id appearing at most once across all four groups.
    """

    ranked = sorted(players, key=lambda player: -player.home_runs)
    sizes = rules.sizes(len(ranked))

    placed: set[str] = set()
    tiers: Dict[str, List[Player]] = {slot: [] for slot in TIER_SLOTS}
    cursor = 0
    for slot in TIER_SLOTS:
        target = sizes[slot]
        while len(tiers[slot]) < target and cursor < len(ranked):
            player = ranked[cursor]
            cursor += 1
            if player.player_id in placed:
                continue
            placed.add(player.player_id)
            tiers[slot].append(player)

    wildcard: List[Player] = []
    for player in list(ranked[cursor:]) + list(universe):
        if player.player_id in placed:
            continue
        placed.add(player.player_id)
        wildcard.append(player)

    logger.debug(
        "Classified %d leaders: tier sizes %s, %d wildcards",
        len(ranked),
        [len(tiers[slot]) for slot in TIER_SLOTS],
        len(wildcard),
    )
    return TierClassification(
        tier1=tuple(tiers["tier1"]),
        tier2=tuple(tiers["tier2"]),
        tier3=tuple(tiers["tier3"]),
        wildcard=tuple(wildcard),
    )
