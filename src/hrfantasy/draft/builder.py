"""Draft-time validation and creation of team records."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from hrfantasy.config import ROSTER_SLOTS, WILDCARD_SLOTS, slot_pool
from hrfantasy.models import RosterSlot
from hrfantasy.persistence import TeamRecord, TeamStore
from hrfantasy.pool import TierClassification


logger = logging.getLogger(__name__)


class TeamValidationError(ValueError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class TeamLimitExceeded(RuntimeError):
    def __init__(self, owner_id: str, limit: int):
        super().__init__(f"Owner {owner_id} already has the maximum of {limit} teams")
        self.owner_id = owner_id
        self.limit = limit


class TeamSelection(BaseModel):
    """A user's draft picks, keyed by roster slot."""

    name: str
    owner_id: str = Field(..., min_length=1)
    players: Dict[str, Optional[RosterSlot]] = Field(default_factory=dict)


def validate_roster(
    roster: Mapping[str, Optional[RosterSlot]],
    *,
    classification: TierClassification | None = None,
) -> List[str]:
    """Return every problem with a six-slot roster (empty when valid).

    Any player may fill only one of the six slots, wildcard or tier.
    """

    errors: List[str] = []
    unknown = sorted(set(roster) - set(ROSTER_SLOTS))
    if unknown:
        errors.append(f"Unknown roster slots: {', '.join(unknown)}")

    picks: Dict[str, str] = {}
    for slot in ROSTER_SLOTS:
        player = roster.get(slot)
        if player is None or not player.player_id.strip():
            errors.append(f"Missing player for {slot}")
            continue
        picks[slot] = player.player_id

    wildcard_counts = Counter(picks[slot] for slot in WILDCARD_SLOTS if slot in picks)
    if any(count > 1 for count in wildcard_counts.values()):
        errors.append("The same player cannot fill more than one wildcard slot")

    counts = Counter(picks.values())
    repeated = sorted(
        player_id
        for player_id, count in counts.items()
        if count > 1 and count != wildcard_counts.get(player_id, 0)
    )
    if repeated:
        errors.append(f"Players selected in more than one slot: {', '.join(repeated)}")

    if classification is not None:
        for slot, player_id in picks.items():
            group = slot_pool(slot)
            placed = classification.tier_of(player_id)
            if group == "wildcard":
                # Anyone outside the three tiers is wildcard-eligible.
                if placed is not None and placed != "wildcard":
                    errors.append(f"Player {player_id} is in {placed} and cannot fill {slot}")
            elif placed != group:
                errors.append(f"Player {player_id} is not eligible for {slot} (not in {group})")
    return errors


def validate_selection(selection: TeamSelection, *, classification: TierClassification | None = None) -> None:
    errors: List[str] = []
    if not selection.name.strip():
        errors.append("Team name is required")
    errors.extend(validate_roster(selection.players, classification=classification))
    if errors:
        raise TeamValidationError(errors)


def _resolve_roster(
    selection: TeamSelection,
    classification: TierClassification | None,
) -> Dict[str, Optional[RosterSlot]]:
    # Fill display fields from the current pool when the client sent only ids.
    roster: Dict[str, Optional[RosterSlot]] = {}
    for slot in ROSTER_SLOTS:
        pick = selection.players.get(slot)
        if pick is not None and classification is not None and not pick.name:
            player = classification.find(pick.player_id)
            if player is not None:
                pick = RosterSlot.from_player(player)
        roster[slot] = pick
    return roster


def build_team(
    store: TeamStore,
    selection: TeamSelection,
    *,
    max_teams_per_owner: int,
    classification: TierClassification | None = None,
) -> TeamRecord:
    """Validate a draft and persist the new team; nothing is written on failure."""

    existing = store.count_teams_for_owner(selection.owner_id)
    if existing >= max_teams_per_owner:
        raise TeamLimitExceeded(selection.owner_id, max_teams_per_owner)
    validate_selection(selection, classification=classification)
    team = store.create_team(
        name=selection.name.strip(),
        owner_id=selection.owner_id,
        roster=_resolve_roster(selection, classification),
    )
    logger.info("Created team %s (%s) for owner %s", team.team_id, team.name, team.owner_id)
    return team
