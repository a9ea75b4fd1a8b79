from hrfantasy.config import CAPPED_TIER_RULES
from hrfantasy.models import Player
from hrfantasy.pool import classify_players
from tests.conftest import sample_leaders


def _ids(players):
    return [player.player_id for player in players]


def test_hundred_leaders_split_ten_fifteen_twenty():
    classification = classify_players(sample_leaders(100))

    assert len(classification.tier1) == 10
    assert len(classification.tier2) == 15
    assert len(classification.tier3) == 20
    assert len(classification.wildcard) == 55
    assert _ids(classification.tier1) == [str(1000 + index) for index in range(10)]


def test_tiers_are_ordered_by_home_runs():
    shuffled = list(reversed(sample_leaders(30)))

    classification = classify_players(shuffled)

    assert classification.tier1[0].home_runs == 60
    assert min(p.home_runs for p in classification.tier1) >= max(p.home_runs for p in classification.tier2)
    assert min(p.home_runs for p in classification.tier2) >= max(p.home_runs for p in classification.tier3)


def test_ties_keep_provider_order():
    players = [
        Player(player_id="a", name="A", team="NYY", home_runs=20),
        Player(player_id="b", name="B", team="NYY", home_runs=25),
        Player(player_id="c", name="C", team="NYY", home_runs=20),
    ]

    classification = classify_players(players)

    assert _ids(classification.tier1) == ["b", "a", "c"]


def test_small_leaderboard_degrades_without_error():
    classification = classify_players(sample_leaders(10))

    assert len(classification.tier1) == 6
    assert len(classification.tier2) == 4
    assert classification.tier3 == ()
    assert classification.wildcard == ()


def test_empty_leaderboard_yields_empty_groups():
    classification = classify_players([])

    assert all(group == () for group in classification.groups().values())


def test_groups_are_disjoint_including_universe_overlap():
    leaders = sample_leaders(40)
    universe = leaders[:3] + leaders[-2:] + [
        Player(player_id="9001", name="Bench Bat", team="SEA", home_runs=0),
        Player(player_id="9001", name="Bench Bat", team="SEA", home_runs=0),
    ]

    classification = classify_players(leaders, universe=universe)

    seen = [pid for group in classification.groups().values() for pid in _ids(group)]
    assert len(seen) == len(set(seen))
    assert set(seen) == {player.player_id for player in leaders} | {"9001"}
    assert classification.tier_of("9001") == "wildcard"
    assert classification.tier_of(leaders[0].player_id) == "tier1"


def test_duplicate_leader_entries_are_placed_once():
    leaders = sample_leaders(20)
    classification = classify_players(leaders + leaders[:2])

    seen = [pid for group in classification.groups().values() for pid in _ids(group)]
    assert len(seen) == len(set(seen)) == 20


def test_capped_rules_push_the_rest_to_wildcards():
    classification = classify_players(sample_leaders(100), rules=CAPPED_TIER_RULES)

    assert [len(classification.tier1), len(classification.tier2), len(classification.tier3)] == [6, 6, 6]
    assert len(classification.wildcard) == 82


def test_pool_lookup_by_slot():
    classification = classify_players(sample_leaders(30))

    assert classification.pool_for("wildcard2") == classification.wildcard
    assert classification.pool_for("tier3") == classification.tier3
    assert classification.find("1000").name == "Slugger 0"
    assert classification.find("missing") is None
