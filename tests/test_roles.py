import random
from types import SimpleNamespace

from dailymafia.game.roles import (
    RoleKey, Team, get_eligible_roles, get_role_definition, get_role_distribution,
    neutral_count_for, wasp_count_for
)
from dailymafia.game.win_conditions import check_win_conditions, determine_winners


def _player(role, alive=True, player_id=0):
    return SimpleNamespace(role=role, alive=alive, player_id=player_id)


def test_lookup_by_key_and_by_name():
    assert get_role_definition("NURSE_BEE").name == "Nurse Bee"
    assert get_role_definition("Nurse Bee").key == "NURSE_BEE"
    assert get_role_definition("pending") is None
    assert get_role_definition(None) is None


def test_night_action_capability():
    assert get_role_definition("KILLER_WASP").has_night_action
    assert get_role_definition("VETERAN_BEE").has_night_action
    assert not get_role_definition("WORKER_BEE").has_night_action
    assert not get_role_definition("CLOWN_BEETLE").has_night_action


def test_keywords_are_role_specific():
    assert get_role_definition("VETERAN_BEE").keywords == ("skip", "alert")
    assert get_role_definition("BUTTERFLY").keywords == ("skip", "vest")
    assert get_role_definition("FIRE_ANT").keywords == ("skip", "ignite")
    assert get_role_definition("NURSE_BEE").keywords == ("skip",)
    assert get_role_definition("WORKER_BEE").keywords == ()


def test_eligible_roles_exclude_voice_only_and_ultimate_for_plus():
    plus_keys = {role.key for role in get_eligible_roles("plus")}
    ultimate_keys = {role.key for role in get_eligible_roles("ultimate")}

    assert "DEAF_BEE" not in plus_keys
    assert "DEAF_BEE" not in ultimate_keys
    for key in ("TRACKER_BEE", "FRAMER_WASP", "FIRE_ANT"):
        assert key not in plus_keys
        assert key in ultimate_keys


def test_distribution_sizes_and_required_roles():
    assert get_role_distribution(5) is None

    for count in (8, 10, 14, 20):
        roles = get_role_distribution(count, "plus", rng=random.Random(count))
        assert len(roles) == count
        assert RoleKey.WASP_QUEEN.value in roles
        teams = [get_role_definition(r).team for r in roles]
        assert teams.count(Team.WASP) == wasp_count_for(count)
        assert teams.count(Team.NEUTRAL) == neutral_count_for(count)


def test_plus_distribution_never_deals_ultimate_roles():
    rng = random.Random(7)
    for _ in range(50):
        roles = get_role_distribution(16, "plus", rng=rng)
        assert not {"TRACKER_BEE", "FRAMER_WASP", "FIRE_ANT", "DEAF_BEE"} & set(roles)


def test_bees_win_when_no_wasps_or_killers_remain():
    players = [_player("WORKER_BEE"), _player("NURSE_BEE"), _player("KILLER_WASP", alive=False)]
    assert check_win_conditions(players) == Team.BEE


def test_wasps_win_at_parity():
    players = [_player("KILLER_WASP"), _player("WORKER_BEE"), _player("NURSE_BEE", alive=False)]
    assert check_win_conditions(players) == Team.WASP


def test_game_continues_while_bees_outnumber_wasps():
    players = [_player("KILLER_WASP"), _player("WORKER_BEE"), _player("NURSE_BEE")]
    assert check_win_conditions(players) is None


def test_lone_neutral_killer_wins():
    players = [_player("MURDER_HORNET"), _player("WORKER_BEE", alive=False)]
    assert check_win_conditions(players) == Team.NEUTRAL


def test_neutral_win_pays_only_the_surviving_killer():
    players = [
        _player("MURDER_HORNET", player_id=1),
        _player("BUTTERFLY", player_id=2),
        _player("FIRE_ANT", alive=False, player_id=3),
    ]
    winners = determine_winners(players, Team.NEUTRAL)
    assert [p.player_id for p in winners] == [1]


def test_team_winners_include_dead_members():
    players = [
        _player("WORKER_BEE", player_id=1),
        _player("NURSE_BEE", alive=False, player_id=2),
        _player("KILLER_WASP", alive=False, player_id=3),
    ]
    assert [p.player_id for p in determine_winners(players, Team.BEE)] == [1, 2]
