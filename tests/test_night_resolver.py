from dailymafia.game.night_resolver import (
    NightActionInput, NightState, ResolverPlayer, resolve_night
)
from dailymafia.game.roles import get_role_definition


def _roster(*roles):
    """Players 1..n with full starting resources."""
    players = []
    for player_id, role in enumerate(roles, start=1):
        res = get_role_definition(role).starting_resources()
        players.append(ResolverPlayer(
            player_id=player_id, role=role, alive=True, display_name=f"P{player_id}",
            bullets=res["bullets"], vests=res["vests"], alerts=res["alerts"],
        ))
    return players


def _deaths(results):
    return {death.player_id: death.reason for death in results.deaths}


def test_no_actions_means_no_deaths():
    state = NightState(players=_roster("KILLER_WASP", "WORKER_BEE", "NURSE_BEE"), actions={}, night_number=1)
    results = resolve_night(state)
    assert results.deaths == []
    assert results.reports == []


def test_wasp_kill_lands_on_unprotected_target():
    state = NightState(
        players=_roster("KILLER_WASP", "WORKER_BEE", "NURSE_BEE"),
        actions={1: NightActionInput("mafia_kill", target=2)},
        night_number=1,
    )
    assert _deaths(resolve_night(state)) == {2: "killed by the Wasps"}


def test_heal_saves_the_target():
    state = NightState(
        players=_roster("KILLER_WASP", "WORKER_BEE", "NURSE_BEE"),
        actions={
            1: NightActionInput("mafia_kill", target=2),
            3: NightActionInput("heal", target=2),
        },
        night_number=1,
    )
    assert resolve_night(state).deaths == []


def test_bodyguard_dies_in_place_of_target_and_kills_attacker():
    state = NightState(
        players=_roster("GUARD_BEE", "KILLER_WASP", "WORKER_BEE"),
        actions={
            1: NightActionInput("guard", target=3),
            2: NightActionInput("mafia_kill", target=3),
        },
        night_number=1,
    )
    deaths = _deaths(resolve_night(state))
    assert deaths == {1: "died protecting another player", 2: "killed by a Bodyguard Bee"}


def test_jailed_killer_is_blocked():
    state = NightState(
        players=_roster("JAILER_BEE", "KILLER_WASP", "WORKER_BEE"),
        actions={
            1: NightActionInput("jail", target=2),
            2: NightActionInput("mafia_kill", target=3),
        },
        night_number=1,
    )
    assert resolve_night(state).deaths == []


def test_veteran_on_alert_kills_visitors_and_spends_an_alert():
    state = NightState(
        players=_roster("VETERAN_BEE", "KILLER_WASP", "WORKER_BEE"),
        actions={
            1: NightActionInput("alert", keyword="alert"),
            2: NightActionInput("mafia_kill", target=1),
        },
        night_number=1,
    )
    results = resolve_night(state)
    assert _deaths(results) == {2: "shot by a Veteran on alert"}
    assert results.resources[1]["alerts"] == 2


def test_soldier_spends_its_only_bullet():
    players = _roster("SOLDIER_BEE", "KILLER_WASP", "WORKER_BEE")
    state = NightState(players=players, actions={1: NightActionInput("shoot", target=2)}, night_number=1)
    results = resolve_night(state)
    assert _deaths(results) == {2: "shot by a Soldier Bee"}
    assert results.resources[1]["bullets"] == 0

    players[0].bullets = 0
    state = NightState(players=players, actions={1: NightActionInput("shoot", target=3)}, night_number=2)
    assert resolve_night(state).deaths == []


def test_murder_hornet_stings_its_visitors():
    state = NightState(
        players=_roster("MURDER_HORNET", "LOOKOUT_BEE", "WORKER_BEE"),
        actions={2: NightActionInput("lookout", target=1)},
        night_number=1,
    )
    assert _deaths(resolve_night(state)) == {2: "stung by the Murder Hornet"}


def test_fire_ant_douses_then_ignites():
    players = _roster("FIRE_ANT", "WORKER_BEE", "NURSE_BEE")
    first = resolve_night(NightState(
        players=players, actions={1: NightActionInput("arsonist", target=2)}, night_number=1,
    ))
    assert first.deaths == []
    assert first.doused_players == {2}

    second = resolve_night(NightState(
        players=players,
        actions={1: NightActionInput("arsonist", keyword="ignite")},
        night_number=2,
        doused_players=first.doused_players,
    ))
    assert _deaths(second) == {2: "burned by the Fire Ant"}
    assert second.doused_players == set()


def test_queens_guard_sees_through_everyone_but_the_wasp_queen():
    players = _roster("QUEENS_GUARD", "WASP_QUEEN", "KILLER_WASP", "WORKER_BEE")

    def investigate(target, framed=()):
        results = resolve_night(NightState(
            players=players,
            actions={1: NightActionInput("investigate_suspicious", target=target)},
            night_number=1,
            framed_players=set(framed),
        ))
        assert len(results.reports) == 1
        return results.reports[0].text

    assert "NOT suspicious" in investigate(2)
    assert "SUSPICIOUS!" in investigate(3)
    assert "NOT suspicious" in investigate(4)
    assert "SUSPICIOUS!" in investigate(4, framed=[4])


def test_dead_actors_and_self_targets_are_ignored():
    players = _roster("KILLER_WASP", "WORKER_BEE", "NURSE_BEE")
    players[0].alive = False
    state = NightState(
        players=players,
        actions={
            1: NightActionInput("mafia_kill", target=2),
            3: NightActionInput("heal", target=3),
        },
        night_number=1,
    )
    results = resolve_night(state)
    assert results.deaths == []
    assert 1 not in results.resources
