from datetime import timedelta
from types import SimpleNamespace

import pytest

from dailymafia.database.models import SKIP_TARGET, EventType, GamePhase, GameStatus
from dailymafia.game import action_collector
from dailymafia.game.night_resolver import resolve_night as resolve_night_actions
from dailymafia.game.phase_scheduler import all_players_acted, get_next_phase
from tests.conftest import CHAT_ID


def _p(role, acted=False, alive=True):
    return SimpleNamespace(role=role, alive=alive, has_acted_this_phase=acted)


def test_phase_cycle():
    assert get_next_phase(GamePhase.NIGHT) == GamePhase.DAY
    assert get_next_phase(GamePhase.DAY) == GamePhase.VOTING
    assert get_next_phase(GamePhase.VOTING) == GamePhase.NIGHT
    assert get_next_phase(GamePhase.SETUP) == GamePhase.NIGHT


def test_all_players_acted():
    # Nobody with a night action: vacuously complete
    assert all_players_acted([_p("WORKER_BEE"), _p("WORKER_BEE")], GamePhase.NIGHT)
    assert all_players_acted([], GamePhase.VOTING)

    night = [_p("KILLER_WASP", acted=True), _p("NURSE_BEE"), _p("WORKER_BEE")]
    assert not all_players_acted(night, GamePhase.NIGHT)
    night[1].has_acted_this_phase = True
    assert all_players_acted(night, GamePhase.NIGHT)

    # Dead players are never waited for
    voting = [_p("WORKER_BEE", acted=True), _p("NURSE_BEE", alive=False)]
    assert all_players_acted(voting, GamePhase.VOTING)

    assert not all_players_acted([_p("WORKER_BEE", acted=True)], GamePhase.DAY)


@pytest.mark.asyncio
@pytest.mark.parametrize("debug_mode, duration", [(True, timedelta(minutes=5)), (False, timedelta(hours=24))])
async def test_phase_durations(manager, store, clock, seed_game, debug_mode, duration):
    game = await seed_game(["WORKER_BEE"] * 4, phase=GamePhase.NIGHT, debug_mode=debug_mode)

    for phase in (GamePhase.DAY, GamePhase.VOTING, GamePhase.NIGHT):
        clock.advance(minutes=1)
        assert await manager.scheduler.start_phase(game.id, phase)
        game = await store.get_game(game.id)
        assert game.phase == phase
        assert game.phase_deadline == clock() + duration


@pytest.mark.asyncio
async def test_start_phase_resets_flags_and_counters(manager, store, notifier, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"],
                           phase=GamePhase.DAY, night_number=1, day_number=0)
    for player_id in (1, 2):
        await store.update_player(game.id, player_id, has_acted_this_phase=True)

    await manager.scheduler.start_phase(game.id, GamePhase.VOTING)

    game = await store.get_game(game.id)
    assert (game.night_number, game.day_number) == (1, 1)
    assert not game.phase_closing
    assert not any(p.has_acted_this_phase for p in await store.get_players(game.id))
    assert "Voting Phase has begun" in notifier.texts()[-1]

    await manager.scheduler.start_phase(game.id, GamePhase.NIGHT)
    game = await store.get_game(game.id)
    assert (game.night_number, game.day_number) == (2, 1)
    assert any("Night 2 has begun" in text for text in notifier.texts())
    # The wasp is prompted on every night, not only the first
    assert len(notifier.prompts_for(1)) == 1

    events = [e for e in await store.get_all_events(game.id) if e.event_type == EventType.PHASE_CHANGE]
    assert [e.description for e in events] == ["Voting phase started", "Night phase started"]


@pytest.mark.asyncio
async def test_night_ends_early_once_everyone_acted(manager, store, notifier, seed_game):
    game = await seed_game(["NURSE_BEE", "KILLER_WASP", "WORKER_BEE", "WORKER_BEE"])

    await manager.actions.submit_night_action(game.id, 1, "skip")
    assert (await store.get_game(game.id)).phase == GamePhase.NIGHT

    await manager.actions.submit_night_action(game.id, 2, "3")

    game = await store.get_game(game.id)
    assert game.phase == GamePhase.DAY
    assert (game.night_number, game.day_number) == (1, 0)
    assert not (await store.get_player(game.id, 3)).alive
    assert any("Day 1 has begun" in text for text in notifier.texts())


@pytest.mark.asyncio
async def test_day_never_ends_early(manager, store, seed_game):
    game = await seed_game(["WORKER_BEE"] * 4, phase=GamePhase.DAY)
    assert not await manager.scheduler.check_early_phase_end(game.id)
    assert (await store.get_game(game.id)).phase == GamePhase.DAY


@pytest.mark.asyncio
async def test_end_phase_runs_once_and_marks_players_who_did_not_act(manager, store, seed_game):
    game = await seed_game(["NURSE_BEE", "KILLER_WASP", "WORKER_BEE", "WORKER_BEE"])
    await manager.actions.submit_night_action(game.id, 1, "skip")

    assert await manager.scheduler.end_phase(game.id, is_timeout=True, expected_phase=GamePhase.NIGHT)
    assert not await manager.scheduler.end_phase(game.id, is_timeout=True, expected_phase=GamePhase.NIGHT)

    game = await store.get_game(game.id)
    assert game.phase == GamePhase.DAY
    assert game.last_resolved_night == 1

    inactive = {p.player_id for p in await store.get_players(game.id) if p.is_inactive}
    assert inactive == {2, 3, 4}


@pytest.mark.asyncio
async def test_claimed_phase_cannot_be_ended_twice(manager, store, clock, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"], phase=GamePhase.DAY)
    assert await store.claim_phase_end(game.id, GamePhase.DAY, now=clock())
    assert not await manager.scheduler.end_phase(game.id)

    await store.release_phase_end(game.id)
    assert await manager.scheduler.end_phase(game.id)
    assert (await store.get_game(game.id)).phase == GamePhase.VOTING



@pytest.mark.asyncio
async def test_stale_phase_claim_is_taken_over(manager, store, clock, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"], phase=GamePhase.DAY)
    # Owner died holding the claim
    assert await store.claim_phase_end(game.id, GamePhase.DAY, now=clock())

    clock.advance(minutes=5)
    assert not await manager.scheduler.end_phase(game.id)

    clock.advance(minutes=6)
    assert await manager.scheduler.end_phase(game.id)
    game = await store.get_game(game.id)
    assert game.phase == GamePhase.VOTING
    assert not game.phase_closing


@pytest.mark.asyncio
async def test_failed_phase_start_releases_the_claim(manager, store, seed_game, monkeypatch):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"], phase=GamePhase.DAY)
    original = store.update_game
    failures = []

    async def flaky_update(game_id, **fields):
        if "phase_deadline" in fields and not failures:
            failures.append(fields["phase"])
            raise RuntimeError("database is locked")
        return await original(game_id, **fields)

    monkeypatch.setattr(store, "update_game", flaky_update)

    assert not await manager.scheduler.end_phase(game.id, is_timeout=True)
    game = await store.get_game(game.id)
    assert game.phase == GamePhase.DAY
    assert not game.phase_closing

    assert await manager.scheduler.end_phase(game.id, is_timeout=True)
    assert (await store.get_game(game.id)).phase == GamePhase.VOTING
    assert failures == [GamePhase.VOTING]


@pytest.mark.asyncio
async def test_failed_night_resolution_is_retried(manager, store, seed_game, monkeypatch):
    game = await seed_game(["KILLER_WASP", "NURSE_BEE", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"])
    await manager.actions.submit_night_action(game.id, 1, "3")

    calls = []

    def flaky_resolve(state):
        calls.append(state.night_number)
        if len(calls) == 1:
            raise RuntimeError("resolver crashed")
        return resolve_night_actions(state)

    monkeypatch.setattr(action_collector, "resolve_night_actions", flaky_resolve)

    assert not await manager.scheduler.end_phase(game.id, is_timeout=True, expected_phase=GamePhase.NIGHT)
    game = await store.get_game(game.id)
    assert game.phase == GamePhase.NIGHT
    assert game.last_resolved_night == 0
    assert (await store.get_player(game.id, 3)).alive

    assert await manager.scheduler.end_phase(game.id, is_timeout=True, expected_phase=GamePhase.NIGHT)
    assert (await store.get_game(game.id)).phase == GamePhase.DAY
    assert not (await store.get_player(game.id, 3)).alive
    assert all(a.processed for a in await store.get_actions_for_night(game.id, 1))
    assert calls == [1, 1]


@pytest.mark.asyncio
async def test_failed_vote_tally_is_retried(manager, store, seed_game, monkeypatch):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"],
                           phase=GamePhase.VOTING, day_number=1)
    for voter_id in (3, 4):
        await manager.votes.submit_vote(game.id, voter_id, "2")

    original = store.get_votes_for_day
    calls = []

    async def flaky_votes(game_id, day_number):
        calls.append(day_number)
        if len(calls) == 1:
            raise RuntimeError("database is locked")
        return await original(game_id, day_number)

    monkeypatch.setattr(store, "get_votes_for_day", flaky_votes)

    assert not await manager.scheduler.end_phase(game.id, is_timeout=True)
    game = await store.get_game(game.id)
    assert game.phase == GamePhase.VOTING
    assert game.last_tallied_day == 0

    assert await manager.scheduler.end_phase(game.id, is_timeout=True)
    assert (await store.get_game(game.id)).phase == GamePhase.NIGHT
    assert (await store.get_player(game.id, 2)).death_reason == "lynched"


@pytest.mark.asyncio
async def test_day_timeout_marks_every_living_player(manager, store, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"], phase=GamePhase.DAY)
    await store.kill_player(game.id, 4, death_reason="lynched")

    assert await manager.scheduler.end_phase(game.id, is_timeout=True)

    inactive = {p.player_id for p in await store.get_players(game.id) if p.is_inactive}
    assert inactive == {1, 2, 3}


@pytest.mark.asyncio
async def test_game_over_escapes_winner_names(manager, store, notifier, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE"], phase=GamePhase.VOTING, day_number=1)
    await store.update_player(game.id, 2, display_name="a*b")
    await store.kill_player(game.id, 1, death_reason="lynched")

    assert await manager.scheduler.end_phase(game.id)

    assert any("• a\\*b - " in text for text in notifier.texts())


@pytest.mark.asyncio
async def test_vote_to_win_flow_pays_winners(manager, store, notifier, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"],
                           phase=GamePhase.VOTING, day_number=1)

    for voter_id in (2, 3, 4):
        success, _ = await manager.votes.submit_vote(game.id, voter_id, "1")
        assert success
    assert (await store.get_game(game.id)).phase == GamePhase.VOTING

    await manager.votes.submit_vote(game.id, 1, SKIP_TARGET)

    game = await store.get_game(game.id)
    assert game.status == GameStatus.COMPLETED
    assert game.phase == GamePhase.ENDED
    assert not (await store.get_player(game.id, 1)).alive

    winner = await store.get_user(2)
    assert winner.balance == 10000
    assert winner.total_wins == 1
    assert await store.get_user(1) is None

    events = await store.get_all_events(game.id)
    assert any(e.event_type == EventType.WIN and e.description == "bee team wins!" for e in events)
    assert any("GAME OVER" in text and "• P2 - " in text for text in notifier.texts())
    assert game.id in notifier.forgotten


@pytest.mark.asyncio
async def test_start_game_only_once(manager, store, notifier):
    game = await store.create_game(community_id=CHAT_ID, channel_id=CHAT_ID, organizer_id=1)
    for player_id in range(1, 5):
        await store.add_player(game.id, player_id, f"P{player_id}")

    assert await manager.scheduler.start_game(game.id) == (True, "Game started!")
    assert await manager.scheduler.start_game(game.id) == (False, "Game is not waiting to start.")

    game = await store.get_game(game.id)
    assert game.status == GameStatus.ACTIVE
    assert (game.phase, game.night_number) == (GamePhase.NIGHT, 1)
    assert game.lobby_deadline is None
    assert sum("Night 1 has begun" in text for text in notifier.texts()) == 1


@pytest.mark.asyncio
async def test_cancel_game(manager, store, notifier, seed_game):
    game = await seed_game(["WORKER_BEE"] * 4)
    assert await manager.scheduler.cancel_game(game.id, "Game cancelled by organizer")

    game = await store.get_game(game.id)
    assert game.status == GameStatus.CANCELLED
    assert game.phase == GamePhase.ENDED
    assert notifier.texts()[-1].endswith("Game cancelled by organizer.")

    # Cancelling again is a no-op
    assert not await manager.scheduler.cancel_game(game.id)
    assert len(notifier.announcements) == 1


@pytest.mark.asyncio
async def test_cancel_completed_game_is_noop(manager, store, seed_game):
    game = await seed_game(["WORKER_BEE"] * 4)
    await store.update_game(game.id, status=GameStatus.COMPLETED, phase=GamePhase.ENDED)

    assert not await manager.scheduler.cancel_game(game.id)
    assert (await store.get_game(game.id)).status == GameStatus.COMPLETED
