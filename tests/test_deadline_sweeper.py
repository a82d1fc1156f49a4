import asyncio
from datetime import timedelta

import pytest

from dailymafia.database.models import PENDING_ROLE, EventType, GamePhase, GameStatus
from dailymafia.game.deadline_sweeper import DeadlineSweeper
from tests.conftest import CHAT_ID


@pytest.fixture
def sweeper(manager, clock):
    return DeadlineSweeper(manager, interval_seconds=3600, clock=clock)


async def _lobby(manager, size, chat_id=CHAT_ID, first_user=1, debug_mode=False):
    success, _, game = await manager.create_game(chat_id, first_user, f"P{first_user}", debug_mode=debug_mode)
    assert success
    for user_id in range(first_user + 1, first_user + size):
        success, _ = await manager.join_game(game.id, user_id, f"P{user_id}", f"p{user_id}")
        assert success
    return game


@pytest.mark.asyncio
async def test_full_lobby_auto_starts(manager, store, notifier, clock, sweeper):
    game = await _lobby(manager, 8)
    clock.advance(hours=25)

    assert await sweeper.sweep() == 1

    game = await store.get_game(game.id)
    assert game.status == GameStatus.ACTIVE
    assert (game.phase, game.night_number) == (GamePhase.NIGHT, 1)
    assert game.phase_deadline == clock() + timedelta(hours=24)
    players = await store.get_players(game.id)
    assert all(p.role != PENDING_ROLE for p in players)
    assert any("AUTO-STARTING" in text for text in notifier.texts())
    assert notifier.status_displays == [game.id]
    # Every player got a role DM
    assert {uid for uid, text in notifier.prompts if "Your Role" in text} == set(range(1, 9))


@pytest.mark.asyncio
async def test_short_lobby_is_cancelled(manager, store, notifier, clock, sweeper):
    game = await _lobby(manager, 7)
    clock.advance(hours=25)

    await sweeper.sweep()

    game = await store.get_game(game.id)
    assert game.status == GameStatus.CANCELLED
    events = await store.get_all_events(game.id)
    assert events[-1].description == "Game auto-cancelled (insufficient players: 7/8)"
    assert "insufficient players: 7/8" in notifier.texts()[-1]


@pytest.mark.asyncio
async def test_open_lobby_is_left_alone(manager, store, clock, sweeper):
    game = await _lobby(manager, 3)
    clock.advance(hours=1)
    await sweeper.sweep()
    assert (await store.get_game(game.id)).status == GameStatus.PENDING


@pytest.mark.asyncio
async def test_one_failing_game_does_not_block_the_others(manager, store, clock, sweeper, monkeypatch):
    broken = await _lobby(manager, 1, chat_id=-2001, first_user=100)
    healthy = await _lobby(manager, 1, chat_id=-2002, first_user=200)
    clock.advance(hours=25)

    original = manager.resolve_lobby_deadline

    async def flaky(game):
        if game.id == broken.id:
            raise RuntimeError("boom")
        return await original(game)

    monkeypatch.setattr(manager, "resolve_lobby_deadline", flaky)

    assert await sweeper.sweep() == 2
    assert (await store.get_game(broken.id)).status == GameStatus.PENDING
    assert (await store.get_game(healthy.id)).status == GameStatus.CANCELLED


@pytest.mark.asyncio
async def test_expired_phase_advances(manager, store, clock, sweeper, seed_game):
    game = await seed_game(["KILLER_WASP", "NURSE_BEE", "WORKER_BEE", "WORKER_BEE"])
    clock.advance(hours=25)

    await sweeper.sweep()

    game = await store.get_game(game.id)
    assert game.phase == GamePhase.DAY
    assert game.phase_deadline == clock() + timedelta(hours=24)
    inactive = {p.player_id for p in await store.get_players(game.id) if p.is_inactive}
    assert inactive == {1, 2, 3, 4}
    events = await store.get_all_events(game.id)
    assert sum(e.event_type == EventType.OTHER and "marked inactive" in e.description for e in events) == 4


@pytest.mark.asyncio
async def test_lobby_warning_sent_once(manager, notifier, clock, sweeper):
    await _lobby(manager, 5)
    clock.advance(hours=22)

    await sweeper.sweep()
    await sweeper.sweep()

    warnings = [t for t in notifier.texts() if "Lobby Closing Soon" in t]
    assert len(warnings) == 1
    assert "2 hours" in warnings[0]
    assert "Need 3 more players" in warnings[0]


@pytest.mark.asyncio
async def test_phase_warning_mentions_pending_players(manager, store, notifier, clock, sweeper, seed_game):
    game = await seed_game(["KILLER_WASP", "NURSE_BEE", "WORKER_BEE", "WORKER_BEE"])
    await store.update_player(game.id, 2, has_acted_this_phase=True)
    clock.advance(hours=23, minutes=31)

    await sweeper.sweep()
    await sweeper.sweep()

    warnings = [t for t in notifier.texts() if "Phase Deadline Warning" in t]
    assert len(warnings) == 1
    assert "tg://user?id=1" in warnings[0]
    assert "tg://user?id=2" not in warnings[0]
    assert "30 minutes" in warnings[0]


@pytest.mark.asyncio
async def test_debug_games_get_no_warnings(manager, notifier, clock, sweeper, seed_game):
    await seed_game(["KILLER_WASP", "NURSE_BEE", "WORKER_BEE", "WORKER_BEE"], debug_mode=True)
    clock.advance(hours=22)

    await sweeper.sweep()

    assert notifier.announcements == []


@pytest.mark.asyncio
async def test_start_and_stop(sweeper):
    sweeper.start()
    assert sweeper.is_running
    sweeper.start()
    await sweeper.stop()
    assert not sweeper.is_running


@pytest.mark.asyncio
async def test_phase_claim_left_by_a_dead_process_is_recovered(manager, store, clock, sweeper, seed_game):
    game = await seed_game(["KILLER_WASP", "WORKER_BEE", "WORKER_BEE", "WORKER_BEE"], phase=GamePhase.DAY)
    assert await store.claim_phase_end(game.id, GamePhase.DAY, now=clock())
    clock.advance(hours=25)

    await sweeper.sweep()

    game = await store.get_game(game.id)
    assert game.phase == GamePhase.VOTING
    assert not game.phase_closing


@pytest.mark.asyncio
async def test_stop_cancels_a_sweep_in_flight(sweeper, store, monkeypatch):
    started = asyncio.Event()

    async def hanging():
        started.set()
        await asyncio.Event().wait()

    monkeypatch.setattr(store, "get_all_active_games", hanging)
    sweeper.start()
    await asyncio.wait_for(started.wait(), timeout=1)
    sweep_task = sweeper._sweep_task

    await sweeper.stop()

    assert sweep_task.cancelled()
    assert not sweeper._sweeping
    assert sweeper._sweep_task is None
