from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from dailymafia.database.database import init_database, close_database
from dailymafia.database.models import GamePhase, GameStatus
from dailymafia.database.store import GameStateStore
from dailymafia.game.daily_mafia_manager import DailyMafiaManager
from dailymafia.game.roles import get_role_definition

CHAT_ID = -1001


class FixedClock:
    """Manually advanced clock returning naive UTC datetimes."""
    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeNotifier:
    """Records everything the game would send instead of talking to Telegram."""
    def __init__(self):
        self.announcements = []
        self.prompts = []
        self.refreshes = []
        self.status_displays = []
        self.forgotten = []
        self.fail_prompts_for = set()

    def set_bot_context(self, bot_context):
        pass

    async def announce(self, chat_id, text, reply_markup=None):
        self.announcements.append((chat_id, text))
        return len(self.announcements)

    async def prompt_player(self, user_id, text, reply_markup=None):
        if user_id in self.fail_prompts_for:
            return False
        self.prompts.append((user_id, text))
        return True

    async def render_status(self, game_id):
        return f"status {game_id}"

    async def create_status_display(self, game_id):
        self.status_displays.append(game_id)
        return 1

    async def refresh_status_display(self, game_id, force=False):
        self.refreshes.append(game_id)
        return True

    def forget(self, game_id):
        self.forgotten.append(game_id)

    def texts(self):
        return [text for _, text in self.announcements]

    def prompts_for(self, user_id):
        return [text for uid, text in self.prompts if uid == user_id]


@pytest_asyncio.fixture
async def store(tmp_path):
    await init_database(f"sqlite:///{tmp_path / 'daily_mafia_test.db'}")
    yield GameStateStore()
    await close_database()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def manager(store, notifier, clock):
    return DailyMafiaManager(store=store, notifier=notifier, clock=clock)


@pytest.fixture
def seed_game(store, clock):
    """
    Factory creating an active game with players 1..n holding the given roles.

    Player i is named "P<i>" with username "p<i>".
    """
    async def _seed(roles, phase=GamePhase.NIGHT, night_number=1, day_number=0,
                    debug_mode=False, reveal_roles=True, channel_id=CHAT_ID):
        game = await store.create_game(
            community_id=channel_id, channel_id=channel_id, organizer_id=1,
            debug_mode=debug_mode, reveal_roles=reveal_roles, now=clock(),
        )
        for player_id, role in enumerate(roles, start=1):
            role_def = get_role_definition(role)
            await store.add_player(
                game.id, player_id, f"P{player_id}", username=f"p{player_id}", role=role,
                resources=role_def.starting_resources() if role_def else None,
            )
        await store.update_game(
            game.id, status=GameStatus.ACTIVE, phase=phase, lobby_deadline=None,
            night_number=night_number, day_number=day_number,
            phase_start_time=clock(), phase_deadline=clock() + timedelta(hours=24),
        )
        return await store.get_game(game.id)

    return _seed
