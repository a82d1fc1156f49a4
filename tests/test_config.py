import pytest

from dailymafia.utils.config import Settings, _read_int, get_chat_tier, get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_read_int_tolerates_inline_comments(monkeypatch):
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "120  # two minutes")
    assert _read_int("SWEEP_INTERVAL_SECONDS", "300") == 120
    monkeypatch.delenv("SWEEP_INTERVAL_SECONDS")
    assert _read_int("SWEEP_INTERVAL_SECONDS", "300") == 300


def test_read_int_rejects_garbage(monkeypatch):
    monkeypatch.setenv("MIN_PLAYERS", "eight")
    with pytest.raises(ValueError, match="Invalid MIN_PLAYERS"):
        _read_int("MIN_PLAYERS", "8")


def test_invalid_default_tier(monkeypatch):
    monkeypatch.setenv("DEFAULT_TIER", "gold")
    with pytest.raises(ValueError, match="DEFAULT_TIER"):
        Settings()


def test_chat_tier_lookup(monkeypatch, fresh_settings):
    monkeypatch.setenv("DEFAULT_TIER", "free")
    monkeypatch.setenv("ULTIMATE_CHAT_IDS", "-100, -200")
    get_settings.cache_clear()

    assert get_chat_tier(-100) == "ultimate"
    assert get_chat_tier(-300) == "free"


@pytest.mark.asyncio
async def test_free_chats_cannot_create_games(monkeypatch, fresh_settings, manager):
    monkeypatch.setenv("DEFAULT_TIER", "free")
    get_settings.cache_clear()

    success, message, game = await manager.create_game(-1001, 1, "P1")
    assert not success
    assert game is None
    assert "Plus or Ultimate" in message
