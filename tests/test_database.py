import logging

import pytest

from dailymafia.database.database import DatabaseSession, to_async_url
from dailymafia.utils.logging_config import (
    GAME_EVENTS_LOGGER, USER_ACTIONS_LOGGER, log_game_event, log_user_action
)


def test_async_driver_urls():
    assert to_async_url("sqlite:///./daily_mafia.db") == "sqlite+aiosqlite:///./daily_mafia.db"
    assert to_async_url("postgresql://u:p@db/mafia") == "postgresql+asyncpg://u:p@db/mafia"
    assert to_async_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


@pytest.mark.asyncio
async def test_session_requires_initialized_database():
    with pytest.raises(RuntimeError, match="init_database"):
        async with DatabaseSession():
            pass


def test_audit_loggers_format_context(caplog):
    with caplog.at_level(logging.DEBUG):
        log_game_event("ABC123", "phase_started", phase="night", number=1, reason=None)
        log_user_action(42, "vote", game_id="ABC123")

    records = {r.name: r.getMessage() for r in caplog.records}
    assert records[GAME_EVENTS_LOGGER] == "game_id=ABC123 event=phase_started number=1 phase=night"
    assert records[USER_ACTIONS_LOGGER] == "user_id=42 action=vote game_id=ABC123"
