"""
Logging Configuration

Standard-library logging for the bot, plus two audit helpers that put
player actions and game events on their own named loggers.
"""

import logging
import sys
from typing import Any, Dict

from .config import get_settings

USER_ACTIONS_LOGGER = "dailymafia.user_actions"
GAME_EVENTS_LOGGER = "dailymafia.game_events"

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("httpx", "telegram", "telegram.ext")


def setup_logging() -> None:
    """Configure the root logger from LOG_LEVEL; SQL echo only in debug mode."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured - level: {settings.log_level}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually __name__)
    """
    return logging.getLogger(name)


def _context(fields: Dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in sorted(fields.items()) if value is not None)


def log_user_action(user_id: int, action: str, **kwargs) -> None:
    """
    Audit a player's command, vote or night action.

    Args:
        user_id: Telegram user ID
        action: Short action name, e.g. "vote" or "night_action"
        **kwargs: Game ID, target and similar context
    """
    get_logger(USER_ACTIONS_LOGGER).debug(f"user_id={user_id} action={action} {_context(kwargs)}".rstrip())


def log_game_event(game_id: str, event_type: str, **kwargs) -> None:
    """
    Audit a game lifecycle event such as a phase start or a lynch.

    Args:
        game_id: Game identifier
        event_type: Short event name
        **kwargs: Phase numbers, player IDs and similar context
    """
    get_logger(GAME_EVENTS_LOGGER).info(f"game_id={game_id} event={event_type} {_context(kwargs)}".rstrip())
