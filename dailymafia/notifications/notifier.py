"""
Notifier

Sends everything the game says on Telegram: channel announcements,
private prompts and the pinned status display.

The status refresh is debounced per game with an in-memory map. The map
lives for the process lifetime only; after a restart the first refresh
of each game simply goes through.
"""

import time
from typing import Any, Callable, Dict, Optional

from telegram.error import BadRequest, TelegramError

from ..database.store import GameStateStore
from ..game.timing import utcnow
from ..utils.config import get_settings
from ..utils.logging_config import get_logger
from .status_display import render_status

logger = get_logger(__name__)


class Notifier:
    """
    Telegram messaging collaborator.

    Delivery failures are logged and reported through return values; they
    never propagate into the game logic that triggered them.
    """

    def __init__(self, store: GameStateStore, debounce_seconds: Optional[float] = None,
                 monotonic: Callable[[], float] = time.monotonic):
        self.store = store
        if debounce_seconds is None:
            debounce_seconds = get_settings().status_debounce_seconds
        self.debounce_seconds = debounce_seconds
        self._monotonic = monotonic
        self._last_refresh: Dict[str, float] = {}
        self._bot_context = None

    def set_bot_context(self, bot_context) -> None:
        """Set the object whose ``.bot`` sends messages (Application or handler context)."""
        self._bot_context = bot_context

    def _get_bot(self, operation_name: str) -> Optional[Any]:
        bot_context = self._bot_context
        if not bot_context:
            logger.error(f"Bot context not available for {operation_name} - messages cannot be sent")
            return None
        return bot_context.bot

    async def announce(self, chat_id: int, text: str, reply_markup=None) -> Optional[int]:
        """
        Post a message to a game chat.

        Returns:
            Message ID, or None if delivery failed
        """
        bot = self._get_bot("announce")
        if not bot:
            return None
        try:
            message = await bot.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup)
            return getattr(message, "message_id", None)
        except TelegramError as e:
            logger.error(f"Failed to announce - chat_id: {chat_id}, error: {str(e)}")
            return None

    async def prompt_player(self, user_id: int, text: str, reply_markup=None) -> bool:
        """
        Send a private message to one player.

        A player who blocked the bot or never opened a private chat only
        loses their own message.
        """
        bot = self._get_bot("prompt_player")
        if not bot:
            return False
        try:
            await bot.send_message(chat_id=user_id, text=text, reply_markup=reply_markup)
            return True
        except TelegramError as e:
            logger.warning(f"Failed to send private message - user_id: {user_id}, error: {str(e)}")
            return False

    async def render_status(self, game_id: str) -> Optional[str]:
        game = await self.store.get_game(game_id)
        if not game:
            return None
        players = await self.store.get_players(game_id)
        events = await self.store.get_recent_events(game_id, 5)
        return render_status(game, players, events, utcnow())

    async def create_status_display(self, game_id: str) -> Optional[int]:
        """Send and pin a fresh status message, remembering its ID on the game."""
        text = await self.render_status(game_id)
        game = await self.store.get_game(game_id)
        if text is None or game is None:
            return None
        message_id = await self.announce(game.channel_id, text)
        if message_id is None:
            return None
        await self.store.update_game(game_id, status_message_id=message_id)
        self._last_refresh[game_id] = self._monotonic()

        bot = self._get_bot("pin_status")
        if bot:
            try:
                await bot.pin_chat_message(chat_id=game.channel_id, message_id=message_id,
                                           disable_notification=True)
            except TelegramError as e:
                logger.warning(f"Could not pin status message - game_id: {game_id}, error: {str(e)}")
        return message_id

    async def refresh_status_display(self, game_id: str, force: bool = False) -> bool:
        """
        Re-render the status message.

        Calls within the debounce window after a refresh are dropped, not
        queued. If the stored message cannot be edited a new one is posted.

        Returns:
            bool: True if the display was updated
        """
        now = self._monotonic()
        last = self._last_refresh.get(game_id)
        if not force and last is not None and now - last < self.debounce_seconds:
            logger.debug(f"Status refresh debounced - game_id: {game_id}")
            return False
        self._last_refresh[game_id] = now

        game = await self.store.get_game(game_id)
        if not game:
            return False
        if not game.status_message_id:
            return await self.create_status_display(game_id) is not None

        text = await self.render_status(game_id)
        bot = self._get_bot("refresh_status")
        if not bot:
            return False
        try:
            await bot.edit_message_text(text=text, chat_id=game.channel_id, message_id=game.status_message_id)
            return True
        except BadRequest as e:
            if "not modified" in str(e).lower():
                return True
            logger.warning(f"Failed to edit status message, posting a new one - game_id: {game_id}, error: {str(e)}")
        except TelegramError as e:
            logger.warning(f"Failed to edit status message, posting a new one - game_id: {game_id}, error: {str(e)}")

        message_id = await self.announce(game.channel_id, text)
        if message_id is None:
            return False
        await self.store.update_game(game_id, status_message_id=message_id)
        return True

    def forget(self, game_id: str) -> None:
        """Drop debounce state for a finished game."""
        self._last_refresh.pop(game_id, None)
