"""
Daily Mafia Command Handlers

This module handles the /dailymafia command (alias /dm), its subcommands
and the inline keyboard callbacks of lobbies and night prompts. It is the
interface between Telegram updates and the DailyMafiaManager.
"""

from typing import Optional

from telegram import MessageEntity, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from ..game.daily_mafia_manager import DailyMafiaManager
from ..notifications.keyboards import (
    JOIN_CALLBACK, KEYWORD_CALLBACK, START_CALLBACK, TARGET_CALLBACK,
    lobby_keyboard, parse_callback_data
)
from ..utils.logging_config import get_logger, log_user_action
from .command_handlers import HELP_TEXT

# Setup logger and manager
logger = get_logger(__name__)
daily_mafia_manager = DailyMafiaManager()

GROUP_ONLY_MESSAGE = (
    "❌ Daily Mafia must be played in a group chat!\n\n"
    "Add me to a group and use `/dm start` there to open a lobby."
)


def _display_name(user) -> str:
    return user.full_name or user.first_name or "Player"


def _plain(text: str) -> str:
    """Strip Markdown markers for callback alerts, which render plain text."""
    return text.replace("**", "").replace("`", "")


def _mentioned_user_id(update: Update) -> Optional[int]:
    """User ID of the first text mention (a mention of a user without @username)."""
    for entity in update.message.entities or ():
        if entity.type == MessageEntity.TEXT_MENTION and entity.user:
            return entity.user.id
    return None


async def dailymafia_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /dailymafia and /dm.

    Usage: /dm <start|join|leave|cancel|vote|unvote|votes|status|help|restartphase> [args]
    """
    if not update.message:
        logger.warning("dailymafia_command called without a message object")
        return

    args = [a.lower() for a in (context.args or [])]
    subcommand = args[0] if args else "help"
    rest = (context.args or [])[1:]
    chat = update.effective_chat
    user = update.effective_user

    if subcommand == "help":
        await update.message.reply_text(HELP_TEXT)
        return

    if chat.type == "private":
        await update.message.reply_text(GROUP_ONLY_MESSAGE)
        return

    daily_mafia_manager.set_bot_context(context)
    log_user_action(user.id, f"dm_{subcommand}", chat_id=chat.id)

    try:
        if subcommand == "start":
            await _start_lobby(update, args[1:])
            return

        if subcommand == "join":
            game = await daily_mafia_manager.store.get_game_in_channel(chat.id)
            if not game:
                success, message = False, "❌ No Daily Mafia game in this chat. Use `/dm start` to open one."
            else:
                success, message = await daily_mafia_manager.join_game(
                    game.id, user.id, _display_name(user), user.username
                )
        elif subcommand == "leave":
            success, message = await daily_mafia_manager.leave_game(chat.id, user.id)
        elif subcommand == "cancel":
            success, message = await daily_mafia_manager.cancel(chat.id, user.id)
        elif subcommand == "vote":
            success, message = await daily_mafia_manager.vote(
                chat.id, user.id, " ".join(rest), _mentioned_user_id(update)
            )
        elif subcommand == "unvote":
            success, message = await daily_mafia_manager.unvote(chat.id, user.id)
        elif subcommand == "votes":
            success, message = await daily_mafia_manager.show_votes(chat.id)
        elif subcommand == "status":
            success, message = await daily_mafia_manager.status(chat.id)
        elif subcommand == "restartphase":
            success, message = await daily_mafia_manager.restart_phase(
                chat.id, user.id, resend_roles="roles" in args[1:]
            )
        else:
            success, message = False, f"❌ Unknown command `{subcommand}`. Use `/dm help`."

        await update.message.reply_text(message)
        if not success:
            logger.debug(f"Rejected /dm {subcommand} - chat_id: {chat.id}, user_id: {user.id}")

    except Exception as e:
        logger.error(f"Failed to handle /dm {subcommand} - chat_id: {chat.id}, user_id: {user.id}, error: {str(e)}")
        await update.message.reply_text("❌ Something went wrong. Please try again in a moment.")


async def _start_lobby(update: Update, options) -> None:
    """Open a lobby. Options: `debug` for 5 minute phases, `noreveal` to hide roles on death."""
    user = update.effective_user
    success, message, game = await daily_mafia_manager.create_game(
        update.effective_chat.id,
        user.id,
        _display_name(user),
        username=user.username,
        debug_mode="debug" in options,
        reveal_roles="noreveal" not in options,
    )
    if not success:
        await update.message.reply_text(message)
        return
    await update.message.reply_text(message, reply_markup=lobby_keyboard(game.id))
    logger.info(f"Daily Mafia lobby posted - game_id: {game.id}, chat_id: {update.effective_chat.id}")


async def handle_daily_mafia_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route lobby and night-prompt button presses."""
    query = update.callback_query
    if not query or not query.data:
        return
    user = update.effective_user

    try:
        kind, game_id, value = parse_callback_data(query.data)
    except ValueError:
        await query.answer("❌ Invalid button", show_alert=True)
        return

    daily_mafia_manager.set_bot_context(context)

    try:
        if kind == JOIN_CALLBACK:
            success, message = await daily_mafia_manager.join_game(
                game_id, user.id, _display_name(user), user.username
            )
            if success:
                await query.answer(_plain(message))
                await _refresh_lobby(query, game_id)
            else:
                await query.answer(_plain(message), show_alert=True)

        elif kind == START_CALLBACK:
            success, message = await daily_mafia_manager.start_game_request(game_id, user.id)
            if success:
                await query.answer()
                try:
                    await query.edit_message_text(message)
                except TelegramError as edit_error:
                    logger.warning(f"Failed to edit lobby message - game_id: {game_id}, error: {str(edit_error)}")
            else:
                await query.answer(_plain(message), show_alert=True)

        elif kind == TARGET_CALLBACK:
            success, message = await daily_mafia_manager.handle_target_button(game_id, user.id, int(value))
            await query.answer(_plain(message), show_alert=not success)

        elif kind == KEYWORD_CALLBACK:
            success, message = await daily_mafia_manager.handle_keyword_button(game_id, user.id, value)
            await query.answer(_plain(message), show_alert=not success)

        else:
            await query.answer()

    except Exception as e:
        logger.error(f"Failed to handle callback - data: {query.data}, user_id: {user.id}, error: {str(e)}")
        try:
            await query.answer("❌ Something went wrong. Please try again.", show_alert=True)
        except TelegramError as alert_error:
            logger.error(f"Failed to send error alert: {alert_error}")


async def _refresh_lobby(query, game_id: str) -> None:
    text = await daily_mafia_manager.lobby_text(game_id)
    try:
        await query.edit_message_text(text, reply_markup=lobby_keyboard(game_id))
    except TelegramError as edit_error:
        logger.warning(f"Failed to edit lobby message - game_id: {game_id}, error: {str(edit_error)}")
