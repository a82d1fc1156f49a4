"""
Message Handlers

This module handles text messages that are not commands. Private messages
are night-action submissions for the sender's active game.
"""

from telegram import Update
from telegram.ext import ContextTypes

from ..utils.logging_config import log_user_action, get_logger
from .daily_mafia_handlers import daily_mafia_manager

# Logger setup
logger = get_logger(__name__)


async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle incoming text messages that are not commands.

    Group chatter is ignored; a private message is treated as a night
    action and always gets exactly one reply.

    Args:
        update: Telegram update object
        context: Bot context
    """
    if not update.message or not update.message.text:
        return
    if update.effective_chat.type != "private":
        return

    user = update.effective_user
    log_user_action(user.id, "private_text", message_length=len(update.message.text))

    daily_mafia_manager.set_bot_context(context)
    try:
        success, reply = await daily_mafia_manager.handle_private_text(user.id, update.message.text)
    except Exception as e:
        logger.error(f"Failed to handle private message - user_id: {user.id}, error: {str(e)}")
        reply = "❌ Something went wrong. Please try again in a moment."
    await update.message.reply_text(reply)
