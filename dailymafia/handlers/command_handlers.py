"""
Bot Command Handlers

This module contains the handlers for the general bot commands.
"""

from telegram import Update
from telegram.ext import ContextTypes

from ..utils.logging_config import log_user_action, get_logger

# Logger setup
logger = get_logger(__name__)

HELP_TEXT = """
🐝 **Daily Mafia - Command Guide**

Daily Mafia is a slow social deduction game: every phase lasts a full day,
so you can play a few minutes at a time. Bees must find the Wasps before
the Wasps take over the hive.

🎮 **Lobby**
`/dm start` - Open a lobby in this group (`debug` for 5 minute phases, `noreveal` to hide roles)
`/dm join` - Join the lobby (or tap **Join Game**)
`/dm cancel` - Cancel the game (organizer only)

🌙 **Night**
Check your private messages: reply with the number of your target,
`skip`, or your role's keyword (`alert`, `vest`, `ignite`), or use the buttons.

🗳️ **Voting**
`/dm vote @player` or `/dm vote Name` - Vote to eliminate a player
`/dm vote skip` - Vote to skip the elimination
`/dm unvote` - Withdraw your vote
`/dm votes` - Show the current tally

📊 **Other**
`/dm status` - Show the game status
`/dm restartphase [roles]` - Re-send the current phase messages (organizer or admin)

A game needs at least 8 players. The lobby starts automatically when it
closes with enough players, otherwise it is cancelled.
"""


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle the /start command.

    Args:
        update: Telegram update object
        context: Bot context
    """
    user = update.effective_user
    log_user_action(user.id, "start_command", username=user.username)

    welcome_text = f"""
🐝 **Welcome to Daily Mafia, {user.first_name}!**

A game of Bees and Wasps played over several days in your group chat.

🚀 **QUICK START:**
1️⃣ Add me to a **group chat**
2️⃣ Type `/dm start` to open a lobby
3️⃣ Everyone taps **Join Game** (8 players minimum)
4️⃣ Keep this private chat open: your role and night actions arrive here

Type /help for every command.
"""
    await update.message.reply_text(welcome_text)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the /help command."""
    log_user_action(update.effective_user.id, "help_command")
    await update.message.reply_text(HELP_TEXT)
