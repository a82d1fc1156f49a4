"""
Daily Mafia Bot Main Application

This is the main entry point for the Daily Mafia Telegram bot.
It initializes the database, sets up handlers, starts the deadline
sweeper and runs the bot.
"""

import asyncio
import sys
from typing import Optional

from telegram import Update, BotCommand
from telegram.ext import Application, CommandHandler, MessageHandler, CallbackQueryHandler, filters
from telegram.constants import ParseMode
from telegram.ext import Defaults  # For setting default parse mode globally

from .handlers.command_handlers import start_command, help_command
from .handlers.daily_mafia_handlers import (
    dailymafia_command, handle_daily_mafia_callback, daily_mafia_manager
)
from .handlers.message_handlers import handle_text_message
from .handlers.error_handlers import error_handler

from .database.database import init_database, close_database
from .game.deadline_sweeper import DeadlineSweeper
from .utils.config import get_settings
from .utils.logging_config import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)


class DailyMafiaBot:
    """
    Main Daily Mafia bot application class.

    This handles the complete lifecycle of the bot including:
    - Database initialization
    - Handler registration
    - The deadline sweeper task
    - Application startup and shutdown
    """

    def __init__(self):
        """Initialize the bot application."""
        self.settings = get_settings()
        self.application: Optional[Application] = None
        self.sweeper = DeadlineSweeper(daily_mafia_manager, self.settings.sweep_interval_seconds)

    async def initialize_database(self) -> None:
        """Create the Daily Mafia tables if they do not exist."""
        try:
            logger.info("Initializing database...")
            await init_database()
            logger.info("Database initialization completed successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    async def setup_bot_commands(self) -> None:
        """
        Set up the bot command menu that appears when users type '/'.
        """
        if not self.application:
            raise RuntimeError("Application not initialized")

        try:
            commands = [
                BotCommand("start", "Welcome message and introduction"),
                BotCommand("help", "Complete guide and instructions"),
                BotCommand("dailymafia", "Daily Mafia game commands"),
                BotCommand("dm", "Short for /dailymafia"),
            ]
            await self.application.bot.set_my_commands(commands)

            bot_info = await self.application.bot.get_me()
            logger.info(f"Bot username: @{bot_info.username}")
            logger.info(f"Bot commands menu configured with {len(commands)} commands")
        except Exception as e:
            logger.error(f"Failed to set bot commands: {e}")
            # Not critical for bot operation

    def setup_handlers(self) -> None:
        """Register all bot command, callback and message handlers."""
        if not self.application:
            raise RuntimeError("Application not initialized")

        logger.info("Setting up bot handlers...")

        command_handlers = [
            CommandHandler("start", start_command),
            CommandHandler("help", help_command),
            CommandHandler(["dailymafia", "dm"], dailymafia_command),
        ]
        for handler in command_handlers:
            self.application.add_handler(handler)

        # Lobby and night-prompt buttons
        self.application.add_handler(CallbackQueryHandler(handle_daily_mafia_callback))

        # Private night-action replies
        self.application.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text_message)
        )

        self.application.add_error_handler(error_handler)
        logger.info("All handlers registered successfully")

    def start_sweeper(self) -> None:
        """Give the game core the bot handle and start checking deadlines."""
        daily_mafia_manager.set_bot_context(self.application)
        self.sweeper.start()

    async def cleanup(self) -> None:
        """
        Cleanup resources when shutting down.

        Stops the sweeper before the database connections close.
        """
        try:
            logger.info("Shutting down Daily Mafia Bot...")
            await self.sweeper.stop()
            await close_database()
            logger.info("Bot shutdown complete")
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")


async def main() -> None:
    """
    Main entry point for the Daily Mafia bot.

    Creates and starts the bot application, handling startup errors.
    """
    bot = DailyMafiaBot()

    try:
        logger.info("Starting Daily Mafia Bot")

        # Global Markdown parse mode so **text** renders bold
        defaults = Defaults(parse_mode=ParseMode.MARKDOWN)
        bot.application = (
            Application.builder()
            .token(bot.settings.telegram_bot_token)
            .defaults(defaults)
            .build()
        )

        await bot.initialize_database()
        bot.setup_handlers()

        logger.info("Bot initialization complete, starting polling...")
        async with bot.application:
            await bot.setup_bot_commands()
            await bot.application.start()
            await bot.application.updater.start_polling(
                allowed_updates=Update.ALL_TYPES,
                drop_pending_updates=True
            )
            bot.start_sweeper()

            # Keep running until interrupted
            try:
                await asyncio.Event().wait()
            except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
                logger.info("Received shutdown signal")
            finally:
                await bot.cleanup()
                await bot.application.updater.stop()
                await bot.application.stop()

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Unexpected error in main: {e}")
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBot stopped by user")
