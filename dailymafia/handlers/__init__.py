"""
Bot Handlers Package

This package contains the Telegram handlers for Daily Mafia:
- Command handlers for /start and /help
- The /dailymafia (/dm) command and its inline keyboard callbacks
- Message handlers routing private text to night actions
- Error handlers for exception management
"""
