#!/usr/bin/env python3
"""
Bot Runner Script

Simple script to run the Daily Mafia bot during development.

Usage:
    python run_bot.py
"""

import asyncio
import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dailymafia.main import main

if __name__ == "__main__":
    print("🐝 Starting Daily Mafia Bot...")

    if not os.path.exists(".env") and not os.getenv("TELEGRAM_BOT_TOKEN"):
        print("❌ No .env file found and TELEGRAM_BOT_TOKEN is not set!")
        print("📝 Create a .env file with at least:")
        print("   TELEGRAM_BOT_TOKEN=<your bot token>")
        sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    except Exception as e:
        print(f"\n❌ Bot failed to start: {e}")
        print("💡 Check your configuration and try again")
        sys.exit(1)
