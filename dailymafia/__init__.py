"""
Daily Mafia Bot Package

A slow, day-long-phase social deduction game for Telegram group chats:
- Phase scheduling with deadlines and early completion
- Night action collection and resolution
- Voting and lynch resolution
- Persistent game state in SQL (SQLite or PostgreSQL)

Version: 1.0.0
"""

__version__ = "1.0.0"
