"""
Utility Package

Configuration loading and logging setup shared by the whole bot.
"""
