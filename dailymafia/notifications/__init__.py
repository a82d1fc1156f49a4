"""
Notifications Package

Telegram-facing output: announcements, private prompts, inline keyboards
and the pinned status display.
"""
