"""
Configuration Management

This module handles all application configuration using environment variables.
Values are read once from the process environment (and a local .env file).
"""

import os
from functools import lru_cache
from typing import List
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

VALID_TIERS = ("free", "plus", "ultimate")


def _read_int(name: str, default: str) -> int:
    """Read an integer setting, tolerating trailing inline comments."""
    raw = os.getenv(name, default)
    try:
        return int(raw.split('#')[0].strip())
    except ValueError as e:
        raise ValueError(f"Invalid {name} value: '{raw}'. Must be a number without comments.") from e


def _read_id_list(name: str) -> List[int]:
    raw = os.getenv(name, '')
    if not raw:
        return []
    try:
        return [int(x.strip()) for x in raw.split(',') if x.strip()]
    except ValueError:
        return []


class Settings:
    """
    Application settings loaded from environment variables.
    
    All settings have sensible defaults for development.
    """
    
    def __init__(self):
        # Telegram Bot Configuration
        self.telegram_bot_token: str = os.getenv('TELEGRAM_BOT_TOKEN', '')
        
        # Database Configuration
        self.database_url: str = os.getenv('DATABASE_URL', 'sqlite:///daily_mafia.db')
        
        # Application Settings
        self.debug: bool = os.getenv('DEBUG', 'false').lower() == 'true'
        self.log_level: str = os.getenv('LOG_LEVEL', 'INFO')
        self.environment: str = os.getenv('ENVIRONMENT', 'development')
        
        # Daily Mafia scheduling
        self.sweep_interval_seconds: int = _read_int('SWEEP_INTERVAL_SECONDS', '300')
        self.status_debounce_seconds: int = _read_int('STATUS_DEBOUNCE_SECONDS', '30')
        self.min_players: int = _read_int('MIN_PLAYERS', '8')
        
        # Rewards
        self.reward_amount: int = _read_int('REWARD_AMOUNT', '10000')
        
        # Tier lookup
        self.default_tier: str = os.getenv('DEFAULT_TIER', 'plus').lower()
        if self.default_tier not in VALID_TIERS:
            raise ValueError(f"Invalid DEFAULT_TIER value: '{self.default_tier}'. Must be one of {', '.join(VALID_TIERS)}.")
        self.ultimate_chat_ids: List[int] = _read_id_list('ULTIMATE_CHAT_IDS')
        
        # Security Settings
        self.admin_user_ids: List[int] = _read_id_list('ADMIN_USER_IDS')


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings with caching.
    
    Uses LRU cache to avoid reloading settings on every call.
    Cache is cleared when the process restarts.
    
    Returns:
        Settings: Application configuration settings
    """
    return Settings()


def is_admin_user(user_id: int) -> bool:
    """
    Check if a user ID is in the admin list.
    
    Args:
        user_id: Telegram user ID to check
        
    Returns:
        bool: True if user is admin, False otherwise
    """
    settings = get_settings()
    return user_id in settings.admin_user_ids


def get_chat_tier(chat_id: int) -> str:
    """
    Resolve the subscription tier of a group chat.
    
    Args:
        chat_id: Telegram chat ID
        
    Returns:
        str: "free", "plus" or "ultimate"
    """
    settings = get_settings()
    if chat_id in settings.ultimate_chat_ids:
        return "ultimate"
    return settings.default_tier


def is_development() -> bool:
    """
    Check if running in development environment.
    
    Returns:
        bool: True if in development, False otherwise
    """
    settings = get_settings()
    return settings.environment.lower() in ["development", "dev", "local"]


def is_production() -> bool:
    """
    Check if running in production environment.
    
    Returns:
        bool: True if in production, False otherwise
    """
    settings = get_settings()
    return settings.environment.lower() in ["production", "prod"]
