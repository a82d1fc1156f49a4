"""
Phase Timing Helpers

Durations, deadline arithmetic and warning windows. Times are naive UTC
datetimes, the same representation the database columns hold.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

PHASE_DURATION_NORMAL = timedelta(hours=24)
PHASE_DURATION_DEBUG = timedelta(minutes=5)
LOBBY_DURATION_NORMAL = timedelta(hours=24)
LOBBY_DURATION_DEBUG = timedelta(minutes=10)

# Warnings fire once inside [threshold - window, threshold]
WARNING_THRESHOLDS = (timedelta(hours=2), timedelta(minutes=30))
WARNING_WINDOW = timedelta(minutes=5)

# A phase-end claim older than this belongs to an owner that died mid-transition
PHASE_CLAIM_TIMEOUT = timedelta(minutes=10)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def phase_duration(debug_mode: bool) -> timedelta:
    """Every phase of a game lasts the same time; only debug mode changes it."""
    return PHASE_DURATION_DEBUG if debug_mode else PHASE_DURATION_NORMAL


def lobby_duration(debug_mode: bool) -> timedelta:
    return LOBBY_DURATION_DEBUG if debug_mode else LOBBY_DURATION_NORMAL


def time_remaining(deadline: Optional[datetime], now: datetime) -> timedelta:
    if deadline is None:
        return timedelta(0)
    return max(deadline - now, timedelta(0))


def format_time_remaining(deadline: Optional[datetime], now: datetime) -> str:
    """
    Format the time left until a deadline.
    
    Returns:
        str: "Xh Ym" when at least an hour is left, otherwise "Ym"
    """
    total_minutes = int(time_remaining(deadline, now).total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def warning_threshold(remaining: timedelta, debug_mode: bool) -> Optional[timedelta]:
    """
    Return the warning threshold whose window contains ``remaining``.
    
    Debug games never get warnings.
    """
    if debug_mode:
        return None
    for threshold in WARNING_THRESHOLDS:
        if threshold - WARNING_WINDOW < remaining <= threshold:
            return threshold
    return None


def describe_threshold(threshold: timedelta) -> str:
    minutes = int(threshold.total_seconds() // 60)
    if minutes >= 60:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{minutes} minutes"
