"""
Inline Keyboards

Button layouts for lobbies and night-action prompts. Callback data has
the form ``<kind>:<game_id>:<value>`` and stays well below Telegram's
64 byte limit.
"""

from typing import List, Sequence, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

JOIN_CALLBACK = "dmjoin"
START_CALLBACK = "dmstart"
TARGET_CALLBACK = "dmtarget"
KEYWORD_CALLBACK = "dmkw"

KEYWORD_LABELS = {
    "skip": "⏭️ Skip",
    "alert": "🎖️ Alert",
    "vest": "🦺 Vest",
    "ignite": "🔥 Ignite",
}


def lobby_keyboard(game_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🎮 Join Game", callback_data=f"{JOIN_CALLBACK}:{game_id}:0")],
        [InlineKeyboardButton("▶️ Start Game", callback_data=f"{START_CALLBACK}:{game_id}:0")],
    ])


def night_action_keyboard(game_id: str, targets: Sequence[Tuple[int, int, str]],
                          keywords: Sequence[str], resources: dict = None) -> InlineKeyboardMarkup:
    """
    Buttons for a night prompt.

    Args:
        game_id: Game identifier
        targets: (number, player_id, name) triples, numbered as in the prompt text
        keywords: Keywords the role may use
        resources: Remaining vests/alerts shown on the keyword buttons
    """
    resources = resources or {}
    rows: List[List[InlineKeyboardButton]] = []
    for number, player_id, name in targets:
        rows.append([InlineKeyboardButton(
            f"{number}. {name}", callback_data=f"{TARGET_CALLBACK}:{game_id}:{player_id}"
        )])
    keyword_row = []
    for keyword in keywords:
        label = KEYWORD_LABELS.get(keyword, keyword)
        if keyword in ("alert", "vest"):
            label = f"{label} ({resources.get(keyword + 's', 0)} left)"
        keyword_row.append(InlineKeyboardButton(label, callback_data=f"{KEYWORD_CALLBACK}:{game_id}:{keyword}"))
    if keyword_row:
        rows.append(keyword_row)
    return InlineKeyboardMarkup(rows)


def parse_callback_data(data: str) -> Tuple[str, str, str]:
    """Split callback data into (kind, game_id, value)."""
    kind, game_id, value = data.split(":", 2)
    return kind, game_id, value
