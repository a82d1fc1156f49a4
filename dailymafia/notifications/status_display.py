"""
Status Display Rendering

Builds the text of the pinned per-game status message.
"""

from datetime import datetime
from typing import List, Sequence

from telegram.helpers import escape_markdown

from ..database.models import Game, GameEvent, GamePhase, GameStatus, Player
from ..game.roles import get_role_definition
from ..game.timing import format_time_remaining

PHASE_TITLES = {
    GamePhase.SETUP: "🕐 Lobby",
    GamePhase.NIGHT: "🌙 Night {night}",
    GamePhase.DAY: "☀️ Day {next_day}",
    GamePhase.VOTING: "🗳️ Voting (Day {day})",
    GamePhase.ENDED: "🏁 Game Over",
}


def markdown_name(name: str) -> str:
    """A user-chosen name escaped for legacy Markdown messages."""
    return escape_markdown(name or "", version=1)


def mention(player: Player) -> str:
    """Markdown mention that notifies the player."""
    return f"[{markdown_name(player.display_name)}](tg://user?id={player.player_id})"


def is_action_eligible(player: Player, phase: GamePhase) -> bool:
    """Whether a player is expected to act in the given phase."""
    if not player.alive:
        return False
    if phase == GamePhase.NIGHT:
        role = get_role_definition(player.role)
        return bool(role and role.has_night_action)
    return phase == GamePhase.VOTING


def phase_title(game: Game) -> str:
    return PHASE_TITLES.get(game.phase, str(game.phase.value)).format(
        night=game.night_number, day=game.day_number, next_day=game.day_number + 1
    )


def _player_marker(player: Player, phase: GamePhase) -> str:
    if player.has_acted_this_phase and is_action_eligible(player, phase):
        return "✅"
    if player.is_inactive:
        return "💤"
    return "⏳"


def render_status(game: Game, players: Sequence[Player], events: Sequence[GameEvent], now: datetime) -> str:
    """
    Render the status display for a game.

    Args:
        game: Game record
        players: Players in join order
        events: Most recent events, newest first
        now: Current time for the countdown

    Returns:
        str: Markdown text
    """
    lines: List[str] = [f"🐝 **Daily Mafia** `{game.id}`", f"**Phase:** {phase_title(game)}"]

    if game.status == GameStatus.PENDING:
        lines.append(f"⏰ Lobby closes in {format_time_remaining(game.lobby_deadline, now)}")
        lines.append(f"👥 Players: {len(players)}")
        lines.extend(f"• {markdown_name(p.display_name)}" for p in players)
        return "\n".join(lines)

    if game.status == GameStatus.ACTIVE:
        lines.append(f"⏰ Time remaining: {format_time_remaining(game.phase_deadline, now)}")

    alive = [p for p in players if p.alive]
    dead = [p for p in players if not p.alive]

    lines.append("")
    lines.append(f"**Alive ({len(alive)}):**")
    for player in alive:
        lines.append(f"{_player_marker(player, game.phase)} {markdown_name(player.display_name)}")

    if dead:
        lines.append("")
        lines.append(f"**Dead ({len(dead)}):**")
        for player in dead:
            role = get_role_definition(player.role)
            role_text = f" ({role.display_name})" if game.reveal_roles and role else ""
            reason = f" - {markdown_name(player.death_reason)}" if player.death_reason else ""
            lines.append(f"☠️ {markdown_name(player.display_name)}{role_text}{reason}")

    if game.status == GameStatus.ACTIVE and game.phase != GamePhase.DAY:
        waiting = [markdown_name(p.display_name) for p in alive
                   if is_action_eligible(p, game.phase) and not p.has_acted_this_phase]
        lines.append("")
        lines.append(f"**Waiting for:** {', '.join(waiting) if waiting else 'nobody'}")

    if events:
        lines.append("")
        lines.append("**Recent events:**")
        lines.extend(f"• {markdown_name(event.description)}" for event in events)

    return "\n".join(lines)
