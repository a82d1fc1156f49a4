"""
Win Condition Evaluation

Team counting over the (role, alive) projection of a game's players.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .roles import Team, get_role_definition


@dataclass
class TeamCounts:
    wasps: int = 0
    bees: int = 0
    neutral_killing: int = 0
    neutral_evil: int = 0
    neutral_benign: int = 0
    total: int = 0


def count_teams(players: Iterable) -> TeamCounts:
    """Count living players per faction. Players need ``role`` and ``alive``."""
    counts = TeamCounts()
    for player in players:
        if not player.alive:
            continue
        counts.total += 1
        role = get_role_definition(player.role)
        if role is None:
            continue
        if role.team == Team.WASP:
            counts.wasps += 1
        elif role.team == Team.BEE:
            counts.bees += 1
        elif role.subteam == "killing":
            counts.neutral_killing += 1
        elif role.subteam == "evil":
            counts.neutral_evil += 1
        else:
            counts.neutral_benign += 1
    return counts


def check_win_conditions(players: Iterable) -> Optional[Team]:
    """
    Evaluate whether the game is over.

    Returns:
        The winning team, or None while the game continues
    """
    counts = count_teams(list(players))

    # A neutral killer left alone wins
    if counts.total == 1 and counts.neutral_killing == 1:
        return Team.NEUTRAL

    if counts.wasps > 0 and counts.wasps >= counts.bees + counts.neutral_killing + counts.neutral_evil:
        return Team.WASP

    if counts.wasps == 0 and counts.neutral_killing == 0:
        return Team.BEE

    return None


def determine_winners(players: Iterable, winner: Team) -> List:
    """
    Players on the winning side.

    For a neutral win only the surviving killer wins, not every neutral role.
    """
    winners = []
    for player in players:
        role = get_role_definition(player.role)
        if role is None or role.team != winner:
            continue
        if winner == Team.NEUTRAL and not (player.alive and role.subteam == "killing"):
            continue
        winners.append(player)
    return winners
