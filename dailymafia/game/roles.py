"""
Daily Mafia Role Catalog

This module defines the closed set of roles a Daily Mafia game can deal.
Each role carries a team, a tagged night action type and its resource
counts; behaviour lives in the night resolver, keyed on the action type.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Team(Enum):
    """Factions a role can belong to."""
    BEE = "bee"
    WASP = "wasp"
    NEUTRAL = "neutral"


class NightActionType(Enum):
    """Every night effect the resolver knows how to apply."""
    INVESTIGATE_SUSPICIOUS = "investigate_suspicious"
    INVESTIGATE_EXACT = "investigate_exact"
    SPY = "consigliere"
    HEAL = "heal"
    GUARD = "guard"
    LOOKOUT = "lookout"
    TRACK = "track"
    SHOOT = "shoot"
    JAIL = "jail"
    ROLEBLOCK = "roleblock"
    ALERT = "alert"
    VEST = "vest"
    WASP_KILL = "mafia_kill"
    SERIAL_KILL = "serial_kill"
    DOUSE = "arsonist"
    FRAME = "frame"
    CLEAN = "clean"


# Keyword vocabulary accepted in place of a numeric target
SKIP_KEYWORD = "skip"
ALERT_KEYWORD = "alert"
VEST_KEYWORD = "vest"
IGNITE_KEYWORD = "ignite"
ACTION_KEYWORDS = (SKIP_KEYWORD, ALERT_KEYWORD, VEST_KEYWORD, IGNITE_KEYWORD)

# Actions that only ever affect the actor
SELF_ONLY_ACTIONS = (NightActionType.ALERT, NightActionType.VEST)

_ROLE_KEYWORDS = {
    NightActionType.ALERT: (ALERT_KEYWORD,),
    NightActionType.VEST: (VEST_KEYWORD,),
    NightActionType.DOUSE: (IGNITE_KEYWORD,),
}

BEE_WIN = "Eliminate all Wasps and harmful Neutrals"
WASP_WIN = "Equal or outnumber all other players"
KILLER_WIN = "Be the last player alive"


@dataclass(frozen=True)
class RoleDefinition:
    """Static description of a role."""
    key: str
    name: str
    emoji: str
    team: Team
    description: str
    abilities: Tuple[str, ...]
    win_condition: str
    action_type: Optional[NightActionType] = None
    subteam: Optional[str] = None
    attack: int = 0
    defense: int = 0
    bullets: int = 0
    vests: int = 0
    alerts: int = 0
    tier: str = "plus"
    voice_only: bool = False
    immune_to_detection: bool = False

    @property
    def has_night_action(self) -> bool:
        return self.action_type is not None

    @property
    def targets_others(self) -> bool:
        return self.has_night_action and self.action_type not in SELF_ONLY_ACTIONS

    @property
    def keywords(self) -> Tuple[str, ...]:
        """Keywords this role may submit at night."""
        if not self.has_night_action:
            return ()
        return (SKIP_KEYWORD,) + _ROLE_KEYWORDS.get(self.action_type, ())

    @property
    def display_name(self) -> str:
        return f"{self.emoji} {self.name}"

    def starting_resources(self) -> Dict[str, int]:
        return {"bullets": self.bullets, "vests": self.vests, "alerts": self.alerts}


class RoleKey(Enum):
    """Closed set of role identifiers stored on player records."""
    QUEENS_GUARD = "QUEENS_GUARD"
    SCOUT_BEE = "SCOUT_BEE"
    NURSE_BEE = "NURSE_BEE"
    GUARD_BEE = "GUARD_BEE"
    LOOKOUT_BEE = "LOOKOUT_BEE"
    SOLDIER_BEE = "SOLDIER_BEE"
    QUEEN_BEE = "QUEEN_BEE"
    WORKER_BEE = "WORKER_BEE"
    JAILER_BEE = "JAILER_BEE"
    ESCORT_BEE = "ESCORT_BEE"
    MEDIUM_BEE = "MEDIUM_BEE"
    VETERAN_BEE = "VETERAN_BEE"
    TRACKER_BEE = "TRACKER_BEE"
    DEAF_BEE = "DEAF_BEE"
    WASP_QUEEN = "WASP_QUEEN"
    KILLER_WASP = "KILLER_WASP"
    SPY_WASP = "SPY_WASP"
    CONSORT_WASP = "CONSORT_WASP"
    JANITOR_WASP = "JANITOR_WASP"
    FRAMER_WASP = "FRAMER_WASP"
    CLOWN_BEETLE = "CLOWN_BEETLE"
    BUTTERFLY = "BUTTERFLY"
    MURDER_HORNET = "MURDER_HORNET"
    FIRE_ANT = "FIRE_ANT"


def _bee(key: RoleKey, name: str, emoji: str, description: str, abilities, **kwargs) -> RoleDefinition:
    return RoleDefinition(key.value, name, emoji, Team.BEE, description, tuple(abilities), BEE_WIN, **kwargs)


def _wasp(key: RoleKey, name: str, emoji: str, description: str, abilities, **kwargs) -> RoleDefinition:
    return RoleDefinition(key.value, name, emoji, Team.WASP, description, tuple(abilities), WASP_WIN, **kwargs)


def _neutral(key: RoleKey, name: str, emoji: str, description: str, abilities, win_condition: str,
             subteam: str, **kwargs) -> RoleDefinition:
    return RoleDefinition(key.value, name, emoji, Team.NEUTRAL, description, tuple(abilities), win_condition,
                          subteam=subteam, **kwargs)


ROLES: Dict[RoleKey, RoleDefinition] = {
    # === BEE ROLES ===
    RoleKey.QUEENS_GUARD: _bee(
        RoleKey.QUEENS_GUARD, "Queen's Guard", "👮",
        "You can investigate one player each night to see if they are suspicious.",
        ["Investigate one player each night", "Learn if they are suspicious or not"],
        action_type=NightActionType.INVESTIGATE_SUSPICIOUS,
    ),
    RoleKey.SCOUT_BEE: _bee(
        RoleKey.SCOUT_BEE, "Scout Bee", "🔍",
        "You can investigate one player each night to learn their exact role.",
        ["Investigate one player each night", "Learn their exact role"],
        action_type=NightActionType.INVESTIGATE_EXACT,
    ),
    RoleKey.NURSE_BEE: _bee(
        RoleKey.NURSE_BEE, "Nurse Bee", "⚕️",
        "You can heal one player each night, protecting them from basic attacks.",
        ["Heal one player each night", "Prevents them from dying to basic attacks"],
        action_type=NightActionType.HEAL,
    ),
    RoleKey.GUARD_BEE: _bee(
        RoleKey.GUARD_BEE, "Bodyguard Bee", "🛡️",
        "You can protect one player each night. If they are attacked, you die instead, fighting the attacker.",
        ["Protect one player each night", "Die in their place if attacked", "Kill one attacker"],
        action_type=NightActionType.GUARD, attack=2,
    ),
    RoleKey.LOOKOUT_BEE: _bee(
        RoleKey.LOOKOUT_BEE, "Lookout Bee", "👁️",
        "You can watch one player each night to see who visits them.",
        ["Watch one player each night", "See everyone who visits them"],
        action_type=NightActionType.LOOKOUT,
    ),
    RoleKey.SOLDIER_BEE: _bee(
        RoleKey.SOLDIER_BEE, "Soldier Bee", "⚔️",
        "You have 1 bullet. You can shoot one player at night.",
        ["Shoot one player (1 bullet total)", "Basic attack"],
        action_type=NightActionType.SHOOT, attack=1, bullets=1,
    ),
    RoleKey.QUEEN_BEE: _bee(
        RoleKey.QUEEN_BEE, "Queen Bee", "👑",
        "You lead the hive in discussion. You have no night action.",
        ["Rally the hive during the day"],
    ),
    RoleKey.WORKER_BEE: _bee(
        RoleKey.WORKER_BEE, "Worker Bee", "🐝",
        "You have no special abilities, but you help identify threats through discussion and voting.",
        ["Vote during the voting phase"],
    ),
    RoleKey.JAILER_BEE: _bee(
        RoleKey.JAILER_BEE, "Jailer Bee", "⛓️",
        "You can jail one player each night, protecting them but preventing their action.",
        ["Jail one player each night", "Jailed players cannot act and cannot be killed"],
        action_type=NightActionType.JAIL,
    ),
    RoleKey.ESCORT_BEE: _bee(
        RoleKey.ESCORT_BEE, "Escort Bee", "💃",
        "You can distract one player each night, preventing them from performing their action.",
        ["Roleblock one player each night"],
        action_type=NightActionType.ROLEBLOCK,
    ),
    RoleKey.MEDIUM_BEE: _bee(
        RoleKey.MEDIUM_BEE, "Medium Bee", "👻",
        "You commune with the dead. You have no night action.",
        ["Hear the dead"],
    ),
    RoleKey.VETERAN_BEE: _bee(
        RoleKey.VETERAN_BEE, "Veteran Bee", "🎖️",
        "You can go on alert at night, killing anyone who visits you.",
        ["Go on alert 3 times", "Kill all visitors with a powerful attack", "Cannot be roleblocked while on alert"],
        action_type=NightActionType.ALERT, attack=2, alerts=3,
    ),
    RoleKey.TRACKER_BEE: _bee(
        RoleKey.TRACKER_BEE, "Tracker Bee", "🗺️",
        "You can follow one player each night to see who they visit.",
        ["Follow one player each night", "See who they visit"],
        action_type=NightActionType.TRACK, tier="ultimate",
    ),
    RoleKey.DEAF_BEE: _bee(
        RoleKey.DEAF_BEE, "Deaf Bee", "🦻",
        "You cannot hear voice chat.",
        ["Server deafened for the entire game"],
        voice_only=True,
    ),
    # === WASP ROLES ===
    RoleKey.WASP_QUEEN: _wasp(
        RoleKey.WASP_QUEEN, "Wasp Queen", "👸",
        "You lead the Wasps. You choose who to kill each night and appear innocent to the Queen's Guard.",
        ["Kill one player each night", "Basic defense", "Immune to detection"],
        action_type=NightActionType.WASP_KILL, attack=1, defense=1, immune_to_detection=True,
    ),
    RoleKey.KILLER_WASP: _wasp(
        RoleKey.KILLER_WASP, "Killer Wasp", "🗡️",
        "You carry out the kills for the Wasp team.",
        ["Kill one player each night", "Basic attack"],
        action_type=NightActionType.WASP_KILL, attack=1,
    ),
    RoleKey.SPY_WASP: _wasp(
        RoleKey.SPY_WASP, "Spy Wasp", "🕵️",
        "You can learn the exact role of one player each night.",
        ["Investigate one player each night", "Learn their exact role"],
        action_type=NightActionType.SPY,
    ),
    RoleKey.CONSORT_WASP: _wasp(
        RoleKey.CONSORT_WASP, "Consort Wasp", "💋",
        "You can distract one player each night, preventing them from performing their action.",
        ["Roleblock one player each night"],
        action_type=NightActionType.ROLEBLOCK,
    ),
    RoleKey.JANITOR_WASP: _wasp(
        RoleKey.JANITOR_WASP, "Janitor Wasp", "🧹",
        "You can clean one player each night. If they die that night, their role stays hidden.",
        ["Clean one player each night", "Hide the role of a player who dies"],
        action_type=NightActionType.CLEAN,
    ),
    RoleKey.FRAMER_WASP: _wasp(
        RoleKey.FRAMER_WASP, "Framer Wasp", "🖼️",
        "You can frame one player each night so they look suspicious to the Queen's Guard.",
        ["Frame one player each night", "Framed players appear suspicious"],
        action_type=NightActionType.FRAME, tier="ultimate",
    ),
    # === NEUTRAL ROLES ===
    RoleKey.CLOWN_BEETLE: _neutral(
        RoleKey.CLOWN_BEETLE, "Clown Beetle", "🤡",
        "Your goal is to be voted out during the day.",
        ["Convince the hive to lynch you"],
        "Get yourself lynched during the day", "evil",
    ),
    RoleKey.BUTTERFLY: _neutral(
        RoleKey.BUTTERFLY, "Butterfly", "🦋",
        "You just want to survive until the end.",
        ["Put on a vest at night (3 total)", "Powerful defense while vested"],
        "Survive to the end of the game", "benign",
        action_type=NightActionType.VEST, vests=3,
    ),
    RoleKey.MURDER_HORNET: _neutral(
        RoleKey.MURDER_HORNET, "Murder Hornet", "💀",
        "You must kill everyone who opposes you. You kill anyone who visits you.",
        ["Kill one player each night", "Kill anyone who visits you", "Basic defense"],
        KILLER_WIN, "killing",
        action_type=NightActionType.SERIAL_KILL, attack=1, defense=1,
    ),
    RoleKey.FIRE_ANT: _neutral(
        RoleKey.FIRE_ANT, "Fire Ant", "🔥",
        "You can douse players in gasoline and ignite them all at once.",
        ["Douse one player each night", "Send `ignite` to burn every doused player", "Basic defense"],
        KILLER_WIN, "killing",
        action_type=NightActionType.DOUSE, attack=3, defense=1, tier="ultimate",
    ),
}


def get_role_definition(identifier: Optional[str]) -> Optional[RoleDefinition]:
    """
    Look up a role by key, falling back to its display name.

    Args:
        identifier: Role key (e.g. "NURSE_BEE") or display name

    Returns:
        RoleDefinition or None for unknown identifiers and the pending sentinel
    """
    if not identifier:
        return None
    try:
        return ROLES[RoleKey(identifier)]
    except ValueError:
        pass
    for role in ROLES.values():
        if role.name == identifier:
            return role
    return None


def get_eligible_roles(tier: str = "plus") -> List[RoleDefinition]:
    """
    Roles a game of the given tier may deal.

    Voice-only roles never work in a text game. Plus games cannot deal
    ultimate-only roles.
    """
    eligible = []
    for role in ROLES.values():
        if role.voice_only:
            continue
        if tier != "ultimate" and role.tier == "ultimate":
            continue
        eligible.append(role)
    return eligible


# Role pools used when building a distribution
_WASP_POOL = (RoleKey.KILLER_WASP, RoleKey.SPY_WASP, RoleKey.CONSORT_WASP, RoleKey.JANITOR_WASP,
              RoleKey.FRAMER_WASP)
_NEUTRAL_POOL = (RoleKey.CLOWN_BEETLE, RoleKey.BUTTERFLY, RoleKey.MURDER_HORNET, RoleKey.FIRE_ANT)
_BEE_POWER_POOL = (RoleKey.QUEENS_GUARD, RoleKey.LOOKOUT_BEE, RoleKey.SOLDIER_BEE, RoleKey.QUEEN_BEE,
                   RoleKey.JAILER_BEE, RoleKey.ESCORT_BEE, RoleKey.MEDIUM_BEE, RoleKey.VETERAN_BEE,
                   RoleKey.TRACKER_BEE)


def wasp_count_for(player_count: int) -> int:
    if player_count <= 6:
        return 1
    if player_count <= 9:
        return 2
    if player_count <= 13:
        return 3
    if player_count <= 16:
        return 4
    return int(player_count * 0.3)


def neutral_count_for(player_count: int) -> int:
    return int(player_count * 0.15) if player_count >= 8 else 0


def get_role_distribution(player_count: int, tier: str = "plus",
                          rng: Optional[random.Random] = None) -> Optional[List[str]]:
    """
    Build the list of role keys for a game.

    Args:
        player_count: Number of players to deal for
        tier: Game tier restricting the random pools
        rng: Random source (module random by default)

    Returns:
        List of role keys (unshuffled), or None below 6 players
    """
    if player_count < 6:
        return None
    rng = rng or random.Random()
    eligible = {RoleKey(role.key) for role in get_eligible_roles(tier)}

    def pool(keys):
        return [key for key in keys if key in eligible]

    wasp_count = wasp_count_for(player_count)
    neutral_count = neutral_count_for(player_count)
    bee_count = player_count - wasp_count - neutral_count

    distribution: List[RoleKey] = [RoleKey.WASP_QUEEN]
    if wasp_count >= 2:
        distribution.append(RoleKey.KILLER_WASP)
    wasp_pool = pool(_WASP_POOL)
    while len(distribution) < wasp_count:
        distribution.append(rng.choice(wasp_pool))

    neutral_pool = pool(_NEUTRAL_POOL)
    for _ in range(neutral_count):
        distribution.append(rng.choice(neutral_pool))

    bees: List[RoleKey] = []
    if bee_count >= 1:
        bees.append(RoleKey.GUARD_BEE)
    if bee_count >= 2:
        bees.append(RoleKey.NURSE_BEE)
    if bee_count >= 3 and player_count >= 10:
        bees.append(RoleKey.SCOUT_BEE)
    power_pool = pool(_BEE_POWER_POOL)
    while len(bees) < int(bee_count * 0.6):
        bees.append(rng.choice(power_pool))
    while len(bees) < bee_count:
        bees.append(RoleKey.WORKER_BEE)

    distribution.extend(bees)
    return [key.value for key in distribution]


def shuffled(items: List[str], rng: Optional[random.Random] = None) -> List[str]:
    """Return a shuffled copy."""
    result = list(items)
    (rng or random).shuffle(result)
    return result
