"""
Night Action Resolver

Pure resolution of one night: takes the roster and the collected actions,
returns deaths, resource consumption, status-set updates and private
investigation reports. No I/O happens here; the action collector loads the
inputs and applies the results.

Attack levels run 0-3 (none, basic, powerful, unstoppable) against defense
levels 0-3 (none, basic, powerful, invincible). An attack kills when it is
strictly stronger than the target's effective defense.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .roles import (
    NightActionType, Team, RoleDefinition, SELF_ONLY_ACTIONS,
    SKIP_KEYWORD, IGNITE_KEYWORD, get_role_definition
)

INVINCIBLE = 3
POWERFUL = 2
BASIC = 1


@dataclass
class ResolverPlayer:
    player_id: int
    role: str
    alive: bool
    display_name: str = ""
    bullets: int = 0
    vests: int = 0
    alerts: int = 0


@dataclass
class NightActionInput:
    """A stored action after numeric targets were resolved to identities."""
    action: str
    target: Optional[int] = None
    keyword: Optional[str] = None


@dataclass
class NightState:
    players: List[ResolverPlayer]
    actions: Dict[int, NightActionInput]
    night_number: int
    framed_players: Set[int] = field(default_factory=set)
    doused_players: Set[int] = field(default_factory=set)


@dataclass
class Death:
    player_id: int
    reason: str
    cleaned: bool = False


@dataclass
class PrivateReport:
    player_id: int
    text: str


@dataclass
class NightResults:
    deaths: List[Death] = field(default_factory=list)
    resources: Dict[int, Dict[str, int]] = field(default_factory=dict)
    framed_players: Set[int] = field(default_factory=set)
    doused_players: Set[int] = field(default_factory=set)
    reports: List[PrivateReport] = field(default_factory=list)


Intent = Tuple[NightActionType, Optional[int], Optional[str]]


def _action_type(stored: str, role: RoleDefinition) -> NightActionType:
    try:
        return NightActionType(stored)
    except ValueError:
        return role.action_type


def _collect_intents(state: NightState, players: Dict[int, ResolverPlayer], alive: Set[int]) -> Dict[int, Intent]:
    """Drop skips, dead actors, roles without actions and unusable targets."""
    intents: Dict[int, Intent] = {}
    for actor_id, action in state.actions.items():
        if actor_id not in alive:
            continue
        role = get_role_definition(players[actor_id].role)
        if role is None or not role.has_night_action:
            continue
        keyword = (action.keyword or "").lower() or None
        if keyword == SKIP_KEYWORD:
            continue
        action_type = _action_type(action.action, role)

        if action_type in SELF_ONLY_ACTIONS:
            if keyword in role.keywords:
                intents[actor_id] = (action_type, actor_id, keyword)
            continue
        if action_type == NightActionType.DOUSE and keyword == IGNITE_KEYWORD:
            intents[actor_id] = (action_type, None, keyword)
            continue
        if action.target is None or action.target not in alive or action.target == actor_id:
            continue
        intents[actor_id] = (action_type, action.target, None)
    return intents


def resolve_night(state: NightState) -> NightResults:
    """
    Resolve every action of a night.

    Args:
        state: Roster, resolved actions and the persistent framed/doused sets

    Returns:
        NightResults: Deaths and updated state; players without an entry in
        ``state.actions`` simply took no action
    """
    players = {p.player_id: p for p in state.players}
    alive = {p.player_id for p in state.players if p.alive}
    names = {p.player_id: p.display_name or str(p.player_id) for p in state.players}
    resources = {
        pid: {"bullets": p.bullets, "vests": p.vests, "alerts": p.alerts}
        for pid, p in players.items() if p.alive
    }
    framed = set(state.framed_players)
    doused = set(state.doused_players)

    intents = _collect_intents(state, players, alive)
    protections: Dict[int, int] = defaultdict(int)

    # Veterans going on alert spend an alert and cannot be blocked
    on_alert: List[int] = []
    for actor_id, (action_type, _, _) in intents.items():
        if action_type == NightActionType.ALERT and resources[actor_id]["alerts"] > 0:
            resources[actor_id]["alerts"] -= 1
            protections[actor_id] = max(protections[actor_id], POWERFUL)
            on_alert.append(actor_id)

    # Block pass
    blocked: Set[int] = set()
    for actor_id, (action_type, target, _) in intents.items():
        if action_type == NightActionType.JAIL:
            blocked.add(target)
            protections[target] = INVINCIBLE
        elif action_type == NightActionType.ROLEBLOCK:
            blocked.add(target)
    blocked.difference_update(on_alert)
    active = {pid: intent for pid, intent in intents.items() if pid not in blocked}

    visits: Dict[int, List[int]] = defaultdict(list)
    visited: Dict[int, int] = {}
    attacks: Dict[int, List[Tuple[int, int, str]]] = defaultdict(list)
    guards: Dict[int, int] = {}
    cleaned: Set[int] = set()
    new_douses: Set[int] = set()
    ignited: Set[int] = set()

    def visit(actor_id: int, target_id: int) -> None:
        visits[target_id].append(actor_id)
        visited[actor_id] = target_id

    def attack(target_id: int, attacker_id: int, level: int, reason: str) -> None:
        attacks[target_id].append((attacker_id, level, reason))

    for actor_id, (action_type, target, keyword) in active.items():
        role = get_role_definition(players[actor_id].role)
        res = resources[actor_id]

        if action_type in (NightActionType.ALERT, NightActionType.JAIL, NightActionType.ROLEBLOCK):
            if target is not None and target != actor_id:
                visit(actor_id, target)
        elif action_type == NightActionType.VEST:
            if res["vests"] > 0:
                res["vests"] -= 1
                protections[actor_id] = max(protections[actor_id], POWERFUL)
        elif action_type == NightActionType.HEAL:
            visit(actor_id, target)
            protections[target] = max(protections[target], BASIC)
        elif action_type == NightActionType.GUARD:
            visit(actor_id, target)
            protections[target] = max(protections[target], POWERFUL)
            guards.setdefault(target, actor_id)
        elif action_type == NightActionType.WASP_KILL:
            visit(actor_id, target)
            attack(target, actor_id, max(role.attack, BASIC), "killed by the Wasps")
        elif action_type == NightActionType.SHOOT:
            if res["bullets"] > 0:
                res["bullets"] -= 1
                visit(actor_id, target)
                attack(target, actor_id, BASIC, "shot by a Soldier Bee")
        elif action_type == NightActionType.SERIAL_KILL:
            visit(actor_id, target)
            attack(target, actor_id, BASIC, "stung by the Murder Hornet")
        elif action_type == NightActionType.DOUSE:
            if keyword == IGNITE_KEYWORD:
                for doused_id in sorted(doused):
                    if doused_id in alive:
                        attack(doused_id, actor_id, INVINCIBLE, "burned by the Fire Ant")
                        ignited.add(doused_id)
            else:
                visit(actor_id, target)
                new_douses.add(target)
        elif action_type == NightActionType.FRAME:
            visit(actor_id, target)
            framed.add(target)
        elif action_type == NightActionType.CLEAN:
            visit(actor_id, target)
            cleaned.add(target)
        else:
            # Investigations, lookouts and trackers only visit
            visit(actor_id, target)

    # Counterattacks on visitors
    for veteran_id in on_alert:
        for visitor_id in visits.get(veteran_id, []):
            attack(visitor_id, veteran_id, POWERFUL, "shot by a Veteran on alert")
    for pid in alive:
        role = get_role_definition(players[pid].role)
        if role and role.action_type == NightActionType.SERIAL_KILL:
            for visitor_id in visits.get(pid, []):
                if visitor_id != pid:
                    attack(visitor_id, pid, BASIC, "stung by the Murder Hornet")

    deaths: List[Death] = []
    dead: Set[int] = set()

    # Bodyguards die in place of an attacked target and strike back
    for target_id, guard_id in guards.items():
        if not attacks.get(target_id):
            continue
        attacker_id = attacks[target_id][0][0]
        dead.add(guard_id)
        deaths.append(Death(guard_id, "died protecting another player", guard_id in cleaned))
        attack(attacker_id, guard_id, POWERFUL, "killed by a Bodyguard Bee")

    for target_id, target_attacks in attacks.items():
        if target_id in dead or target_id not in alive:
            continue
        role = get_role_definition(players[target_id].role)
        defense = max(role.defense if role else 0, protections.get(target_id, 0))
        for _, level, reason in target_attacks:
            if level > defense:
                dead.add(target_id)
                deaths.append(Death(target_id, reason, target_id in cleaned))
                break

    reports = _investigation_reports(active, players, names, framed, visits, visited)
    return NightResults(
        deaths=deaths,
        resources=resources,
        framed_players=framed,
        doused_players=(doused - ignited) | new_douses,
        reports=reports,
    )


def is_suspicious(role: Optional[RoleDefinition], framed: bool) -> bool:
    if framed:
        return True
    if role is None:
        return False
    if role.team == Team.WASP:
        return not role.immune_to_detection
    return role.team == Team.NEUTRAL and role.subteam in ("killing", "evil")


def _investigation_reports(active, players, names, framed, visits, visited) -> List[PrivateReport]:
    reports = []
    for actor_id, (action_type, target, _) in active.items():
        if target is None:
            continue
        target_name = names.get(target, str(target))
        target_role = get_role_definition(players[target].role)

        if action_type == NightActionType.INVESTIGATE_SUSPICIOUS:
            if is_suspicious(target_role, target in framed):
                text = f"👮 **{target_name}** is **SUSPICIOUS!** ⚠️"
            else:
                text = f"👮 **{target_name}** is **NOT suspicious.** ✅"
        elif action_type in (NightActionType.INVESTIGATE_EXACT, NightActionType.SPY):
            role_text = target_role.display_name if target_role else "Unknown"
            text = f"🔍 **{target_name}** is a **{role_text}**!"
        elif action_type == NightActionType.LOOKOUT:
            seen = [names.get(v, str(v)) for v in visits.get(target, []) if v != actor_id]
            text = f"👁️ You watched **{target_name}** last night.\nVisitors: {', '.join(seen) if seen else 'No one visited them.'}"
        elif action_type == NightActionType.TRACK:
            destination = visited.get(target)
            where = names.get(destination, str(destination)) if destination is not None else "nobody"
            text = f"🗺️ You followed **{target_name}**. They visited **{where}**."
        else:
            continue
        reports.append(PrivateReport(actor_id, text))
    return reports
