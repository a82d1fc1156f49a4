"""
Night Action Collector

Validates and stores night actions, prompts night actors, and resolves the
night when the phase ends.

Numeric targets are 1-based positions in the list of living players in
join order, the actor included. The number is stored as typed and only
turned into a player at resolution time, against the roster as it is then.
A number that lands on the actor is dropped by the resolver.
"""

from typing import Dict, List, Optional, Tuple

from ..database.models import EventType, Game, GamePhase, GameStatus, Player
from ..database.store import GameStateStore
from ..notifications.keyboards import night_action_keyboard
from ..notifications.status_display import markdown_name
from ..utils.logging_config import get_logger, log_game_event, log_user_action
from .night_resolver import NightActionInput, NightState, ResolverPlayer
from .night_resolver import resolve_night as resolve_night_actions
from .ports import NightResolutionPort, PhaseTransitionPort
from .roles import (
    ALERT_KEYWORD, IGNITE_KEYWORD, SKIP_KEYWORD, VEST_KEYWORD,
    RoleDefinition, get_role_definition
)
from .timing import utcnow

logger = get_logger(__name__)

INVALID_INPUT_MESSAGE = "Invalid action. Please use a number, `skip`, or a valid keyword."

KEYWORD_CONFIRMATIONS = {
    SKIP_KEYWORD: "✅ You chose to skip your action tonight.",
    ALERT_KEYWORD: "🎖️ You will go on alert tonight.",
    VEST_KEYWORD: "🦺 You will wear a vest tonight.",
    IGNITE_KEYWORD: "🔥 You will ignite every doused player tonight.",
}


def parse_action_input(raw: str, allowed_keywords) -> Optional[Tuple[Optional[str], Optional[int]]]:
    """
    Parse free-text night input.

    Args:
        raw: Text the player sent
        allowed_keywords: Keywords valid for the player's role

    Returns:
        (keyword, None) or (None, index), or None if the input is invalid
    """
    text = (raw or "").strip().lower()
    if not text:
        return None
    if text in allowed_keywords:
        return text, None
    if text.isascii() and text.isdigit():
        index = int(text)
        if index >= 1:
            return None, index
    return None


def numbered_living_players(players: List[Player]) -> List[Tuple[int, Player]]:
    """Living players in join order with the 1-based number players type."""
    return list(enumerate((p for p in players if p.alive), start=1))


class ActionCollector(NightResolutionPort):
    """
    Night action intake and night resolution.

    Talks to the phase scheduler only through PhaseTransitionPort.
    """

    def __init__(self, store: GameStateStore, notifier, phase_transitions: PhaseTransitionPort):
        self.store = store
        self.notifier = notifier
        self.phase_transitions = phase_transitions

    async def _validate_actor(self, game_id: str, player_id: int
                              ) -> Tuple[Optional[Game], Optional[Player], Optional[RoleDefinition], str]:
        game = await self.store.get_game(game_id)
        if not game:
            return None, None, None, "Game not found."
        if game.status != GameStatus.ACTIVE or game.phase != GamePhase.NIGHT:
            return None, None, None, "It is not currently night phase. Night actions can only be submitted at night."
        player = await self.store.get_player(game_id, player_id)
        if not player:
            return None, None, None, "You are not in this game."
        if not player.alive:
            return None, None, None, "You are dead and cannot perform actions."
        role = get_role_definition(player.role)
        if not role or not role.has_night_action:
            return None, None, None, "Your role does not have a night action."
        return game, player, role, ""

    async def submit_night_action(self, game_id: str, player_id: int, raw_input: str) -> Tuple[bool, str]:
        """
        Store a night action typed as free text.

        Args:
            game_id: Game identifier
            player_id: Submitting player
            raw_input: A keyword or a 1-based target number

        Returns:
            Tuple[bool, str]: (success, reply for the player)
        """
        try:
            game, player, role, error = await self._validate_actor(game_id, player_id)
            if error:
                return False, error

            parsed = parse_action_input(raw_input, role.keywords)
            if parsed is None:
                return False, INVALID_INPUT_MESSAGE
            keyword, index = parsed
            if index is not None and not role.targets_others:
                return False, INVALID_INPUT_MESSAGE

            await self._record_action(
                game, player, role,
                target_id=str(index) if index is not None else None,
                target_is_index=index is not None,
                keyword=keyword,
            )
            if keyword:
                return True, KEYWORD_CONFIRMATIONS.get(keyword, "✅ Action recorded.")
            return True, f"✅ Action recorded: target #{index}. You can change it until the night ends."
        except Exception as e:
            logger.error(f"Failed to submit night action - game_id: {game_id}, player_id: {player_id}, error: {str(e)}")
            return False, "Failed to record your action. Please try again."

    async def submit_interactive_action(self, game_id: str, player_id: int,
                                        target_player_id: Optional[int] = None,
                                        keyword: Optional[str] = None) -> Tuple[bool, str]:
        """
        Store a night action chosen from the prompt keyboard.

        Button presses name a concrete player, so no index is involved.
        """
        try:
            game, player, role, error = await self._validate_actor(game_id, player_id)
            if error:
                return False, error

            if keyword is not None:
                keyword = keyword.lower()
                if keyword not in role.keywords:
                    return False, INVALID_INPUT_MESSAGE
                await self._record_action(game, player, role, keyword=keyword)
                return True, KEYWORD_CONFIRMATIONS.get(keyword, "✅ Action recorded.")

            if target_player_id is None or not role.targets_others:
                return False, INVALID_INPUT_MESSAGE
            target = await self.store.get_player(game_id, target_player_id)
            if not target or not target.alive or target.player_id == player_id:
                return False, "That player cannot be targeted."

            await self._record_action(game, player, role, target_id=str(target.player_id))
            return True, f"✅ You chose **{markdown_name(target.display_name)}**. You can change it until the night ends."
        except Exception as e:
            logger.error(f"Failed to submit interactive action - game_id: {game_id}, player_id: {player_id}, error: {str(e)}")
            return False, "Failed to record your action. Please try again."

    async def _record_action(self, game: Game, player: Player, role: RoleDefinition,
                             target_id: Optional[str] = None, target_is_index: bool = False,
                             keyword: Optional[str] = None) -> None:
        await self.store.upsert_action(
            game.id, game.night_number, player.player_id, role.action_type.value,
            target_id=target_id, target_is_index=target_is_index, keyword=keyword,
        )
        await self.store.update_player(
            game.id, player.player_id,
            has_acted_this_phase=True, is_inactive=False, last_action_time=utcnow(),
        )
        log_user_action(player.player_id, "night_action", game_id=game.id,
                        target=target_id, keyword=keyword)

        await self.phase_transitions.check_early_phase_end(game.id)
        await self.notifier.refresh_status_display(game.id)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    async def send_night_action_prompts(self, game_id: str) -> int:
        """
        Privately prompt every living player whose role acts at night.

        Returns:
            int: Number of prompts delivered
        """
        game = await self.store.get_game(game_id)
        if not game:
            return 0
        players = await self.store.get_players(game_id)
        sent = 0
        for player in players:
            role = get_role_definition(player.role)
            if not player.alive or not role or not role.has_night_action:
                continue
            text, keyboard = self.build_prompt(game, player, role, players)
            if await self.notifier.prompt_player(player.player_id, text, reply_markup=keyboard):
                sent += 1
        logger.info(f"Sent night prompts - game_id: {game_id}, night: {game.night_number}, sent: {sent}")
        return sent

    @staticmethod
    def build_prompt(game: Game, player: Player, role: RoleDefinition, players: List[Player]):
        """Prompt text and keyboard for one night actor."""
        lines = [
            f"🌙 **Night {game.night_number}** - Game `{game.id}`",
            f"You are the **{role.display_name}**.",
            "",
        ]
        targets = []
        if role.targets_others:
            lines.append("Choose your target:")
            for number, target in numbered_living_players(players):
                name = markdown_name(target.display_name)
                if target.player_id == player.player_id:
                    lines.append(f"{number}. {name} (you)")
                    continue
                lines.append(f"{number}. {name}")
                targets.append((number, target.player_id, target.display_name))
            lines.append("")
            hint = "Reply with a number"
        else:
            hint = "Reply with a keyword"

        resources = {
            "bullets": player.bullets_remaining or 0,
            "vests": player.vests_remaining or 0,
            "alerts": player.alerts_remaining or 0,
        }
        keywords = ", ".join(f"`{k}`" for k in role.keywords)
        lines.append(f"{hint} or one of: {keywords}.")
        if role.bullets:
            lines.append(f"Bullets left: {resources['bullets']}")
        keyboard = night_action_keyboard(game.id, targets, role.keywords, resources)
        return "\n".join(lines), keyboard

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_night(self, game_id: str) -> bool:
        """
        Resolve the current night once.

        Returns:
            bool: False if there was nothing to do or the night was already resolved
        """
        game = await self.store.get_game(game_id)
        if not game:
            return False
        night = game.night_number
        if not await self.store.claim_night_resolution(game_id, night):
            logger.info(f"Night already resolved - game_id: {game_id}, night: {night}")
            return False

        applying = False
        try:
            players = await self.store.get_players(game_id)
            actions = await self.store.get_actions_for_night(game_id, night)
            by_id = {p.player_id: p for p in players}

            inputs: Dict[int, NightActionInput] = {}
            for action in actions:
                actor = by_id.get(action.player_id)
                if not actor or not actor.alive:
                    continue
                inputs[action.player_id] = NightActionInput(
                    action=action.action_type,
                    target=self._resolve_target(players, action.target_id, action.target_is_index),
                    keyword=action.keyword,
                )

            state = NightState(
                players=[
                    ResolverPlayer(
                        player_id=p.player_id, role=p.role, alive=p.alive,
                        display_name=markdown_name(p.display_name),
                        bullets=p.bullets_remaining or 0, vests=p.vests_remaining or 0,
                        alerts=p.alerts_remaining or 0,
                    )
                    for p in players
                ],
                actions=inputs,
                night_number=night,
                framed_players=set(game.framed_players or []),
                doused_players=set(game.doused_players or []),
            )
            results = resolve_night_actions(state)
            applying = True

            for death in results.deaths:
                victim = by_id[death.player_id]
                killed = await self.store.kill_player(
                    game_id, death.player_id,
                    death_reason=death.reason, death_phase=GamePhase.NIGHT.value, death_night=night,
                )
                if not killed:
                    continue
                await self.store.create_event(
                    game_id, GamePhase.NIGHT.value, night, EventType.DEATH,
                    f"{victim.display_name} died ({death.reason})",
                    {"playerId": death.player_id, "reason": death.reason, "cleaned": death.cleaned},
                )
                await self.notifier.announce(game.channel_id, self._death_announcement(game, victim, death.cleaned))

            if not results.deaths:
                await self.notifier.announce(game.channel_id, f"🌅 **[Game {game_id}]** Nobody died last night.")

            for player_id, res in results.resources.items():
                player = by_id[player_id]
                if (res["bullets"], res["vests"], res["alerts"]) != (
                        player.bullets_remaining, player.vests_remaining, player.alerts_remaining):
                    await self.store.update_player(
                        game_id, player_id,
                        bullets_remaining=res["bullets"], vests_remaining=res["vests"],
                        alerts_remaining=res["alerts"],
                    )
            await self.store.update_game(
                game_id,
                framed_players=sorted(results.framed_players),
                doused_players=sorted(results.doused_players),
            )

            for report in results.reports:
                await self.notifier.prompt_player(report.player_id, report.text)

            await self.store.mark_actions_processed(game_id, night)
            log_game_event(game_id, "night_resolved", night=night, deaths=len(results.deaths))
            return True
        except Exception as e:
            logger.error(f"Failed to resolve night - game_id: {game_id}, night: {night}, error: {str(e)}")
            # Nothing applied yet, so the retry may resolve this night again
            if not applying:
                await self.store.release_night_resolution(game_id, night)
            raise

    @staticmethod
    def _resolve_target(players: List[Player], target_id: Optional[str],
                        target_is_index: bool) -> Optional[int]:
        """Turn a stored target into a player ID using the current roster."""
        if not target_id:
            return None
        if not target_is_index:
            return int(target_id)
        numbered = dict(numbered_living_players(players))
        target = numbered.get(int(target_id))
        return target.player_id if target else None

    @staticmethod
    def _death_announcement(game: Game, victim: Player, cleaned: bool) -> str:
        text = f"☠️ **[Game {game.id}]** {markdown_name(victim.display_name)} was killed during the night!"
        if not game.reveal_roles:
            return text
        if cleaned:
            return f"{text}\n🧹 Their role was cleaned away."
        role = get_role_definition(victim.role)
        if role:
            return f"{text}\nThey were the **{role.display_name}**."
        return text
