"""
Daily Mafia Game Manager

This module wires the store, notifier, phase scheduler, action collector,
vote engine and reward distributor together and exposes the operations the
chat handlers and the deadline sweeper call. It owns lobby handling: game
creation, joining, role assignment and launch.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Tuple

from ..database.models import EventType, Game, GamePhase, GameStatus
from ..database.store import GameStateStore
from ..notifications.notifier import Notifier
from ..notifications.status_display import markdown_name
from ..utils.config import get_chat_tier, get_settings, is_admin_user
from ..utils.logging_config import get_logger, log_game_event, log_user_action
from .action_collector import ActionCollector
from .phase_scheduler import PhaseScheduler
from .rewards import RewardDistributor
from .roles import get_role_definition, get_role_distribution, shuffled
from .timing import describe_threshold, utcnow
from .vote_tally import VoteTallyEngine, find_vote_target

logger = get_logger(__name__)


class DailyMafiaManager:
    """
    Central manager for Daily Mafia games.

    Every method that answers a player returns ``(success, reply)`` so the
    handler can send exactly one message back.
    """

    def __init__(self, store: Optional[GameStateStore] = None, notifier=None,
                 clock: Callable[[], datetime] = utcnow):
        """Initialize the manager and its collaborators."""
        self.settings = get_settings()
        self.clock = clock
        self.store = store or GameStateStore()
        self.notifier = notifier or Notifier(self.store)
        self.rewards = RewardDistributor(self.store, self.notifier)
        self.scheduler = PhaseScheduler(self.store, self.notifier, self.rewards, clock=clock)
        self.actions = ActionCollector(self.store, self.notifier, self.scheduler)
        self.votes = VoteTallyEngine(self.store, self.notifier, self.scheduler)
        self.scheduler.set_phase_exit_hooks(night_hook=self.actions, voting_hook=self.votes)
        self._launch_lock = asyncio.Lock()

    def set_bot_context(self, bot_context) -> None:
        """Set the bot context used for every outgoing message."""
        self.notifier.set_bot_context(bot_context)

    @property
    def min_players(self) -> int:
        return self.settings.min_players

    # ------------------------------------------------------------------
    # Lobby
    # ------------------------------------------------------------------

    async def create_game(self, chat_id: int, organizer_id: int, display_name: str,
                          username: Optional[str] = None, debug_mode: bool = False,
                          reveal_roles: bool = True) -> Tuple[bool, str, Optional[Game]]:
        """
        Open a lobby in a group chat with the organizer as first player.

        Returns:
            Tuple[bool, str, Optional[Game]]: (success, reply, created game)
        """
        try:
            tier = get_chat_tier(chat_id)
            if tier == "free":
                return False, "❌ Daily Mafia requires a Plus or Ultimate subscription for this chat.", None

            if await self.store.get_game_in_channel(chat_id):
                return False, "❌ There is already a Daily Mafia game in this chat.", None

            if await self.store.get_player_active_game(organizer_id, include_pending=True):
                return False, "❌ You are already in another Daily Mafia game.", None

            game = await self.store.create_game(
                community_id=chat_id,
                channel_id=chat_id,
                organizer_id=organizer_id,
                debug_mode=debug_mode,
                reveal_roles=reveal_roles,
                tier=tier,
                now=self.clock(),
            )
            await self.store.add_player(game.id, organizer_id, display_name, username)
            await self.store.create_event(
                game.id, GamePhase.SETUP.value, 0, EventType.OTHER,
                f"{display_name} created the game",
            )
            log_game_event(game.id, "game_created", organizer=organizer_id, tier=tier, debug=debug_mode)
            logger.info(f"Daily Mafia game created - game_id: {game.id}, chat_id: {chat_id}")
            return True, await self.lobby_text(game.id), game
        except Exception as e:
            logger.error(f"Failed to create game - chat_id: {chat_id}, error: {str(e)}")
            return False, "❌ Failed to create the game. Please try again.", None

    async def lobby_text(self, game_id: str) -> str:
        game = await self.store.get_game(game_id)
        players = await self.store.get_players(game_id)
        lines = [
            f"🐝 **Daily Mafia Lobby** `{game_id}`",
            "",
            f"👥 Players ({len(players)}/{self.min_players} minimum):",
        ]
        lines.extend(f"• {markdown_name(p.display_name)}" for p in players)
        lines.append("")
        if game.debug_mode:
            lines.append("🛠️ Debug mode: 5 minute phases.")
        if not game.reveal_roles:
            lines.append("🙈 Roles stay hidden on death.")
        lines.append("Tap **Join Game** to play. The organizer starts the game, "
                     "or it starts automatically when the lobby closes with enough players.")
        return "\n".join(lines)

    async def join_game(self, game_id: str, user_id: int, display_name: str,
                        username: Optional[str] = None) -> Tuple[bool, str]:
        """
        Add a player to a pending game.

        Returns:
            Tuple[bool, str]: (success, reply)
        """
        try:
            game = await self.store.get_game(game_id)
            if not game or game.status != GameStatus.PENDING:
                return False, "❌ There is no game waiting for players here."

            if await self.store.get_player(game_id, user_id):
                return False, "❌ You have already joined this game."

            if await self.store.get_player_active_game(user_id, include_pending=True):
                return False, "❌ You are already in another Daily Mafia game."

            await self.store.add_player(game_id, user_id, display_name, username)
            count = await self.store.count_players(game_id)
            await self.store.create_event(
                game_id, GamePhase.SETUP.value, 0, EventType.OTHER, f"{display_name} joined the game",
            )
            log_user_action(user_id, "joined_game", game_id=game_id)
            return True, f"✅ {markdown_name(display_name)} joined the game! ({count} players)"
        except Exception as e:
            logger.error(f"Failed to join game - game_id: {game_id}, user_id: {user_id}, error: {str(e)}")
            return False, "❌ Failed to join the game. Please try again."

    async def leave_game(self, chat_id: int, user_id: int) -> Tuple[bool, str]:
        """Players cannot leave once joined; the organizer cancels instead."""
        return False, "❌ Cannot leave game after joining. Ask the organizer to cancel the game."

    async def start_game_request(self, game_id: str, user_id: int) -> Tuple[bool, str]:
        """Organizer pressed Start in the lobby."""
        game = await self.store.get_game(game_id)
        if not game or game.status != GameStatus.PENDING:
            return False, "❌ This game is not waiting to start."
        if user_id != game.organizer_id:
            return False, "❌ Only the organizer can start the game."
        count = await self.store.count_players(game_id)
        if count < self.min_players:
            return False, f"❌ Need at least {self.min_players} players to start ({count}/{self.min_players})."
        return await self.launch_game(game_id)

    async def launch_game(self, game_id: str) -> Tuple[bool, str]:
        """
        Deal roles and begin night 1.

        Shared by the organizer's Start button and the lobby deadline.
        """
        async with self._launch_lock:
            try:
                game = await self.store.get_game(game_id)
                if not game or game.status != GameStatus.PENDING:
                    return False, "❌ This game is not waiting to start."

                players = await self.store.get_players(game_id)
                role_keys = get_role_distribution(len(players), game.tier)
                if role_keys is None:
                    return False, "❌ Not enough players to deal roles."
                for player, role_key in zip(players, shuffled(role_keys)):
                    role = get_role_definition(role_key)
                    resources = role.starting_resources()
                    await self.store.update_player(
                        game_id, player.player_id,
                        role=role_key,
                        bullets_remaining=resources["bullets"],
                        vests_remaining=resources["vests"],
                        alerts_remaining=resources["alerts"],
                    )

                await self.notifier.create_status_display(game_id)
                success, message = await self.scheduler.start_game(game_id)
                if not success:
                    return False, f"❌ {message}"
                await self.send_role_dms(game_id)
                logger.info(f"Daily Mafia game launched - game_id: {game_id}, players: {len(players)}")
                return True, f"🐝 Game started with {len(players)} players! Check your private messages for your role."
            except Exception as e:
                logger.error(f"Failed to launch game - game_id: {game_id}, error: {str(e)}")
                return False, "❌ Failed to start the game."

    async def resolve_lobby_deadline(self, game: Game) -> bool:
        """
        Auto-start or auto-cancel a lobby whose deadline passed.

        Returns:
            bool: True if the game started
        """
        count = await self.store.count_players(game.id)
        logger.info(f"Lobby deadline reached - game_id: {game.id}, players: {count}")

        if count >= self.min_players:
            await self.notifier.announce(
                game.channel_id,
                f"🐝 **[Game {game.id}] Lobby Closed - AUTO-STARTING!**\n\n"
                f"{count} players joined - game is starting now!\nCheck your private messages for your role!"
            )
            success, _ = await self.launch_game(game.id)
            return success

        await self.scheduler.cancel_game(
            game.id, f"Game auto-cancelled (insufficient players: {count}/{self.min_players})"
        )
        return False

    async def send_lobby_warning(self, game: Game, threshold) -> None:
        count = await self.store.count_players(game.id)
        needed = self.min_players - count
        if needed <= 0:
            outlook = "✅ Minimum met - game will auto-start!"
        else:
            outlook = f"❌ Need {needed} more player{'s' if needed != 1 else ''} or the game will be cancelled!"
        await self.notifier.announce(
            game.channel_id,
            f"⚠️ **[Game {game.id}] Lobby Closing Soon**\n\n"
            f"Current players: {count}/{self.min_players} minimum\n\n"
            f"Lobby closes in **{describe_threshold(threshold)}**.\n{outlook}"
        )

    async def send_inactivity_warning(self, game: Game, threshold) -> int:
        """Mention every player who still has to act. Returns how many were mentioned."""
        pending = await self.scheduler.pending_actors(game.id)
        if not pending:
            return 0
        what = "vote" if game.phase == GamePhase.VOTING else "action"
        await self.notifier.announce(
            game.channel_id,
            f"⚠️ **[Game {game.id}] Phase Deadline Warning**\n\n"
            f"{self.scheduler.mention_all(pending)}\n\n"
            f"The {game.phase.value} phase will end in **{describe_threshold(threshold)}**.\n"
            f"Please submit your {what} or you will be marked inactive!"
        )
        return len(pending)

    async def send_role_dms(self, game_id: str) -> int:
        """Tell every player their role privately. Returns how many DMs were delivered."""
        players = await self.store.get_players(game_id)
        sent = 0
        for player in players:
            role = get_role_definition(player.role)
            if not role:
                continue
            text = (
                f"🐝 **Daily Mafia - Your Role**\n\n"
                f"**Role:** {role.display_name}\n"
                f"**Team:** {role.team.value.capitalize()}\n\n"
                f"**Description:** {role.description}\n\n"
                f"**Abilities:**\n" + "\n".join(f"• {a}" for a in role.abilities) + "\n\n"
                f"**Win Condition:** {role.win_condition}"
            )
            if await self.notifier.prompt_player(player.player_id, text):
                sent += 1
        return sent

    # ------------------------------------------------------------------
    # Running games
    # ------------------------------------------------------------------

    async def cancel(self, chat_id: int, user_id: int) -> Tuple[bool, str]:
        game = await self.store.get_game_in_channel(chat_id)
        if not game:
            return False, "❌ No Daily Mafia game in this chat."
        if user_id != game.organizer_id:
            return False, "❌ Only the organizer can cancel the game."
        await self.scheduler.cancel_game(game.id)
        log_user_action(user_id, "cancelled_game", game_id=game.id)
        return True, "✅ Game cancelled."

    async def restart_phase(self, chat_id: int, user_id: int, resend_roles: bool = False) -> Tuple[bool, str]:
        """
        Re-send the current phase's notifications without changing state.

        At night the action prompts go out again; role DMs are re-sent on
        night 1 or when asked for.
        """
        game = await self.store.get_game_in_channel(chat_id)
        if not game or game.status != GameStatus.ACTIVE:
            return False, "❌ No active Daily Mafia game in this chat."
        if user_id != game.organizer_id and not is_admin_user(user_id):
            return False, "❌ Only the organizer or an admin can restart the phase."

        if game.phase == GamePhase.NIGHT and (resend_roles or game.night_number == 1):
            await self.send_role_dms(game.id)
        await self.scheduler.send_phase_notifications(game.id)
        log_user_action(user_id, "restart_phase", game_id=game.id, phase=game.phase.value)
        return True, f"🔄 Re-sent {game.phase.value} phase notifications."

    async def status(self, chat_id: int) -> Tuple[bool, str]:
        game = await self.store.get_game_in_channel(chat_id)
        if not game:
            return False, "❌ No Daily Mafia game in this chat."
        return True, await self.notifier.render_status(game.id)

    async def vote(self, chat_id: int, user_id: int, text: str,
                   mentioned_user_id: Optional[int] = None) -> Tuple[bool, str]:
        game = await self.store.get_game_in_channel(chat_id)
        if not game or game.status != GameStatus.ACTIVE:
            return False, "❌ No active Daily Mafia game in this chat."
        if game.phase != GamePhase.VOTING:
            return False, "❌ It is not currently voting phase."
        alive = await self.store.get_alive_players(game.id)
        target_id = find_vote_target(alive, text, mentioned_user_id)
        if target_id is None:
            return False, "❌ Invalid target. Use `/dm vote @player` or `/dm vote skip`."
        return await self.votes.submit_vote(game.id, user_id, target_id)

    async def unvote(self, chat_id: int, user_id: int) -> Tuple[bool, str]:
        game = await self.store.get_game_in_channel(chat_id)
        if not game:
            return False, "❌ Not in voting phase."
        return await self.votes.delete_vote(game.id, user_id)

    async def show_votes(self, chat_id: int) -> Tuple[bool, str]:
        game = await self.store.get_game_in_channel(chat_id)
        if not game or game.status != GameStatus.ACTIVE or game.phase != GamePhase.VOTING:
            return False, "❌ Not in voting phase."
        return True, await self.votes.build_vote_tally(game.id)

    async def handle_private_text(self, user_id: int, text: str) -> Tuple[bool, str]:
        """Route a private message to night-action submission for the sender's game."""
        game = await self.store.get_player_active_game(user_id)
        if not game:
            return False, "You are not in an active Daily Mafia game."
        return await self.actions.submit_night_action(game.id, user_id, text)

    async def handle_target_button(self, game_id: str, user_id: int, target_player_id: int) -> Tuple[bool, str]:
        return await self.actions.submit_interactive_action(game_id, user_id, target_player_id=target_player_id)

    async def handle_keyword_button(self, game_id: str, user_id: int, keyword: str) -> Tuple[bool, str]:
        return await self.actions.submit_interactive_action(game_id, user_id, keyword=keyword)
