"""
Daily Mafia Phase Scheduler

This module owns the phase state machine of a Daily Mafia game:

    pending --start--> night --> day --> voting --> night --> ...
    any active phase --win--> completed, --cancel--> cancelled

A phase ends either when its deadline passes (detected by the deadline
sweeper) or early, once every eligible player has acted. Both paths call
``end_phase``; a compare-and-set claim on the game row makes sure only one
of them performs the transition.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from ..database.models import EventType, Game, GamePhase, GameStatus, Player
from ..database.store import GameStateStore
from ..notifications.status_display import is_action_eligible, markdown_name, mention
from ..utils.logging_config import get_logger, log_game_event
from .ports import NightResolutionPort, PhaseTransitionPort, VoteTallyPort
from .roles import Team, get_role_definition
from .timing import format_time_remaining, phase_duration, utcnow
from .win_conditions import check_win_conditions, determine_winners

logger = get_logger(__name__)

PHASE_CYCLE: Dict[GamePhase, GamePhase] = {
    GamePhase.NIGHT: GamePhase.DAY,
    GamePhase.DAY: GamePhase.VOTING,
    GamePhase.VOTING: GamePhase.NIGHT,
}


def get_next_phase(current: GamePhase) -> GamePhase:
    """Next phase in the cycle; anything unrecognised goes to night."""
    return PHASE_CYCLE.get(current, GamePhase.NIGHT)


def all_players_acted(players: List[Player], phase: GamePhase) -> bool:
    """
    Whether every player expected to act in ``phase`` has acted.

    Night counts living players whose role has a night action, voting
    counts every living player; both are vacuously true when nobody
    qualifies. Day has no action requirement and never completes early.
    """
    if phase not in (GamePhase.NIGHT, GamePhase.VOTING):
        return False
    return all(p.has_acted_this_phase for p in players if is_action_eligible(p, phase))


class PhaseScheduler(PhaseTransitionPort):
    """
    Phase state machine for Daily Mafia games.

    The scheduler never imports the action collector or vote engine; they
    are attached as exit hooks through ``set_phase_exit_hooks``.
    """

    def __init__(self, store: GameStateStore, notifier, rewards=None,
                 clock: Callable[[], datetime] = utcnow):
        """
        Initialize the scheduler.

        Args:
            store: Game state store
            notifier: Messaging collaborator
            rewards: Reward distributor called when a game is won
            clock: Source of the current (naive UTC) time
        """
        self.store = store
        self.notifier = notifier
        self.rewards = rewards
        self.clock = clock
        self.night_hook: Optional[NightResolutionPort] = None
        self.voting_hook: Optional[VoteTallyPort] = None

    def set_phase_exit_hooks(self, night_hook: NightResolutionPort, voting_hook: VoteTallyPort) -> None:
        self.night_hook = night_hook
        self.voting_hook = voting_hook

    # ------------------------------------------------------------------
    # Phase lifecycle
    # ------------------------------------------------------------------

    async def start_phase(self, game_id: str, next_phase: GamePhase) -> bool:
        """
        Enter a phase: new deadline, counters, reset activity flags, announce.

        Args:
            game_id: Game identifier
            next_phase: Phase to enter

        Returns:
            bool: True if the phase was started
        """
        try:
            game = await self.store.get_game(game_id)
            if not game:
                logger.warning(f"Cannot start phase for unknown game - game_id: {game_id}")
                return False

            now = self.clock()
            updates = {
                "phase": next_phase,
                "phase_start_time": now,
                "phase_deadline": now + phase_duration(game.debug_mode),
                "phase_closing": False,
                "phase_closing_at": None,
            }
            night_number = game.night_number
            day_number = game.day_number
            if next_phase == GamePhase.NIGHT:
                night_number += 1
                updates["night_number"] = night_number
            elif next_phase == GamePhase.VOTING:
                day_number += 1
                updates["day_number"] = day_number

            await self.store.update_game(game_id, **updates)
            await self.store.reset_phase_actions(game_id)

            phase_number = night_number if next_phase == GamePhase.NIGHT else day_number
            await self.store.create_event(
                game_id, next_phase.value, phase_number, EventType.PHASE_CHANGE,
                f"{next_phase.value.capitalize()} phase started",
            )
            log_game_event(game_id, "phase_started", phase=next_phase.value, number=phase_number)
            logger.info(f"Started {next_phase.value} phase - game_id: {game_id}, number: {phase_number}")
        except Exception as e:
            logger.error(f"Failed to start phase - game_id: {game_id}, phase: {next_phase.value}, error: {str(e)}")
            return False

        await self.send_phase_notifications(game_id)
        return True

    async def send_phase_notifications(self, game_id: str) -> None:
        """Announce the current phase, prompt night actors and refresh the status."""
        try:
            game = await self.store.get_game(game_id)
            if not game:
                return
            time_left = format_time_remaining(game.phase_deadline, self.clock())

            if game.phase == GamePhase.NIGHT:
                message = (
                    f"🌙 **[Game {game_id}] Night {game.night_number} has begun!**\n"
                    f"Players with night actions should check their private messages.\n"
                    f"⏰ Phase ends in {time_left} or when all players act."
                )
            elif game.phase == GamePhase.DAY:
                message = (
                    f"☀️ **[Game {game_id}] Day {game.day_number + 1} has begun!**\n"
                    f"Discuss and prepare for voting.\n"
                    f"⏰ Phase ends in {time_left}."
                )
            elif game.phase == GamePhase.VOTING:
                message = (
                    f"🗳️ **[Game {game_id}] Voting Phase has begun!**\n"
                    f"Use `/dm vote @player` or `/dm vote skip` to vote.\n"
                    f"⏰ Phase ends in {time_left} or when all players vote."
                )
            else:
                return

            await self.notifier.announce(game.channel_id, message)
            if game.phase == GamePhase.NIGHT and self.night_hook:
                await self.night_hook.send_night_action_prompts(game_id)
            await self.notifier.refresh_status_display(game_id, force=True)
        except Exception as e:
            logger.error(f"Failed to send phase notifications - game_id: {game_id}, error: {str(e)}")

    async def end_phase(self, game_id: str, is_timeout: bool = False,
                        expected_phase: Optional[GamePhase] = None) -> bool:
        """
        Close the current phase and move the game on.

        Only one caller can end a given phase: the first to claim it wins,
        later callers (a concurrent early-end or a second sweep) return False
        without touching anything.

        Args:
            game_id: Game identifier
            is_timeout: True when the deadline passed
            expected_phase: Phase the caller observed; skip if it changed since

        Returns:
            bool: True if this call performed the transition
        """
        game = await self.store.get_game(game_id)
        if not game or game.status != GameStatus.ACTIVE:
            return False
        phase = game.phase
        if expected_phase is not None and phase != expected_phase:
            return False
        if not await self.store.claim_phase_end(game_id, phase, now=self.clock()):
            logger.debug(f"Phase end already claimed - game_id: {game_id}, phase: {phase.value}")
            return False

        try:
            logger.info(f"Ending {phase.value} phase - game_id: {game_id}, timeout: {is_timeout}")

            if is_timeout:
                await self.mark_inactive_players(game)

            if phase == GamePhase.NIGHT and self.night_hook:
                await self.night_hook.resolve_night(game_id)
            elif phase == GamePhase.VOTING and self.voting_hook:
                await self.voting_hook.tally(game_id)

            winner = await self.check_game_win_condition(game_id)
            if winner is not None:
                await self.end_game(game_id, winner)
                return True

            if await self.start_phase(game_id, get_next_phase(phase)):
                return True
            logger.error(f"Next phase did not start - game_id: {game_id}, phase: {phase.value}")
        except Exception as e:
            logger.error(f"Failed to end phase - game_id: {game_id}, phase: {phase.value}, error: {str(e)}")

        # Leave the deadline in the past so the next sweep retries
        await self.store.release_phase_end(game_id)
        return False

    async def mark_inactive_players(self, game: Game) -> List[int]:
        """Flag every living player who did not act this phase."""
        marked = []
        players = await self.store.get_players(game.id)
        phase_number = game.night_number if game.phase == GamePhase.NIGHT else game.day_number
        for player in players:
            if not player.alive or player.has_acted_this_phase:
                continue
            await self.store.update_player(game.id, player.player_id, is_inactive=True)
            await self.store.create_event(
                game.id, game.phase.value, phase_number, EventType.OTHER,
                f"{player.display_name} was marked inactive (did not act)",
                {"playerId": player.player_id},
            )
            marked.append(player.player_id)
        return marked

    async def check_early_phase_end(self, game_id: str) -> bool:
        """
        End the phase early once every eligible player has acted.

        Returns:
            bool: True if the completion condition held
        """
        try:
            game = await self.store.get_game(game_id)
            if not game or game.status != GameStatus.ACTIVE:
                return False
            players = await self.store.get_players(game_id)
            if not all_players_acted(players, game.phase):
                return False
            logger.info(f"All players acted, ending phase early - game_id: {game_id}, phase: {game.phase.value}")
            await self.end_phase(game_id, is_timeout=False, expected_phase=game.phase)
            return True
        except Exception as e:
            logger.error(f"Failed early phase check - game_id: {game_id}, error: {str(e)}")
            return False

    # ------------------------------------------------------------------
    # Win handling
    # ------------------------------------------------------------------

    async def check_game_win_condition(self, game_id: str) -> Optional[Team]:
        players = await self.store.get_players(game_id)
        return check_win_conditions(players)

    async def end_game(self, game_id: str, winner: Team) -> None:
        """Finish a won game: status, win event, rewards, announcement."""
        await self.store.update_game(game_id, phase=GamePhase.ENDED, status=GameStatus.COMPLETED,
                                     phase_closing=False)
        await self.store.create_event(
            game_id, GamePhase.ENDED.value, 0, EventType.WIN,
            f"{winner.value} team wins!", {"winnerTeam": winner.value},
        )
        log_game_event(game_id, "game_won", winner=winner.value)
        logger.info(f"Game ended - game_id: {game_id}, winner: {winner.value}")

        if self.rewards:
            try:
                await self.rewards.distribute_rewards(game_id, winner)
            except Exception as e:
                logger.error(f"Failed to distribute rewards - game_id: {game_id}, error: {str(e)}")

        game = await self.store.get_game(game_id)
        players = await self.store.get_players(game_id)
        lines = [f"🏆 **[Game {game_id}] GAME OVER! {winner.value.upper()} TEAM WINS!**", "", "**Winners:**"]
        for player in determine_winners(players, winner):
            role = get_role_definition(player.role)
            lines.append(f"• {markdown_name(player.display_name)} - {role.display_name if role else player.role}")
        await self.notifier.announce(game.channel_id, "\n".join(lines))
        await self.notifier.refresh_status_display(game_id, force=True)
        self.notifier.forget(game_id)

    # ------------------------------------------------------------------
    # Game start / cancel
    # ------------------------------------------------------------------

    async def start_game(self, game_id: str) -> Tuple[bool, str]:
        """
        Move a pending game to active and begin night 1.

        Returns:
            Tuple[bool, str]: (success, message)
        """
        if not await self.store.claim_game_start(game_id):
            return False, "Game is not waiting to start."
        await self.store.create_event(
            game_id, GamePhase.SETUP.value, 0, EventType.OTHER, "Game started",
        )
        log_game_event(game_id, "game_started")
        if not await self.start_phase(game_id, GamePhase.NIGHT):
            return False, "Failed to start the first night."
        return True, "Game started!"

    async def cancel_game(self, game_id: str, reason: str = "Game cancelled") -> bool:
        """
        Cancel a game from any live state.

        Cancelling a finished game is a harmless no-op.
        """
        game = await self.store.get_game(game_id)
        if not game:
            return False
        if game.status in (GameStatus.COMPLETED, GameStatus.CANCELLED):
            return False
        await self.store.update_game(game_id, status=GameStatus.CANCELLED, phase=GamePhase.ENDED,
                                     phase_closing=False)
        await self.store.create_event(game_id, GamePhase.ENDED.value, 0, EventType.OTHER, reason)
        log_game_event(game_id, "game_cancelled", reason=reason)
        await self.notifier.announce(game.channel_id, f"❌ **[Game {game_id}]** {reason}.")
        self.notifier.forget(game_id)
        return True

    async def pending_actors(self, game_id: str) -> List[Player]:
        """Living players who still need to act this phase."""
        game = await self.store.get_game(game_id)
        if not game:
            return []
        players = await self.store.get_players(game_id)
        return [p for p in players if is_action_eligible(p, game.phase) and not p.has_acted_this_phase]

    @staticmethod
    def mention_all(players: List[Player]) -> str:
        return ", ".join(mention(p) for p in players)
