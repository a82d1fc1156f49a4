"""
Daily Mafia Voting

Vote intake during the voting phase and the end-of-phase tally.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..database.models import SKIP_TARGET, EventType, GamePhase, GameStatus, Player, Vote
from ..database.store import GameStateStore
from ..notifications.status_display import markdown_name
from ..utils.logging_config import get_logger, log_game_event, log_user_action
from .ports import PhaseTransitionPort, VoteTallyPort
from .roles import get_role_definition
from .timing import utcnow

logger = get_logger(__name__)


@dataclass
class TallyResult:
    """Outcome of one day's vote."""
    outcome: str
    leader: Optional[str] = None
    max_votes: int = 0
    is_tie: bool = False
    counts: Dict[str, int] = field(default_factory=dict)
    eliminated_id: Optional[int] = None


def count_votes(votes: Sequence[Vote]) -> Tuple[Optional[str], int, bool, Dict[str, int]]:
    """
    Count votes per target.

    Targets are visited in the order they first received a vote. The leader
    only changes on a strictly higher count; an equal count sets the tie
    flag, which a later strictly higher count clears again.

    Returns:
        (leader, max_votes, is_tie, counts)
    """
    counts: Dict[str, int] = {}
    for vote in votes:
        counts[vote.target_id] = counts.get(vote.target_id, 0) + 1

    leader = None
    max_votes = 0
    is_tie = False
    for target_id, count in counts.items():
        if count > max_votes:
            leader = target_id
            max_votes = count
            is_tie = False
        elif count == max_votes:
            is_tie = True
    return leader, max_votes, is_tie, counts


def find_vote_target(players: Sequence[Player], text: str,
                     mentioned_user_id: Optional[int] = None) -> Optional[str]:
    """
    Work out who a vote is for.

    Args:
        players: Living players of the game
        text: Argument text of the vote command
        mentioned_user_id: User ID from a Telegram text mention, if any

    Returns:
        SKIP_TARGET, a player ID as text, or None if nobody matches
    """
    text = (text or "").strip()
    if text.lower() == SKIP_TARGET:
        return SKIP_TARGET

    if mentioned_user_id is not None:
        return str(mentioned_user_id)

    if text.startswith("@"):
        username = text[1:].lower()
        for player in players:
            if player.username and player.username.lower() == username:
                return str(player.player_id)
        return None

    if not text:
        return None
    needle = text.lower()
    exact = [p for p in players if p.display_name.lower() == needle]
    if len(exact) == 1:
        return str(exact[0].player_id)
    matches = [p for p in players if needle in p.display_name.lower()]
    if len(matches) == 1:
        return str(matches[0].player_id)
    return None


class VoteTallyEngine(VoteTallyPort):
    """Votes and lynch resolution."""

    def __init__(self, store: GameStateStore, notifier, phase_transitions: PhaseTransitionPort):
        self.store = store
        self.notifier = notifier
        self.phase_transitions = phase_transitions

    async def submit_vote(self, game_id: str, voter_id: int, target_id: str) -> Tuple[bool, str]:
        """
        Record or replace a player's vote for the current day.

        Args:
            game_id: Game identifier
            voter_id: Voting player
            target_id: Living player's ID as text, or "skip"

        Returns:
            Tuple[bool, str]: (success, reply for the voter)
        """
        try:
            game = await self.store.get_game(game_id)
            if not game or game.status != GameStatus.ACTIVE or game.phase != GamePhase.VOTING:
                return False, "❌ It is not currently voting phase."

            voter = await self.store.get_player(game_id, voter_id)
            if not voter:
                return False, "❌ You are not in this game."
            if not voter.alive:
                return False, "❌ You are dead and cannot vote."

            target_name = "skip"
            if target_id != SKIP_TARGET:
                target = await self.store.get_player(game_id, int(target_id))
                if not target or not target.alive:
                    return False, "❌ That player is not alive or in this game."
                target_name = target.display_name

            await self.store.upsert_vote(game_id, game.day_number, voter_id, target_id)
            await self.store.update_player(
                game_id, voter_id, has_acted_this_phase=True, is_inactive=False, last_action_time=utcnow()
            )
            await self.store.create_event(
                game_id, GamePhase.VOTING.value, game.day_number, EventType.VOTE,
                f"{voter.display_name} voted for {target_name}",
                {"voterId": voter_id, "targetId": target_id},
            )
            log_user_action(voter_id, "vote", game_id=game_id, target=target_id)

            await self.notifier.refresh_status_display(game_id)
            await self.phase_transitions.check_early_phase_end(game_id)

            if target_id == SKIP_TARGET:
                return True, "✅ Vote submitted!\nYou voted to **skip** elimination."
            return True, f"✅ Vote submitted!\nYou voted for **{markdown_name(target_name)}**."
        except Exception as e:
            logger.error(f"Failed to submit vote - game_id: {game_id}, voter_id: {voter_id}, error: {str(e)}")
            return False, "❌ An error occurred while processing your vote."

    async def delete_vote(self, game_id: str, voter_id: int) -> Tuple[bool, str]:
        """Withdraw the voter's vote for the current day."""
        try:
            game = await self.store.get_game(game_id)
            if not game or game.status != GameStatus.ACTIVE or game.phase != GamePhase.VOTING:
                return False, "❌ Not in voting phase."
            voter = await self.store.get_player(game_id, voter_id)
            if not voter or not voter.alive:
                return False, "❌ You cannot unvote."

            if not await self.store.delete_vote(game_id, game.day_number, voter_id):
                return False, "❌ You have not voted yet."

            await self.store.update_player(game_id, voter_id, has_acted_this_phase=False)
            log_user_action(voter_id, "unvote", game_id=game_id)
            await self.notifier.refresh_status_display(game_id)
            return True, "✅ Vote removed."
        except Exception as e:
            logger.error(f"Failed to delete vote - game_id: {game_id}, voter_id: {voter_id}, error: {str(e)}")
            return False, "❌ An error occurred while removing your vote."

    async def tally(self, game_id: str) -> Optional[TallyResult]:
        """
        Resolve the current day's vote.

        No one dies when no votes were cast, when the count is tied, or when
        skip leads. A day is tallied at most once.

        Returns:
            TallyResult, or None if the day was already tallied
        """
        game = await self.store.get_game(game_id)
        if not game:
            return None
        day = game.day_number
        if not await self.store.claim_vote_tally(game_id, day):
            logger.info(f"Votes already tallied - game_id: {game_id}, day: {day}")
            return None

        logger.info(f"Tallying votes - game_id: {game_id}, day: {day}")
        try:
            votes = await self.store.get_votes_for_day(game_id, day)
            leader, max_votes, is_tie, counts = count_votes(votes)
            target = None
            if leader is not None and not is_tie and leader != SKIP_TARGET:
                target = await self.store.get_player(game_id, int(leader))
        except Exception as e:
            logger.error(f"Failed to tally votes - game_id: {game_id}, day: {day}, error: {str(e)}")
            # Nothing applied yet, so the retry may tally this day again
            await self.store.release_vote_tally(game_id, day)
            raise
        header = f"🗳️ **[Game {game_id}] Voting Results**\n\n"

        if leader is None or is_tie or leader == SKIP_TARGET:
            if leader is None:
                outcome, summary, description = "no_votes", "No votes were cast.", "No votes cast"
            elif is_tie:
                outcome, summary, description = "tie", "The vote was **tied**.", "Vote tied - no elimination"
            else:
                outcome, summary, description = "skip", "The vote was to **skip**.", "Voted to skip"
            await self.store.create_event(
                game_id, GamePhase.VOTING.value, day, EventType.OTHER, description,
                {"counts": counts},
            )
            await self.notifier.announce(game.channel_id, f"{header}{summary}\n\nNo one will be eliminated today.")
            log_game_event(game_id, "vote_no_elimination", day=day, outcome=outcome)
            return TallyResult(outcome, leader, max_votes, is_tie, counts)

        if not target:
            logger.warning(f"Vote leader not found - game_id: {game_id}, target: {leader}")
            return TallyResult("missing", leader, max_votes, is_tie, counts)

        killed = await self.store.kill_player(
            game_id, target.player_id,
            death_reason="lynched", death_phase=GamePhase.VOTING.value, death_night=day,
        )
        role = get_role_definition(target.role)
        role_name = role.name if role else target.role
        if killed:
            await self.store.create_event(
                game_id, GamePhase.VOTING.value, day, EventType.DEATH,
                f"{target.display_name} was lynched ({role_name})",
                {"playerId": target.player_id, "reason": "lynched"},
            )
            name = markdown_name(target.display_name)
            message = f"{header}**{name}** was eliminated by vote! ({max_votes} votes)\n"
            if game.reveal_roles:
                message += f"\n**Role:** {role.display_name if role else role_name}"
            await self.notifier.announce(game.channel_id, message)
            log_game_event(game_id, "player_lynched", day=day, player_id=target.player_id)

        return TallyResult("eliminated", leader, max_votes, is_tie, counts,
                           eliminated_id=target.player_id if killed else None)

    async def build_vote_tally(self, game_id: str) -> str:
        """Current vote standings for the `votes` command."""
        game = await self.store.get_game(game_id)
        if not game:
            return "❌ Game not found."
        votes = await self.store.get_votes_for_day(game_id, game.day_number)
        players = await self.store.get_players(game_id)
        names = {str(p.player_id): markdown_name(p.display_name) for p in players}
        alive = [p for p in players if p.alive]

        voters_by_target: Dict[str, List[str]] = {}
        voted = set()
        for vote in votes:
            voters_by_target.setdefault(vote.target_id, []).append(names.get(str(vote.voter_id), "Unknown"))
            voted.add(vote.voter_id)

        lines = [f"🗳️ **Vote Tally - Day {game.day_number}**", ""]
        for player in alive:
            voters = voters_by_target.get(str(player.player_id), [])
            plural = "s" if len(voters) != 1 else ""
            lines.append(f"**{markdown_name(player.display_name)}** - {len(voters)} vote{plural}")
            if voters:
                lines.append(f"  └ {', '.join(voters)}")

        skip_votes = len(voters_by_target.get(SKIP_TARGET, []))
        if skip_votes:
            lines.append("")
            lines.append(f"**Skip** - {skip_votes} vote{'s' if skip_votes != 1 else ''}")

        not_voted = [markdown_name(p.display_name) for p in alive if p.player_id not in voted]
        if not_voted:
            lines.append("")
            lines.append(f"**Haven't voted:** {', '.join(not_voted)}")
        return "\n".join(lines)
