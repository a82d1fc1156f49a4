"""
Reward Distribution

Credits every winner of a finished game.
"""

from typing import List, Optional

from ..database.models import EventType, GamePhase
from ..database.store import GameStateStore
from ..utils.config import get_settings
from ..utils.logging_config import get_logger, log_game_event
from .roles import Team
from .win_conditions import determine_winners

logger = get_logger(__name__)


class RewardDistributor:
    """Pays a fixed amount to each winning player."""

    def __init__(self, store: GameStateStore, notifier, reward_amount: Optional[int] = None):
        self.store = store
        self.notifier = notifier
        self.reward_amount = reward_amount if reward_amount is not None else get_settings().reward_amount

    async def distribute_rewards(self, game_id: str, winner: Team) -> List[int]:
        """
        Credit the winners of a game.

        A failed credit for one winner does not stop the others.

        Returns:
            List of player IDs that were paid
        """
        game = await self.store.get_game(game_id)
        if not game:
            return []
        players = await self.store.get_players(game_id)
        paid = []
        for player in determine_winners(players, winner):
            try:
                await self.store.credit_user(player.player_id, self.reward_amount,
                                             username=player.username, win=True)
                paid.append(player.player_id)
            except Exception as e:
                logger.error(f"Failed to credit reward - game_id: {game_id}, player_id: {player.player_id}, error: {str(e)}")

        await self.store.create_event(
            game_id, GamePhase.ENDED.value, 0, EventType.OTHER,
            f"Rewards distributed to {len(paid)} winner(s)",
            {"amount": self.reward_amount, "winners": paid},
        )
        if paid:
            await self.notifier.announce(
                game.channel_id,
                f"💰 **[Game {game_id}]** {len(paid)} winner(s) received **{self.reward_amount:,}** coins each!"
            )
        log_game_event(game_id, "rewards_distributed", winners=len(paid), amount=self.reward_amount)
        return paid
