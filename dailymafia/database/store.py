"""
Game State Store

Async persistence operations used by the Daily Mafia core. Each call opens
its own DatabaseSession, so every operation is atomic at the row level and
nothing is held open across suspension points. Returned model instances are
detached snapshots (sessions use expire_on_commit=False).
"""

import random
import string
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func, or_

from .database import DatabaseSession
from .models import (
    Game, Player, NightAction, Vote, GameEvent, User,
    GameStatus, GamePhase, EventType, PENDING_ROLE
)
from ..game.timing import PHASE_CLAIM_TIMEOUT, utcnow, lobby_duration
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

LIVE_STATUSES = (GameStatus.PENDING, GameStatus.ACTIVE)


def generate_game_id() -> str:
    """Generate a game ID in the format daily-{timestamp}-{random}."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choice(alphabet) for _ in range(6))
    return f"daily-{int(time.time() * 1000)}-{suffix}"


class GameStateStore:
    """
    Record store for games, players, actions, votes and events.

    Holds no state of its own; the database is the source of truth so a
    restarted process picks up every game where it left off.
    """

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    async def create_game(
        self,
        community_id: int,
        channel_id: int,
        organizer_id: int,
        debug_mode: bool = False,
        reveal_roles: bool = True,
        tier: str = "plus",
        now: Optional[datetime] = None,
    ) -> Game:
        """
        Create a pending game with a lobby deadline.

        Args:
            community_id: Owning community (Telegram chat ID)
            channel_id: Chat for announcements
            organizer_id: User who created the game
            debug_mode: Use short phases and lobby
            reveal_roles: Reveal roles of dead players
            tier: Role pool tier ("plus" or "ultimate")
            now: Creation time (defaults to current UTC time)

        Returns:
            Game: The created game
        """
        now = now or utcnow()
        game = Game(
            id=generate_game_id(),
            community_id=community_id,
            channel_id=channel_id,
            organizer_id=organizer_id,
            status=GameStatus.PENDING,
            phase=GamePhase.SETUP,
            night_number=0,
            day_number=0,
            lobby_deadline=now + lobby_duration(debug_mode),
            debug_mode=debug_mode,
            reveal_roles=reveal_roles,
            tier=tier,
            framed_players=[],
            doused_players=[],
            warnings_sent=[],
            created_at=now,
            last_activity_at=now,
        )
        async with DatabaseSession() as session:
            session.add(game)
        return game

    async def get_game(self, game_id: str) -> Optional[Game]:
        async with DatabaseSession() as session:
            return await session.get(Game, game_id)

    async def update_game(self, game_id: str, **fields: Any) -> None:
        """Patch game fields; always bumps last_activity_at."""
        fields.setdefault("last_activity_at", utcnow())
        async with DatabaseSession() as session:
            await session.execute(update(Game).where(Game.id == game_id).values(**fields))

    async def get_all_active_games(self) -> List[Game]:
        """All pending or active games across every community."""
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Game).where(Game.status.in_(LIVE_STATUSES)).order_by(Game.created_at)
            )
            return list(result.scalars().all())

    async def get_active_games(self, community_id: int) -> List[Game]:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Game).where(
                    Game.community_id == community_id,
                    Game.status.in_(LIVE_STATUSES),
                )
            )
            return list(result.scalars().all())

    async def get_game_in_channel(self, channel_id: int) -> Optional[Game]:
        """The pending or active game posted in a chat, if any."""
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Game).where(
                    Game.channel_id == channel_id,
                    Game.status.in_(LIVE_STATUSES),
                ).order_by(Game.created_at.desc())
            )
            return result.scalars().first()

    async def claim_game_start(self, game_id: str) -> bool:
        """Atomically move a pending game to active. False if it was not pending."""
        async with DatabaseSession() as session:
            result = await session.execute(
                update(Game)
                .where(Game.id == game_id, Game.status == GameStatus.PENDING)
                .values(status=GameStatus.ACTIVE, lobby_deadline=None, last_activity_at=utcnow())
            )
            return result.rowcount == 1

    async def claim_phase_end(self, game_id: str, phase: GamePhase, now: Optional[datetime] = None) -> bool:
        """
        Take exclusive ownership of ending the current phase.

        Only one caller can succeed per phase: the flag is cleared again when
        the next phase starts or when the owner releases it after a failure.
        A claim older than PHASE_CLAIM_TIMEOUT is taken over, since its owner
        died before it could do either.

        Args:
            game_id: Game identifier
            phase: Phase the caller expects to end
            now: Current time, defaults to utcnow()
        """
        now = now or utcnow()
        async with DatabaseSession() as session:
            result = await session.execute(
                update(Game)
                .where(
                    Game.id == game_id,
                    Game.status == GameStatus.ACTIVE,
                    Game.phase == phase,
                    or_(
                        Game.phase_closing.is_(False),
                        Game.phase_closing_at.is_(None),
                        Game.phase_closing_at <= now - PHASE_CLAIM_TIMEOUT,
                    ),
                )
                .values(phase_closing=True, phase_closing_at=now)
            )
            return result.rowcount == 1

    async def release_phase_end(self, game_id: str) -> None:
        async with DatabaseSession() as session:
            await session.execute(
                update(Game).where(Game.id == game_id).values(phase_closing=False, phase_closing_at=None)
            )

    async def claim_night_resolution(self, game_id: str, night_number: int) -> bool:
        """Mark a night as resolved. False if it already was."""
        async with DatabaseSession() as session:
            result = await session.execute(
                update(Game)
                .where(Game.id == game_id, Game.last_resolved_night < night_number)
                .values(last_resolved_night=night_number)
            )
            return result.rowcount == 1

    async def release_night_resolution(self, game_id: str, night_number: int) -> None:
        """Undo claim_night_resolution after a failure that applied nothing."""
        async with DatabaseSession() as session:
            await session.execute(
                update(Game)
                .where(Game.id == game_id, Game.last_resolved_night == night_number)
                .values(last_resolved_night=night_number - 1)
            )

    async def claim_vote_tally(self, game_id: str, day_number: int) -> bool:
        """Mark a day's votes as tallied. False if they already were."""
        async with DatabaseSession() as session:
            result = await session.execute(
                update(Game)
                .where(Game.id == game_id, Game.last_tallied_day < day_number)
                .values(last_tallied_day=day_number)
            )
            return result.rowcount == 1

    async def release_vote_tally(self, game_id: str, day_number: int) -> None:
        """Undo claim_vote_tally after a failure that applied nothing."""
        async with DatabaseSession() as session:
            await session.execute(
                update(Game)
                .where(Game.id == game_id, Game.last_tallied_day == day_number)
                .values(last_tallied_day=day_number - 1)
            )

    async def record_warning(self, game_id: str, key: str) -> bool:
        """Remember that a deadline warning was sent. False if it already was."""
        async with DatabaseSession() as session:
            game = await session.get(Game, game_id, with_for_update=True)
            if game is None:
                return False
            sent = list(game.warnings_sent or [])
            if key in sent:
                return False
            sent.append(key)
            game.warnings_sent = sent
            return True

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    async def add_player(
        self,
        game_id: str,
        player_id: int,
        display_name: str,
        username: Optional[str] = None,
        role: str = PENDING_ROLE,
        resources: Optional[Dict[str, int]] = None,
    ) -> Player:
        resources = resources or {}
        player = Player(
            game_id=game_id,
            player_id=player_id,
            display_name=display_name,
            username=username,
            role=role,
            alive=True,
            has_acted_this_phase=False,
            is_inactive=False,
            bullets_remaining=resources.get("bullets", 0),
            vests_remaining=resources.get("vests", 0),
            alerts_remaining=resources.get("alerts", 0),
            joined_at=utcnow(),
        )
        async with DatabaseSession() as session:
            session.add(player)
        return player

    async def get_player(self, game_id: str, player_id: int) -> Optional[Player]:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Player).where(Player.game_id == game_id, Player.player_id == player_id)
            )
            return result.scalars().first()

    async def get_players(self, game_id: str) -> List[Player]:
        """All players of a game in join order."""
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Player).where(Player.game_id == game_id).order_by(Player.id)
            )
            return list(result.scalars().all())

    async def get_alive_players(self, game_id: str) -> List[Player]:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Player)
                .where(Player.game_id == game_id, Player.alive.is_(True))
                .order_by(Player.id)
            )
            return list(result.scalars().all())

    async def count_players(self, game_id: str) -> int:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(func.count(Player.id)).where(Player.game_id == game_id)
            )
            return int(result.scalar_one())

    async def update_player(self, game_id: str, player_id: int, **fields: Any) -> None:
        async with DatabaseSession() as session:
            await session.execute(
                update(Player)
                .where(Player.game_id == game_id, Player.player_id == player_id)
                .values(**fields)
            )

    async def kill_player(self, game_id: str, player_id: int, **death_fields: Any) -> bool:
        """
        Mark a living player dead with death metadata.

        Returns:
            bool: False if the player was already dead (death metadata is set once)
        """
        async with DatabaseSession() as session:
            result = await session.execute(
                update(Player)
                .where(
                    Player.game_id == game_id,
                    Player.player_id == player_id,
                    Player.alive.is_(True),
                )
                .values(alive=False, **death_fields)
            )
            return result.rowcount == 1

    async def get_player_active_game(self, player_id: int, include_pending: bool = False) -> Optional[Game]:
        """The game a user currently plays in (active only unless include_pending)."""
        statuses = LIVE_STATUSES if include_pending else (GameStatus.ACTIVE,)
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Game)
                .join(Player, Player.game_id == Game.id)
                .where(Player.player_id == player_id, Game.status.in_(statuses))
                .order_by(Game.created_at.desc())
            )
            return result.scalars().first()

    async def reset_phase_actions(self, game_id: str) -> None:
        """Clear the per-phase activity flags of every living player."""
        async with DatabaseSession() as session:
            await session.execute(
                update(Player)
                .where(Player.game_id == game_id, Player.alive.is_(True))
                .values(has_acted_this_phase=False, last_action_time=None)
            )

    # ------------------------------------------------------------------
    # Night actions
    # ------------------------------------------------------------------

    async def upsert_action(
        self,
        game_id: str,
        night_number: int,
        player_id: int,
        action_type: str,
        target_id: Optional[str] = None,
        target_is_index: bool = False,
        keyword: Optional[str] = None,
    ) -> None:
        """Create or overwrite the player's action for this night."""
        values = dict(
            action_type=action_type,
            target_id=target_id,
            target_is_index=target_is_index,
            keyword=keyword,
            submitted_at=utcnow(),
            processed=False,
        )
        async with DatabaseSession() as session:
            result = await session.execute(
                select(NightAction).where(
                    NightAction.game_id == game_id,
                    NightAction.night_number == night_number,
                    NightAction.player_id == player_id,
                )
            )
            action = result.scalars().first()
            if action is None:
                session.add(NightAction(
                    game_id=game_id, night_number=night_number, player_id=player_id, **values
                ))
            elif not action.processed:
                for key, value in values.items():
                    setattr(action, key, value)

    async def get_actions_for_night(self, game_id: str, night_number: int) -> List[NightAction]:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(NightAction)
                .where(NightAction.game_id == game_id, NightAction.night_number == night_number)
                .order_by(NightAction.id)
            )
            return list(result.scalars().all())

    async def get_action(self, game_id: str, night_number: int, player_id: int) -> Optional[NightAction]:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(NightAction).where(
                    NightAction.game_id == game_id,
                    NightAction.night_number == night_number,
                    NightAction.player_id == player_id,
                )
            )
            return result.scalars().first()

    async def mark_actions_processed(self, game_id: str, night_number: int) -> None:
        async with DatabaseSession() as session:
            await session.execute(
                update(NightAction)
                .where(NightAction.game_id == game_id, NightAction.night_number == night_number)
                .values(processed=True)
            )

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def upsert_vote(self, game_id: str, day_number: int, voter_id: int, target_id: str) -> None:
        """Create or overwrite a vote. An overwritten vote keeps its read position."""
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Vote).where(
                    Vote.game_id == game_id,
                    Vote.day_number == day_number,
                    Vote.voter_id == voter_id,
                )
            )
            vote = result.scalars().first()
            if vote is None:
                session.add(Vote(
                    game_id=game_id, day_number=day_number, voter_id=voter_id,
                    target_id=target_id, voted_at=utcnow(),
                ))
            else:
                vote.target_id = target_id
                vote.voted_at = utcnow()

    async def delete_vote(self, game_id: str, day_number: int, voter_id: int) -> bool:
        """Remove a vote. Returns False if there was none."""
        async with DatabaseSession() as session:
            result = await session.execute(
                delete(Vote).where(
                    Vote.game_id == game_id,
                    Vote.day_number == day_number,
                    Vote.voter_id == voter_id,
                )
            )
            return result.rowcount > 0

    async def get_votes_for_day(self, game_id: str, day_number: int) -> List[Vote]:
        """Votes in insertion order; tie-breaking depends on this order."""
        async with DatabaseSession() as session:
            result = await session.execute(
                select(Vote)
                .where(Vote.game_id == game_id, Vote.day_number == day_number)
                .order_by(Vote.id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def create_event(
        self,
        game_id: str,
        phase: str,
        phase_number: int,
        event_type: EventType,
        description: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        async with DatabaseSession() as session:
            session.add(GameEvent(
                game_id=game_id,
                phase=phase,
                phase_number=phase_number,
                event_type=event_type,
                description=description,
                data=data or {},
                created_at=utcnow(),
            ))

    async def get_recent_events(self, game_id: str, limit: int = 5) -> List[GameEvent]:
        """Newest events first."""
        async with DatabaseSession() as session:
            result = await session.execute(
                select(GameEvent)
                .where(GameEvent.game_id == game_id)
                .order_by(GameEvent.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_all_events(self, game_id: str) -> List[GameEvent]:
        async with DatabaseSession() as session:
            result = await session.execute(
                select(GameEvent).where(GameEvent.game_id == game_id).order_by(GameEvent.id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def credit_user(self, user_id: int, amount: int, username: Optional[str] = None, win: bool = False) -> None:
        """Add currency to a user's balance, creating the user on first credit."""
        async with DatabaseSession() as session:
            user = await session.get(User, user_id)
            if user is None:
                user = User(id=user_id, username=username, balance=0, total_wins=0)
                session.add(user)
            user.balance = (user.balance or 0) + amount
            if win:
                user.total_wins = (user.total_wins or 0) + 1

    async def get_user(self, user_id: int) -> Optional[User]:
        async with DatabaseSession() as session:
            return await session.get(User, user_id)


