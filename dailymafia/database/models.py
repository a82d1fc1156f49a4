"""
Database Models for Daily Mafia

This module defines all SQLAlchemy models for the Daily Mafia game.
A game runs over real-world days, so everything the scheduler needs to
resume after a restart lives in these tables:
- Game records with phase, counters and deadlines
- Players with role, life state and per-phase activity flags
- Night actions and votes keyed by the phase counter they belong to
- An append-only event log for display and audit
- User balances for end-of-game rewards
"""

import enum

from sqlalchemy import (
    Column, String, Integer, BigInteger, Boolean, DateTime, ForeignKey, Text, JSON, Enum,
    UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

PENDING_ROLE = "pending"
SKIP_TARGET = "skip"


class GameStatus(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GamePhase(enum.Enum):
    SETUP = "setup"
    NIGHT = "night"
    DAY = "day"
    VOTING = "voting"
    ENDED = "ended"


class EventType(enum.Enum):
    PHASE_CHANGE = "phase_change"
    DEATH = "death"
    VOTE = "vote"
    WIN = "win"
    OTHER = "other"


class Game(Base):
    """
    A single Daily Mafia game hosted in one Telegram group chat.
    
    The game row owns the authoritative phase and deadline state.
    """
    __tablename__ = "games"
    
    id = Column(String(64), primary_key=True, doc="Opaque game identifier (daily-<ms>-<rand>)")
    community_id = Column(BigInteger, nullable=False, index=True, doc="Owning community (Telegram chat ID)")
    channel_id = Column(BigInteger, nullable=False, index=True, doc="Chat where announcements are posted")
    organizer_id = Column(BigInteger, nullable=False, doc="Telegram user ID of the organizer")
    
    status = Column(Enum(GameStatus), default=GameStatus.PENDING, nullable=False, doc="Lifecycle status")
    phase = Column(Enum(GamePhase), default=GamePhase.SETUP, nullable=False, doc="Current phase")
    night_number = Column(Integer, default=0, nullable=False, doc="Incremented when a night starts")
    day_number = Column(Integer, default=0, nullable=False, doc="Incremented when voting starts")
    
    phase_start_time = Column(DateTime, nullable=True, doc="When the current phase started")
    phase_deadline = Column(DateTime, nullable=True, doc="When the current phase times out")
    lobby_deadline = Column(DateTime, nullable=True, doc="Auto-start/cancel time while pending")
    
    debug_mode = Column(Boolean, default=False, nullable=False, doc="Short phases for testing")
    reveal_roles = Column(Boolean, default=True, nullable=False, doc="Reveal roles on death")
    tier = Column(String(16), default="plus", nullable=False, doc="Role pool tier")
    
    framed_players = Column(JSON, default=list, doc="Player IDs currently framed")
    doused_players = Column(JSON, default=list, doc="Player IDs currently doused")
    status_message_id = Column(BigInteger, nullable=True, doc="Message ID of the pinned status display")
    
    # Idempotency guards for concurrent phase transitions
    phase_closing = Column(Boolean, default=False, nullable=False, doc="Set while endPhase owns the phase")
    phase_closing_at = Column(DateTime, nullable=True, doc="When the current phase_closing claim was taken")
    last_resolved_night = Column(Integer, default=0, nullable=False, doc="Last night whose actions were resolved")
    last_tallied_day = Column(Integer, default=0, nullable=False, doc="Last day whose votes were tallied")
    warnings_sent = Column(JSON, default=list, doc="Keys of deadline warnings already sent")
    
    created_at = Column(DateTime, default=func.now(), doc="Creation timestamp")
    last_activity_at = Column(DateTime, default=func.now(), doc="Last update timestamp")
    
    players = relationship("Player", back_populates="game", cascade="all, delete-orphan")
    
    def __repr__(self):
        return f"<Game(id={self.id}, status={self.status}, phase={self.phase})>"


class Player(Base):
    """A participant of a game. Unique per (game_id, player_id)."""
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("game_id", "player_id", name="uq_player_game"),)
    
    # Autoincrement key doubles as the join order
    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(64), ForeignKey("games.id"), nullable=False, index=True)
    player_id = Column(BigInteger, nullable=False, doc="Telegram user ID")
    display_name = Column(String(255), nullable=False, doc="Name shown in announcements")
    username = Column(String(255), nullable=True, doc="Telegram @username without the @")
    
    role = Column(String(32), default=PENDING_ROLE, nullable=False, doc="Role key or 'pending'")
    alive = Column(Boolean, default=True, nullable=False)
    has_acted_this_phase = Column(Boolean, default=False, nullable=False)
    is_inactive = Column(Boolean, default=False, nullable=False, doc="Timed out without acting")
    last_action_time = Column(DateTime, nullable=True)
    
    bullets_remaining = Column(Integer, default=0, nullable=False)
    vests_remaining = Column(Integer, default=0, nullable=False)
    alerts_remaining = Column(Integer, default=0, nullable=False)
    
    death_reason = Column(String(100), nullable=True)
    death_phase = Column(String(16), nullable=True)
    death_night = Column(Integer, nullable=True, doc="Night number, or day number for lynches")
    
    joined_at = Column(DateTime, default=func.now())
    
    game = relationship("Game", back_populates="players")
    
    def __repr__(self):
        return f"<Player(game_id={self.game_id}, player_id={self.player_id}, role={self.role}, alive={self.alive})>"


class NightAction(Base):
    """One night action per (game, night, player); resubmission overwrites."""
    __tablename__ = "night_actions"
    __table_args__ = (UniqueConstraint("game_id", "night_number", "player_id", name="uq_action_night_player"),)
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(64), ForeignKey("games.id"), nullable=False, index=True)
    night_number = Column(Integer, nullable=False)
    player_id = Column(BigInteger, nullable=False)
    
    action_type = Column(String(32), nullable=False, doc="Copied from the role at submission time")
    target_id = Column(String(64), nullable=True, doc="List index or player identity")
    target_is_index = Column(Boolean, default=False, nullable=False, doc="target_id is a 1-based list index")
    keyword = Column(String(16), nullable=True, doc="skip/alert/vest/ignite")
    
    submitted_at = Column(DateTime, default=func.now())
    processed = Column(Boolean, default=False, nullable=False)
    
    def __repr__(self):
        return f"<NightAction(game_id={self.game_id}, night={self.night_number}, player_id={self.player_id})>"


class Vote(Base):
    """One vote per (game, day, voter); re-voting keeps the row and its position."""
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("game_id", "day_number", "voter_id", name="uq_vote_day_voter"),)
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(64), ForeignKey("games.id"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    voter_id = Column(BigInteger, nullable=False)
    target_id = Column(String(64), nullable=False, doc="Player ID as text, or 'skip'")
    voted_at = Column(DateTime, default=func.now())
    
    def __repr__(self):
        return f"<Vote(game_id={self.game_id}, day={self.day_number}, voter={self.voter_id}, target={self.target_id})>"


class GameEvent(Base):
    """Append-only game log used for display and audit."""
    __tablename__ = "game_events"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(64), ForeignKey("games.id"), nullable=False, index=True)
    phase = Column(String(16), nullable=False)
    phase_number = Column(Integer, default=0, nullable=False)
    event_type = Column(Enum(EventType), nullable=False)
    description = Column(Text, nullable=False)
    data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=func.now())
    
    def __repr__(self):
        return f"<GameEvent(game_id={self.game_id}, type={self.event_type}, description={self.description!r})>"


class User(Base):
    """Telegram user with a reward balance."""
    __tablename__ = "users"
    
    id = Column(BigInteger, primary_key=True, doc="Telegram user ID")
    username = Column(String(255), nullable=True)
    balance = Column(BigInteger, default=0, nullable=False, doc="Reward currency balance")
    total_wins = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=func.now())
    
    def __repr__(self):
        return f"<User(id={self.id}, balance={self.balance})>"
