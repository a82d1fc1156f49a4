"""
Database Connection and Initialization

Owns the async engine and session factory for the Daily Mafia tables.
Every store call opens its own DatabaseSession, so nothing else touches
the engine directly.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import MetaData

from ..utils.config import get_settings
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

metadata = MetaData()
Base = declarative_base(metadata=metadata)

engine = None
SessionLocal = None


def to_async_url(database_url: str) -> str:
    """Rewrite a sync database URL to its async driver variant."""
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


async def init_database(database_url: Optional[str] = None) -> None:
    """
    Connect to the game database and create missing tables.

    Args:
        database_url: Optional override of the configured DATABASE_URL
    """
    global engine, SessionLocal

    settings = get_settings()
    database_url = to_async_url(database_url or settings.database_url)

    try:
        engine = create_async_engine(database_url, echo=settings.debug)
        SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        # Registers the game tables on Base.metadata
        from .models import Game, Player, NightAction, Vote, GameEvent, User  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(f"Game database ready - database_url: {database_url}")
    except Exception as e:
        logger.error(f"Failed to initialize game database - database_url: {database_url}, error: {str(e)}")
        raise


async def close_database() -> None:
    """Dispose of the engine on shutdown."""
    global engine, SessionLocal

    if engine:
        await engine.dispose()
        engine = None
        SessionLocal = None
        logger.info("Game database closed")


class DatabaseSession:
    """
    One unit of work: commits on success, rolls back on error.

    Usage:
        async with DatabaseSession() as session:
            game = await session.get(Game, game_id)
    """

    def __init__(self):
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> AsyncSession:
        if SessionLocal is None:
            raise RuntimeError("Database not initialized. Call init_database() first.")
        self.session = SessionLocal()
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session is None:
            return
        try:
            if exc_type is not None:
                await self.session.rollback()
            else:
                await self.session.commit()
        finally:
            await self.session.close()
            self.session = None
