"""
Deadline Sweeper

Periodic task that closes expired lobbies and phases and sends the
2-hour / 30-minute deadline warnings. A failed transition leaves the
deadline in the past, so the next tick retries it.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

from ..database.models import Game, GamePhase, GameStatus
from ..utils.config import get_settings
from ..utils.logging_config import get_logger
from .timing import time_remaining, utcnow, warning_threshold

logger = get_logger(__name__)


class DeadlineSweeper:
    """
    Scheduled deadline checks owned by the application.

    ``start`` runs one sweep straight away and then one every interval.
    A tick that comes due while the previous sweep is still running is
    skipped.
    """

    def __init__(self, manager, interval_seconds: Optional[float] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.manager = manager
        self.store = manager.store
        self.interval_seconds = interval_seconds or get_settings().sweep_interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._sweeping = False
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.info("Deadline sweeper already running")
            return
        logger.info(f"Starting deadline sweeper - interval: {self.interval_seconds}s")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the loop and any sweep still in flight."""
        tasks = [task for task in (self._task, self._sweep_task) if task and not task.done()]
        if not tasks:
            self._task = self._sweep_task = None
            return
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._sweep_task = None
        logger.info("Deadline sweeper stopped")

    async def _run(self) -> None:
        while True:
            if self._sweeping:
                logger.warning("Previous sweep still running, skipping tick")
            else:
                self._sweep_task = asyncio.create_task(self.sweep())
            await asyncio.sleep(self.interval_seconds)

    async def sweep(self) -> int:
        """
        Check every live game once.

        Returns:
            int: Number of games checked, or 0 if a sweep was already in progress
        """
        if self._sweeping:
            return 0
        self._sweeping = True
        try:
            games = await self.store.get_all_active_games()
            if games:
                logger.debug(f"Checking {len(games)} game(s)")
            for game in games:
                try:
                    await self.check_game(game)
                except Exception as e:
                    logger.error(f"Failed to process game deadline - game_id: {game.id}, error: {str(e)}")
            return len(games)
        except Exception as e:
            logger.error(f"Failed to sweep deadlines - error: {str(e)}")
            return 0
        finally:
            self._sweeping = False

    async def check_game(self, game: Game) -> None:
        now = self.clock()

        if game.status == GameStatus.PENDING:
            if not game.lobby_deadline:
                return
            if now >= game.lobby_deadline:
                await self.manager.resolve_lobby_deadline(game)
                return
            threshold = warning_threshold(time_remaining(game.lobby_deadline, now), game.debug_mode)
            if threshold and await self.store.record_warning(game.id, f"lobby:{int(threshold.total_seconds())}"):
                await self.manager.send_lobby_warning(game, threshold)
            return

        if game.status != GameStatus.ACTIVE or not game.phase_deadline:
            return

        if now >= game.phase_deadline:
            logger.info(f"Phase deadline reached - game_id: {game.id}, phase: {game.phase.value}")
            await self.manager.scheduler.end_phase(game.id, is_timeout=True, expected_phase=game.phase)
            return

        threshold = warning_threshold(time_remaining(game.phase_deadline, now), game.debug_mode)
        if not threshold:
            return
        counter = game.night_number if game.phase == GamePhase.NIGHT else game.day_number
        key = f"{game.phase.value}:{counter}:{int(threshold.total_seconds())}"
        if await self.store.record_warning(game.id, key):
            await self.manager.send_inactivity_warning(game, threshold)
