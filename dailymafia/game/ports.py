"""
Phase Transition Ports

Interfaces that decouple the phase scheduler from the action and vote
handlers. Submissions reach the scheduler only through PhaseTransitionPort;
the scheduler reaches night resolution and vote tallying only through the
two exit-hook ports.
"""

from abc import ABC, abstractmethod


class PhaseTransitionPort(ABC):
    """Lets submission handlers ask for an early phase end."""

    @abstractmethod
    async def check_early_phase_end(self, game_id: str) -> bool:
        """End the phase if every eligible player has acted."""


class NightResolutionPort(ABC):
    """Night hooks: prompts when a night starts, resolution when it ends."""

    @abstractmethod
    async def send_night_action_prompts(self, game_id: str) -> int:
        """Privately prompt every living player with a night action."""

    @abstractmethod
    async def resolve_night(self, game_id: str) -> bool:
        """Resolve the current night's actions once."""


class VoteTallyPort(ABC):
    """Exit hook run when a voting phase ends."""

    @abstractmethod
    async def tally(self, game_id: str):
        """Tally the current day's votes once."""
