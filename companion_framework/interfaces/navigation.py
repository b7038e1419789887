"""
Interfaces for the collaborators that sit outside the turn pipeline.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..models.data_models import Notice, ScreenResult
from ..utils.state_machine import TurnPhase
from ..utils.logging_config import get_logger


class NavigationInterface(ABC):
    """UI/navigation layer the coordinator reports to."""

    @abstractmethod
    def on_phase_change(self, previous: TurnPhase, phase: TurnPhase) -> None:
        pass

    @abstractmethod
    def on_partial_transcript(self, text: str) -> None:
        pass

    @abstractmethod
    def show_crisis_banner(self, screen: ScreenResult) -> None:
        """Non-blocking support banner for advisory content."""
        pass

    @abstractmethod
    def redirect_to_emergency(self, screen: ScreenResult) -> None:
        """Forced navigation to emergency resources for critical content."""
        pass

    @abstractmethod
    def show_notice(self, notice: Notice) -> None:
        pass


class IdentityInterface(ABC):
    """Source of the currently signed-in participant."""

    @abstractmethod
    def current_participant(self) -> Optional[str]:
        pass

    @abstractmethod
    def on_change(self, callback: Callable[[Optional[str]], None]) -> None:
        """Register a callback invoked with the new participant id (None on logout)."""
        pass


class ConsoleNavigation(NavigationInterface):
    """Navigation layer for the terminal client: everything goes to the log."""

    EMERGENCY_TEXT = (
        "If you are in immediate danger, please contact local emergency services "
        "or a crisis helpline right now."
    )

    def __init__(self):
        self.logger = get_logger("ui")

    def on_phase_change(self, previous: TurnPhase, phase: TurnPhase) -> None:
        self.logger.debug(f"{previous.value} → {phase.value}")

    def on_partial_transcript(self, text: str) -> None:
        self.logger.info(f"… {text}")

    def show_crisis_banner(self, screen: ScreenResult) -> None:
        self.logger.warning("💛 You don't have to go through this alone. Support resources are available.")

    def redirect_to_emergency(self, screen: ScreenResult) -> None:
        self.logger.critical(f"🆘 {self.EMERGENCY_TEXT}")

    def show_notice(self, notice: Notice) -> None:
        self.logger.warning(notice.message)


class StaticIdentity(IdentityInterface):
    """Identity holder for single-user clients such as the CLI."""

    def __init__(self, participant_id: Optional[str] = None):
        self._participant_id = participant_id
        self._callbacks = []

    def current_participant(self) -> Optional[str]:
        return self._participant_id

    def on_change(self, callback: Callable[[Optional[str]], None]) -> None:
        self._callbacks.append(callback)

    def set_participant(self, participant_id: Optional[str]) -> None:
        """Log in (id) or out (None) and notify listeners."""
        if participant_id == self._participant_id:
            return
        self._participant_id = participant_id
        for callback in list(self._callbacks):
            callback(participant_id)
