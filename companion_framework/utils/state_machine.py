"""
Turn state machine for coordinating one conversation cycle at a time.
"""

import asyncio
import inspect
from enum import Enum
from typing import Optional, Callable, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime

from .logging_config import get_logger


logger = get_logger("state")


class TurnPhase(Enum):
    """Phases of a voice turn."""
    IDLE = "idle"
    CAPTURING = "capturing"
    TRANSCRIBING = "transcribing"
    SCREENING = "screening"
    GENERATING = "generating"
    SYNTHESIZING = "synthesizing"
    PLAYING = "playing"
    ERROR = "error"


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_phase: TurnPhase
    to_phase: TurnPhase
    component: str
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    metadata: Dict[str, Any] = field(default_factory=dict)


class InvalidTransition(ValueError):
    """Raised when a transition is not in the transition table."""


class TurnStateMachine:
    """
    Holds the single current TurnPhase and validates every transition.

    Features:
    - Validates transitions against an explicit table
    - Notifies listeners after each change
    - Cleanup handlers run on forced reset
    - Transition history tracking
    """

    def __init__(self, history_size: int = 200):
        self._phase = TurnPhase.IDLE
        self._current_component: Optional[str] = None
        self._lock = asyncio.Lock()
        self._transition_history: List[StateTransition] = []
        self._history_size = history_size
        self._cleanup_handlers: Dict[str, Callable] = {}
        self._listeners: List[Callable] = []

        self._valid_transitions = {
            TurnPhase.IDLE: [
                TurnPhase.CAPTURING,
                TurnPhase.SCREENING,  # typed text skips capture
                TurnPhase.ERROR,
            ],
            TurnPhase.CAPTURING: [
                TurnPhase.TRANSCRIBING,
                TurnPhase.IDLE,
                TurnPhase.ERROR,
            ],
            TurnPhase.TRANSCRIBING: [
                TurnPhase.SCREENING,
                TurnPhase.IDLE,
                TurnPhase.ERROR,
            ],
            TurnPhase.SCREENING: [
                TurnPhase.GENERATING,
                TurnPhase.IDLE,
                TurnPhase.ERROR,
            ],
            TurnPhase.GENERATING: [
                TurnPhase.SYNTHESIZING,
                TurnPhase.IDLE,
                TurnPhase.ERROR,
            ],
            TurnPhase.SYNTHESIZING: [
                TurnPhase.PLAYING,
                TurnPhase.IDLE,
                TurnPhase.ERROR,
            ],
            TurnPhase.PLAYING: [
                TurnPhase.IDLE,
                TurnPhase.CAPTURING,  # barge-in
                TurnPhase.ERROR,
            ],
            TurnPhase.ERROR: [
                TurnPhase.IDLE,
            ],
        }

    @property
    def phase(self) -> TurnPhase:
        """Get current phase."""
        return self._phase

    @property
    def current_component(self) -> Optional[str]:
        return self._current_component

    def can_transition(self, target: TurnPhase) -> bool:
        return target in self._valid_transitions.get(self._phase, [])

    def add_listener(self, callback: Callable):
        """
        Register a callback invoked as callback(old_phase, new_phase).

        Coroutine callbacks are awaited.
        """
        self._listeners.append(callback)

    def register_cleanup_handler(self, component: str, handler: Callable):
        """
        Register cleanup handler for a component.

        Args:
            component: Component name (e.g., "capture", "playback")
            handler: Async cleanup function
        """
        self._cleanup_handlers[component] = handler

    async def transition_to(
        self,
        target: TurnPhase,
        component: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        guard: Optional[Callable[[], bool]] = None
    ) -> bool:
        """
        Transition to a new phase.

        Args:
            target: Desired phase
            component: Component requesting the transition
            metadata: Optional metadata about the transition
            guard: Checked under the lock; a False result skips the transition

        Returns:
            True when the transition happened, False if the guard refused it

        Raises:
            InvalidTransition: If the transition is not allowed from the current phase
        """
        async with self._lock:
            if guard is not None and not guard():
                return False
            if not self.can_transition(target):
                raise InvalidTransition(
                    f"Invalid transition: {self._phase.name} → {target.name}"
                )
            previous = self._record(target, component, metadata)
        await self._notify(previous, target)
        return True

    async def reset(self, reason: str = "reset", component: Optional[str] = None):
        """
        Force the machine back to IDLE from any phase, cleaning up the owner.

        Safe to call multiple times.
        """
        async with self._lock:
            if self._phase == TurnPhase.IDLE and self._current_component is None:
                return

            logger.warning(f"🚨 Forced reset from {self._phase.name} ({reason})")
            owner = self._current_component
            if owner and owner != component:
                await self._cleanup_component(owner)
            previous = self._record(TurnPhase.IDLE, None, {'reason': reason})
        if previous != TurnPhase.IDLE:
            await self._notify(previous, TurnPhase.IDLE)

    def _record(self, target: TurnPhase, component: Optional[str],
                metadata: Optional[Dict[str, Any]]) -> TurnPhase:
        previous = self._phase
        self._transition_history.append(StateTransition(
            from_phase=previous,
            to_phase=target,
            component=component or "unknown",
            metadata=metadata or {}
        ))
        if len(self._transition_history) > self._history_size:
            self._transition_history.pop(0)
        self._phase = target
        self._current_component = component
        logger.debug(f"🔄 {previous.name} → {target.name} (component: {component})")
        return previous

    async def _notify(self, previous: TurnPhase, target: TurnPhase):
        for listener in list(self._listeners):
            try:
                result = listener(previous, target)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Phase listener failed: {e}")

    async def _cleanup_component(self, component: str):
        handler = self._cleanup_handlers.get(component)
        if not handler:
            return
        try:
            logger.debug(f"🧹 Cleaning up component: {component}")
            await handler()
        except Exception as e:
            logger.warning(f"Error cleaning component {component}: {e}")

    def get_transition_history(self, last_n: int = 10) -> List[StateTransition]:
        """Get recent transition history."""
        return self._transition_history[-last_n:]

    def get_status(self) -> Dict[str, Any]:
        """Get current status."""
        return {
            'phase': self._phase.name,
            'component': self._current_component,
            'history_size': len(self._transition_history),
            'last_transition': self._transition_history[-1] if self._transition_history else None
        }
