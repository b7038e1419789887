"""
Abstract interface for the conversation session store.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from ..models.data_models import ConversationSession, Channel, Turn


class SessionStoreInterface(ABC):
    """
    Persistence for sessions and their turns.

    Every method may raise PersistenceFailure; callers in the pipeline go
    through SessionJournal, which absorbs those failures.
    """

    @abstractmethod
    async def create_session(self, participant_id: str, channel: Channel) -> str:
        """Create an empty session and return its id."""
        pass

    @abstractmethod
    async def append_turn(self, session_id: str, turn: Turn) -> str:
        """Append a turn to the end of a session and return the turn id."""
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[ConversationSession]:
        """Load a session with its turns in insertion order, or None if it is gone."""
        pass

    @abstractmethod
    async def list_sessions(self, participant_id: str, limit: int = 20) -> List[ConversationSession]:
        """Most recent sessions first, without guaranteeing turns are loaded."""
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        pass

    @abstractmethod
    async def clear_all(self, participant_id: str) -> None:
        """Delete every session of a participant."""
        pass

    @abstractmethod
    async def end_session(self, session_id: str) -> None:
        """Mark a session closed."""
        pass

    async def initialize(self) -> bool:
        """Open connections. Stores that need none are ready immediately."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
