"""
Process-local session store.
"""

import uuid
from typing import Dict, List, Optional

from ...interfaces.session_store import SessionStoreInterface
from ...models.data_models import ConversationSession, Channel, Turn, utc_now
from ...utils.error_handling import PersistenceFailure


class InMemorySessionStore(SessionStoreInterface):
    """Keeps sessions in a dict. Used by the CLI without Supabase and by tests."""

    def __init__(self):
        self._sessions: Dict[str, ConversationSession] = {}

    async def create_session(self, participant_id: str, channel: Channel) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = ConversationSession(
            id=session_id, participant_id=participant_id, channel=channel
        )
        return session_id

    async def append_turn(self, session_id: str, turn: Turn) -> str:
        session = self._sessions.get(session_id)
        if session is None:
            raise PersistenceFailure(f"Unknown session {session_id}")
        turn.id = turn.id or uuid.uuid4().hex
        turn.session_id = session_id
        session.turns.append(turn)
        return turn.id

    async def get_session(self, session_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(session_id)

    async def list_sessions(self, participant_id: str, limit: int = 20) -> List[ConversationSession]:
        sessions = [s for s in self._sessions.values() if s.participant_id == participant_id]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions[:limit]

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def clear_all(self, participant_id: str) -> None:
        for session_id in [s.id for s in self._sessions.values() if s.participant_id == participant_id]:
            del self._sessions[session_id]

    async def end_session(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None and session.closed_at is None:
            session.closed_at = utc_now()
