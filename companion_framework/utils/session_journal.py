"""
In-memory view of the active session, mirrored to the session store.

The journal is what the pipeline talks to. Store failures never reach the
caller: they are logged and the conversation carries on from memory.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from ..interfaces.session_store import SessionStoreInterface
from ..models.data_models import Author, Channel, Turn, ScreenResult
from .error_handling import PersistenceFailure
from .logging_config import get_logger


logger = get_logger("journal")

TRANSCRIPTION_PREFIX = "[Transcription]: "


class SessionJournal:
    """
    Tracks the current session for one participant on one channel.

    Guarantees non-decreasing turn timestamps within the session.
    """

    def __init__(self, store: SessionStoreInterface, participant_id: str,
                 channel: Channel = Channel.VOICE):
        self.store = store
        self.participant_id = participant_id
        self.channel = channel
        self.session_id: Optional[str] = None
        self.turns: List[Turn] = []
        self.persistence_failures = 0

    @property
    def last_timestamp(self) -> Optional[datetime]:
        return self.turns[-1].created_at if self.turns else None

    async def resume_latest(self) -> bool:
        """Adopt the participant's most recent open session, if any."""
        try:
            sessions = await self.store.list_sessions(self.participant_id, limit=1)
            if not sessions or sessions[0].is_closed or sessions[0].channel != self.channel:
                return False
            session = await self.store.get_session(sessions[0].id)
        except PersistenceFailure as e:
            self._record_failure("resume", e)
            return False
        if session is None:
            return False
        self.session_id = session.id
        self.turns = list(session.turns)
        logger.info(f"📂 Resumed session {session.id[:8]} ({len(self.turns)} turns)")
        return True

    async def ensure_session(self) -> str:
        """
        Return the active session id, creating a session when there is none
        or when the stored one has been deleted.
        """
        if self.session_id is not None and not self.session_id.startswith("local-"):
            try:
                existing = await self.store.get_session(self.session_id)
            except PersistenceFailure as e:
                self._record_failure("lookup", e)
                return self.session_id
            if existing is not None and not existing.is_closed:
                return self.session_id
            logger.info("Stored session is gone; starting a new one")
            self._reset()

        if self.session_id is None:
            try:
                self.session_id = await self.store.create_session(self.participant_id, self.channel)
            except PersistenceFailure as e:
                self._record_failure("create", e)
                self.session_id = f"local-{uuid.uuid4().hex}"
            logger.info(f"🆕 Session {self.session_id[:14]}")
        return self.session_id

    async def append(self, turn: Turn) -> Turn:
        """Append a turn locally and try to persist it."""
        session_id = await self.ensure_session() if self.session_id is None else self.session_id

        last = self.last_timestamp
        if last is not None and turn.created_at < last:
            turn.created_at = last
        turn.session_id = session_id
        self.turns.append(turn)

        if session_id.startswith("local-"):
            return turn
        try:
            turn.id = await self.store.append_turn(session_id, turn)
        except PersistenceFailure as e:
            self._record_failure("append", e)
        return turn

    async def record_transcription(self, text: str) -> Turn:
        return await self.append(Turn(
            author=Author.SYSTEM,
            content=f"{TRANSCRIPTION_PREFIX}{text}",
            is_raw_transcription=True,
        ))

    async def record_user(self, text: str, screen: Optional[ScreenResult] = None) -> Turn:
        turn = Turn(author=Author.USER, content=text)
        if screen is not None:
            turn.emotion = screen.emotion
            turn.sentiment = screen.sentiment
            turn.crisis_tier = screen.crisis_tier
        return await self.append(turn)

    async def record_assistant(self, text: str) -> Turn:
        return await self.append(Turn(author=Author.ASSISTANT, content=text))

    def history_messages(self) -> List[Dict[str, str]]:
        """Dialogue turns as chat messages, transcription logs excluded."""
        return [turn.to_message() for turn in self.turns if turn.is_conversational]

    async def end(self) -> None:
        """Close the current session."""
        if self.session_id is None:
            return
        if not self.session_id.startswith("local-"):
            try:
                await self.store.end_session(self.session_id)
            except PersistenceFailure as e:
                self._record_failure("end", e)
        self._reset()

    async def clear_all(self) -> None:
        """Delete every session of the participant and forget the active one."""
        try:
            await self.store.clear_all(self.participant_id)
        except PersistenceFailure as e:
            self._record_failure("clear", e)
        self._reset()

    def _reset(self):
        self.session_id = None
        self.turns = []

    def _record_failure(self, action: str, error: PersistenceFailure):
        self.persistence_failures += 1
        logger.warning(f"💾 Session store {action} failed, continuing in memory: {error}")
