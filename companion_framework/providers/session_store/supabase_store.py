"""
Supabase-backed session store.

Tables:
- conversation_sessions (id, participant_id, channel, created_at, closed_at)
- conversation_turns (id, session_id, author, content, created_at, emotion,
  sentiment, crisis_tier, is_raw_transcription)

The supabase client is synchronous, so every call runs in the default executor.
"""

import asyncio
import functools
import os
from datetime import datetime
from typing import Optional, List, Dict, Any, TYPE_CHECKING

from ...interfaces.session_store import SessionStoreInterface
from ...models.data_models import ConversationSession, Channel, Turn, utc_now
from ...utils.error_handling import PersistenceFailure
from ...utils.logging_config import get_logger

if TYPE_CHECKING:
    from supabase import Client


logger = get_logger("store")

SESSIONS_TABLE = "conversation_sessions"
TURNS_TABLE = "conversation_turns"


class SupabaseSessionStore(SessionStoreInterface):
    """
    Session persistence in Supabase.

    Usage:
        store = SupabaseSessionStore()
        await store.initialize()
        session_id = await store.create_session("user-1", Channel.VOICE)
    """

    def __init__(self, supabase_url: Optional[str] = None, supabase_key: Optional[str] = None):
        """
        Args:
            supabase_url: Supabase project URL (or set SUPABASE_URL env var)
            supabase_key: Supabase service role key (or set SUPABASE_KEY env var)
        """
        self.url = supabase_url or os.environ.get("SUPABASE_URL")
        self.key = supabase_key or os.environ.get("SUPABASE_KEY")
        self._client: Optional["Client"] = None

    @property
    def is_enabled(self) -> bool:
        """Check if the store has credentials configured."""
        return bool(self.url and self.key)

    async def initialize(self) -> bool:
        """Create the client and verify the sessions table is reachable."""
        if not self.is_enabled:
            logger.warning("Supabase store disabled (SUPABASE_URL/SUPABASE_KEY not set)")
            return False

        from supabase import create_client

        try:
            self._client = create_client(self.url, self.key)
            await self._run(lambda: self._client.table(SESSIONS_TABLE).select("id").limit(1).execute())
        except PersistenceFailure as e:
            logger.error(f"Supabase store initialization failed: {e}")
            self._client = None
            return False
        logger.info("✅ Session store initialized (Supabase)")
        return True

    async def _run(self, func):
        """Run a blocking client call in the executor, classifying failures."""
        if self._client is None:
            raise PersistenceFailure("Supabase store is not initialized")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func)
        except Exception as e:
            # postgrest and httpx raise a wide range of types
            raise PersistenceFailure(f"Supabase request failed: {e}") from e

    async def create_session(self, participant_id: str, channel: Channel) -> str:
        data = {
            "participant_id": participant_id,
            "channel": channel.value,
            "created_at": utc_now().isoformat(),
        }
        result = await self._run(lambda: self._client.table(SESSIONS_TABLE).insert(data).execute())
        session_id = str(result.data[0]["id"])
        logger.info(f"📝 Started session: {session_id[:8]}...")
        return session_id

    async def append_turn(self, session_id: str, turn: Turn) -> str:
        data = turn.to_dict()
        data.pop('id')
        data['session_id'] = session_id
        result = await self._run(lambda: self._client.table(TURNS_TABLE).insert(data).execute())
        return str(result.data[0]["id"])

    async def get_session(self, session_id: str) -> Optional[ConversationSession]:
        result = await self._run(
            lambda: self._client.table(SESSIONS_TABLE).select("*").eq("id", session_id).limit(1).execute()
        )
        if not result.data:
            return None
        session = self._session_from_row(result.data[0])

        turns = await self._run(
            lambda: self._client.table(TURNS_TABLE)
            .select("*")
            .eq("session_id", session_id)
            .order("created_at")
            .order("id")
            .execute()
        )
        session.turns = [Turn.from_dict(row) for row in turns.data or []]
        return session

    async def list_sessions(self, participant_id: str, limit: int = 20) -> List[ConversationSession]:
        result = await self._run(
            lambda: self._client.table(SESSIONS_TABLE)
            .select("*")
            .eq("participant_id", participant_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [self._session_from_row(row) for row in result.data or []]

    async def delete_session(self, session_id: str) -> None:
        await self._run(functools.partial(self._delete_rows, [session_id]))

    async def clear_all(self, participant_id: str) -> None:
        result = await self._run(
            lambda: self._client.table(SESSIONS_TABLE).select("id").eq("participant_id", participant_id).execute()
        )
        session_ids = [row["id"] for row in result.data or []]
        if session_ids:
            await self._run(functools.partial(self._delete_rows, session_ids))
        logger.info(f"🗑️  Cleared {len(session_ids)} sessions")

    async def end_session(self, session_id: str) -> None:
        await self._run(
            lambda: self._client.table(SESSIONS_TABLE)
            .update({"closed_at": utc_now().isoformat()})
            .eq("id", session_id)
            .execute()
        )

    def _delete_rows(self, session_ids: List[str]):
        self._client.table(TURNS_TABLE).delete().in_("session_id", session_ids).execute()
        self._client.table(SESSIONS_TABLE).delete().in_("id", session_ids).execute()

    @staticmethod
    def _session_from_row(row: Dict[str, Any]) -> ConversationSession:
        def parse(value):
            if isinstance(value, str):
                return datetime.fromisoformat(value)
            return value

        return ConversationSession(
            id=str(row["id"]),
            participant_id=row.get("participant_id", ""),
            channel=Channel(row.get("channel", Channel.VOICE.value)),
            created_at=parse(row.get("created_at")) or utc_now(),
            closed_at=parse(row.get("closed_at")),
        )

    async def close(self) -> None:
        self._client = None
