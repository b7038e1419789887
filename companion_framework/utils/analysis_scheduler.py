"""
Periodic background re-analysis of a participant's conversation history.

One detached task per participant. The owner (the orchestrator) stops a
participant's task on logout and stops all of them on shutdown.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..interfaces.session_store import SessionStoreInterface
from ..models.data_models import Author
from .logging_config import get_logger


logger = get_logger("analysis")

DEFAULT_INTERVAL_SECONDS = 30 * 60

Analyzer = Callable[[str], Awaitable[Any]]


async def summarize_participant(store: SessionStoreInterface, participant_id: str,
                                limit: int = 50) -> Dict[str, Any]:
    """Light aggregate over recent sessions, handed to the analytics consumer."""
    sessions = await store.list_sessions(participant_id, limit=limit)
    user_lengths: List[int] = []
    assistant_lengths: List[int] = []
    sentiments: List[float] = []
    emotions: Dict[str, int] = {}

    for summary in sessions:
        session = await store.get_session(summary.id)
        if session is None:
            continue
        for turn in session.conversational_turns():
            if turn.author == Author.USER:
                user_lengths.append(len(turn.content))
                if turn.sentiment is not None:
                    sentiments.append(turn.sentiment)
                if turn.emotion:
                    emotions[turn.emotion] = emotions.get(turn.emotion, 0) + 1
            else:
                assistant_lengths.append(len(turn.content))

    def average(values):
        return sum(values) / len(values) if values else 0.0

    return {
        'participant_id': participant_id,
        'session_count': len(sessions),
        'message_count': len(user_lengths) + len(assistant_lengths),
        'user_message_count': len(user_lengths),
        'assistant_message_count': len(assistant_lengths),
        'average_user_message_length': average(user_lengths),
        'average_assistant_message_length': average(assistant_lengths),
        'top_emotions': emotions,
        'average_sentiment': average(sentiments),
    }


class AnalysisScheduler:
    """Runs an analyzer immediately and then every interval, per participant."""

    def __init__(self, analyzer: Analyzer, interval: float = DEFAULT_INTERVAL_SECONDS,
                 on_result: Optional[Callable[[str, Any], None]] = None):
        self.analyzer = analyzer
        self.interval = interval
        self.on_result = on_result
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def active_participants(self) -> List[str]:
        return [pid for pid, task in self._tasks.items() if not task.done()]

    def is_running(self, participant_id: str) -> bool:
        task = self._tasks.get(participant_id)
        return task is not None and not task.done()

    def start(self, participant_id: str) -> None:
        """Start the loop for a participant. No-op if one is already running."""
        if self.is_running(participant_id):
            return
        self._tasks[participant_id] = asyncio.create_task(
            self._run(participant_id), name=f"analysis-{participant_id}"
        )
        logger.info(f"📊 Scheduled analysis every {self.interval / 60:.0f} min for {participant_id}")

    async def _run(self, participant_id: str):
        while True:
            try:
                result = await self.analyzer(participant_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Analysis for {participant_id} failed: {e}")
            else:
                logger.debug(f"Analysis complete for {participant_id}")
                if self.on_result is not None:
                    self.on_result(participant_id, result)
            await asyncio.sleep(self.interval)

    async def stop(self, participant_id: str) -> None:
        task = self._tasks.pop(participant_id, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"📊 Stopped analysis for {participant_id}")

    async def stop_all(self) -> None:
        for participant_id in list(self._tasks):
            await self.stop(participant_id)
