"""
Main orchestrator for managing provider lifecycle and participant sessions.
"""

import asyncio
from typing import Dict, Any, Optional, Set

from .coordinator import TurnCoordinator
from .factory import ProviderFactory
from .interfaces import IdentityInterface, NavigationInterface, ConsoleNavigation
from .models.data_models import Channel, UserPreferences
from .providers.session_store.memory_store import InMemorySessionStore
from .utils.analysis_scheduler import AnalysisScheduler, summarize_participant
from .utils.error_handling import ComponentError, ErrorHandler, ErrorSeverity, safe_cleanup
from .utils.logging_config import get_logger
from .utils.session_journal import SessionJournal


logger = get_logger("orchestrator")


class CompanionOrchestrator:
    """
    Builds providers, follows the signed-in participant and owns the
    per-participant coordinator and re-analysis loop.
    """

    def __init__(self,
                 config: Dict[str, Any],
                 identity: IdentityInterface,
                 navigation: Optional[NavigationInterface] = None,
                 voice: bool = True,
                 providers: Optional[Dict[str, Any]] = None,
                 preferences: Optional[UserPreferences] = None):
        """
        Args:
            config: Output of get_framework_config()
            identity: Source of the signed-in participant
            navigation: UI collaborator (console logging by default)
            voice: Build the voice channel (capture, transcription, speech)
            providers: Pre-built providers, bypassing the factory
            preferences: Profile preferences used for replies
        """
        self.config = config
        self.identity = identity
        self.navigation = navigation or ConsoleNavigation()
        self.voice = voice
        self.preferences = preferences or UserPreferences()
        self.providers: Dict[str, Any] = dict(providers or {})
        self.error_handler = ErrorHandler()
        self._register_recovery_strategies()
        self.is_initialized = False

        self.journal: Optional[SessionJournal] = None
        self.coordinator: Optional[TurnCoordinator] = None
        self.participant_id: Optional[str] = None

        analysis = config.get('analysis', {})
        self.analysis_enabled = analysis.get('enabled', True)
        self.scheduler = AnalysisScheduler(
            self._analyze,
            interval=analysis.get('interval_seconds', 30 * 60),
            on_result=self._on_analysis,
        )
        self.last_analysis: Dict[str, Any] = {}
        self._identity_tasks: Set[asyncio.Task] = set()
        self._session_lock = asyncio.Lock()

    def _register_recovery_strategies(self):
        """Register component recovery strategies."""

        async def recover_store(error):
            """Keep sessions in memory for the rest of the process."""
            failed = self.store
            self.providers['store'] = InMemorySessionStore()
            if failed is not None:
                await safe_cleanup(failed.close)
            logger.warning("💾 Session store unavailable; keeping sessions in memory")

        self.error_handler.register_recovery("store", recover_store)

    @property
    def store(self):
        return self.providers.get('store')

    @property
    def channel(self) -> Channel:
        return Channel.VOICE if self.voice else Channel.TEXT

    async def initialize(self) -> bool:
        """
        Create and initialize all providers, then follow the identity source.

        Returns:
            bool: True when the framework is ready for conversation
        """
        if not self.providers:
            try:
                self.providers = ProviderFactory.create_all_providers(self.config, voice=self.voice)
            except (ValueError, ImportError) as e:
                logger.error(f"❌ Failed to create providers: {e}")
                return False

        if not await self.store.initialize():
            await self.error_handler.handle_error(ComponentError(
                component="store",
                severity=ErrorSeverity.RECOVERABLE,
                message="Session store unavailable",
                context={'store': type(self.store).__name__},
            ))

        initialization_tasks = []
        replies = self.providers.get('replies')
        if replies is not None and replies.completion is not None:
            initialization_tasks.append(('completion', replies.completion.initialize()))
        for name in ('transcriber', 'synthesizer'):
            if self.providers.get(name) is not None:
                initialization_tasks.append((name, self.providers[name].initialize()))

        results = await asyncio.gather(*[task[1] for task in initialization_tasks], return_exceptions=True)
        voice_ready = True
        for (provider_name, _), result in zip(initialization_tasks, results):
            if result and not isinstance(result, Exception):
                logger.info(f"✅ {provider_name} initialized")
                continue
            # Replies fall back to canned lines; the voice channel cannot run without its providers
            voice_provider = provider_name in ('transcriber', 'synthesizer')
            if voice_provider:
                voice_ready = False
            await self.error_handler.handle_error(ComponentError(
                component=provider_name,
                severity=ErrorSeverity.FATAL if voice_provider else ErrorSeverity.WARNING,
                message=f"{provider_name} initialization failed",
                exception=result if isinstance(result, Exception) else None,
            ))

        if self.voice and not voice_ready:
            logger.error("❌ Voice channel could not be initialized")
            await self.cleanup()
            return False

        self.identity.on_change(self._on_identity_change)
        participant = self.identity.current_participant()
        if participant:
            await self.login(participant)

        self.is_initialized = True
        logger.info("🚀 Companion orchestrator initialized")
        return True

    # -------------------------------------------------------------- identity

    def _on_identity_change(self, participant_id: Optional[str]):
        task = asyncio.ensure_future(self.handle_participant_change(participant_id))
        self._identity_tasks.add(task)
        task.add_done_callback(self._identity_tasks.discard)

    async def settle(self) -> None:
        """Wait for pending identity changes to be applied."""
        while self._identity_tasks:
            await asyncio.gather(*list(self._identity_tasks))

    async def handle_participant_change(self, participant_id: Optional[str]) -> None:
        if participant_id:
            await self.login(participant_id)
        else:
            await self.logout()

    async def login(self, participant_id: str) -> TurnCoordinator:
        """Resume or prepare a session for the participant and start analysis."""
        async with self._session_lock:
            if self.participant_id == participant_id and self.coordinator is not None:
                return self.coordinator
            if self.participant_id is not None:
                await self._teardown_participant()

            self.participant_id = participant_id
            self.journal = SessionJournal(self.store, participant_id, self.channel)
            await self.journal.resume_latest()
            self.coordinator = self._build_coordinator(self.journal)
            if self.analysis_enabled:
                self.scheduler.start(participant_id)
            logger.info(f"👤 Signed in: {participant_id}")
            return self.coordinator

    async def logout(self) -> None:
        async with self._session_lock:
            if self.participant_id is None:
                return
            logger.info(f"👤 Signed out: {self.participant_id}")
            await self._teardown_participant()

    async def _teardown_participant(self):
        await self.scheduler.stop(self.participant_id)
        if self.coordinator is not None:
            await self.coordinator.shutdown()
        self.coordinator = None
        self.journal = None
        self.participant_id = None

    def _build_coordinator(self, journal: SessionJournal) -> TurnCoordinator:
        return TurnCoordinator(
            capture=self.providers.get('capture'),
            transcriber=self.providers.get('transcriber'),
            replies=self.providers['replies'],
            synthesizer=self.providers.get('synthesizer'),
            journal=journal,
            navigation=self.navigation,
            preferences=self.preferences,
            error_handler=self.error_handler,
        )

    # -------------------------------------------------------------- sessions

    async def clear_all_sessions(self) -> None:
        """
        Delete the participant's history. The coordinator returns to IDLE and
        the next message starts a fresh session.
        """
        async with self._session_lock:
            if self.participant_id is None or self.journal is None:
                return
            participant_id = self.participant_id
            await self.scheduler.stop(participant_id)
            await self.coordinator.shutdown()
            await self.journal.clear_all()
            if self.analysis_enabled:
                self.scheduler.start(participant_id)
            logger.info(f"🧹 Cleared all sessions for {participant_id}")

    async def end_session(self) -> None:
        """Close the active session; the next message opens a new one."""
        if self.journal is not None:
            await self.journal.end()

    # -------------------------------------------------------------- analysis

    async def _analyze(self, participant_id: str) -> Dict[str, Any]:
        return await summarize_participant(self.store, participant_id)

    def _on_analysis(self, participant_id: str, result: Dict[str, Any]):
        self.last_analysis[participant_id] = result
        logger.debug(
            f"📊 {participant_id}: {result.get('message_count', 0)} messages, "
            f"avg sentiment {result.get('average_sentiment', 0.0):.2f}"
        )

    # -------------------------------------------------------------- lifecycle

    def get_status(self) -> Dict[str, Any]:
        history = self.error_handler.get_error_history()
        transcriber = self.providers.get('transcriber')
        synthesizer = self.providers.get('synthesizer')
        return {
            'initialized': self.is_initialized,
            'participant': self.participant_id,
            'session': self.journal.session_id if self.journal else None,
            'phase': self.coordinator.phase.name if self.coordinator else None,
            'transcription': transcriber.state.active.value if transcriber else None,
            'synthesis': synthesizer.state.active.value if synthesizer else None,
            'analysis': self.scheduler.active_participants,
            'errors': self.error_handler.get_error_summary(),
            'last_error': history[-1].message if history else None,
        }

    async def shutdown(self) -> None:
        """Stop every background task and release providers."""
        await self.scheduler.stop_all()
        await self.logout()
        await self.cleanup()

    async def cleanup(self):
        """Cleanup all providers."""
        funcs = []
        for name in ('transcriber', 'synthesizer', 'capture'):
            provider = self.providers.get(name)
            if provider is not None:
                funcs.append(provider.cleanup)
        replies = self.providers.get('replies')
        if replies is not None and replies.completion is not None:
            funcs.append(replies.completion.cleanup)
        if self.store is not None:
            funcs.append(self.store.close)
        await safe_cleanup(*funcs)
        self.is_initialized = False
        logger.info("🧹 Orchestrator cleanup completed")
