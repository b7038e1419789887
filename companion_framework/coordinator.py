"""
Turn coordinator: runs one capture → reply → speech cycle at a time.

Every cycle carries the epoch that was current when it started. Starting a
capture, barge-in, cancelling and crisis interrupts all advance the epoch,
and a cycle whose epoch is no longer current stops without touching the
phase, the journal or the UI.
"""

import asyncio
from typing import Callable, Optional, Set

from .interfaces.capture import AudioCaptureInterface
from .interfaces.navigation import NavigationInterface
from .models.data_models import (
    CapturedAudio,
    CrisisTier,
    CycleResult,
    Notice,
    NoticeKind,
    ScreenResult,
    UserPreferences,
)
from .providers.transcription.fallback import FallbackTranscriber
from .providers.tts.fallback import FallbackSynthesizer
from .reply_generator import ReplyGenerator
from .utils.error_handling import (
    ComponentError,
    ErrorHandler,
    ErrorSeverity,
    NoSpeechDetected,
    PermissionDenied,
    SynthesisError,
    TranscriptionError,
)
from .utils.logging_config import current_cycle, get_logger
from .utils.safety_screen import screen_text
from .utils.session_journal import SessionJournal
from .utils.state_machine import InvalidTransition, TurnPhase, TurnStateMachine


logger = get_logger("coordinator")

NO_SPEECH_MESSAGE = "I didn't catch that. Try speaking a little closer to the microphone."
TRANSCRIPTION_ERROR_MESSAGE = "Sorry, I couldn't understand the recording. Please try again or type your message."
SYNTHESIS_ERROR_MESSAGE = "I couldn't speak my reply out loud, but you can read it above."
PERMISSION_MESSAGE = (
    "Microphone access is needed for voice chat. Allow microphone access in your "
    "system settings, then try again."
)
UNEXPECTED_ERROR_MESSAGE = "Something went wrong. Please acknowledge to continue."


class TurnCoordinator:
    """
    Owns the TurnPhase of one participant session.

    Operations:
    - start_capture(): IDLE → CAPTURING, or barge-in from PLAYING
    - stop_capture(): CAPTURING → TRANSCRIBING, runs the cycle as a task
    - cancel_capture(): CAPTURING → IDLE, audio discarded
    - submit_text(): IDLE → SCREENING for typed messages
    - acknowledge_error(): ERROR → IDLE
    - force_crisis_interrupt(): any phase → IDLE plus emergency redirect
    - shutdown(): stop everything
    """

    def __init__(self,
                 capture: Optional[AudioCaptureInterface],
                 transcriber: Optional[FallbackTranscriber],
                 replies: ReplyGenerator,
                 synthesizer: Optional[FallbackSynthesizer],
                 journal: SessionJournal,
                 navigation: NavigationInterface,
                 preferences: Optional[UserPreferences] = None,
                 screen: Callable[[str], ScreenResult] = screen_text,
                 error_handler: Optional[ErrorHandler] = None):
        self.capture = capture
        self.transcriber = transcriber
        self.replies = replies
        self.synthesizer = synthesizer
        self.journal = journal
        self.navigation = navigation
        self.preferences = preferences or UserPreferences()
        self.screen = screen
        self.error_handler = error_handler or ErrorHandler()

        self.machine = TurnStateMachine()
        self.machine.add_listener(navigation.on_phase_change)
        if capture is not None:
            self.machine.register_cleanup_handler("capture", capture.cancel)
        if synthesizer is not None:
            self.machine.register_cleanup_handler("playback", synthesizer.stop)

        self._epoch = 0
        # Text-only sessions have no voice channel
        self._voice_enabled = capture is not None and transcriber is not None
        self._cycle_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self.last_result: Optional[CycleResult] = None

    # ------------------------------------------------------------------ state

    @property
    def phase(self) -> TurnPhase:
        return self.machine.phase

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def voice_enabled(self) -> bool:
        return self._voice_enabled

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    async def _advance(self, phase: TurnPhase, epoch: int, component: str = "coordinator") -> bool:
        """Transition only while epoch is still current."""
        return await self.machine.transition_to(
            phase, component, metadata={'epoch': epoch},
            guard=lambda: self._is_current(epoch),
        )

    async def _halt_audio(self):
        if self.capture is not None and self.capture.is_recording:
            await self.capture.cancel()
        if self.synthesizer is not None:
            await self.synthesizer.stop()

    def _notify(self, kind: NoticeKind, message: str, dismissible: bool = True):
        self.navigation.show_notice(Notice(kind=kind, message=message, dismissible=dismissible))

    # ------------------------------------------------------------ operations

    async def start_capture(self) -> bool:
        """
        Begin recording.

        From PLAYING this is a barge-in: playback stops at once and the
        coordinator moves straight to CAPTURING. Ignored in any other busy phase.

        Returns:
            True if recording started
        """
        phase = self.phase
        if not self._voice_enabled:
            self._notify(NoticeKind.PERMISSION_DENIED, PERMISSION_MESSAGE, dismissible=False)
            return False
        if phase not in (TurnPhase.IDLE, TurnPhase.PLAYING):
            logger.debug(f"start_capture ignored in {phase.name}")
            return False

        if phase == TurnPhase.PLAYING:
            self._epoch += 1
            logger.info("✋ Barge-in: stopping reply playback")
            await self.synthesizer.stop()

        try:
            await self.capture.start()
        except PermissionDenied as e:
            await self._handle_permission_denied(e)
            return False

        self._epoch += 1
        try:
            await self.machine.transition_to(TurnPhase.CAPTURING, "capture", metadata={'epoch': self._epoch})
        except InvalidTransition:
            # A crisis interrupt or shutdown moved the phase while the mic opened
            await self.capture.cancel()
            return False
        return True

    async def _handle_permission_denied(self, error: PermissionDenied):
        logger.warning(f"🎙️  {error}")
        self._voice_enabled = False
        if self.phase != TurnPhase.IDLE:
            await self.machine.reset("permission denied")
        self._notify(NoticeKind.PERMISSION_DENIED, PERMISSION_MESSAGE, dismissible=False)

    def grant_microphone_permission(self) -> None:
        """Re-enable the voice channel after the user granted access."""
        self._voice_enabled = self.capture is not None and self.transcriber is not None

    async def stop_capture(self) -> Optional[asyncio.Task]:
        """
        Finish recording and run the rest of the cycle in the background.

        Returns:
            The cycle task (resolves to a CycleResult), or None if not capturing
        """
        if self.phase != TurnPhase.CAPTURING:
            logger.debug(f"stop_capture ignored in {self.phase.name}")
            return None

        epoch = self._epoch
        audio = await self.capture.stop()
        if not await self._advance(TurnPhase.TRANSCRIBING, epoch, "transcription"):
            return None

        self._cycle_task = asyncio.create_task(self._voice_cycle(audio, epoch), name=f"cycle-{epoch}")
        return self._cycle_task

    async def cancel_capture(self) -> bool:
        """Discard the current recording and return to IDLE."""
        if self.phase != TurnPhase.CAPTURING:
            return False
        self._epoch += 1
        await self.capture.cancel()
        await self.machine.transition_to(TurnPhase.IDLE, "capture", metadata={'reason': 'cancel'})
        return True

    async def submit_text(self, text: str, speak: bool = False) -> Optional[asyncio.Task]:
        """
        Run a cycle for a typed message.

        Args:
            text: The message
            speak: Also synthesize and play the reply

        Returns:
            The cycle task, or None if busy or the text is blank
        """
        text = (text or "").strip()
        if not text:
            return None
        if self.phase != TurnPhase.IDLE:
            logger.debug(f"submit_text ignored in {self.phase.name}")
            return None

        self._epoch += 1
        epoch = self._epoch
        await self._advance(TurnPhase.SCREENING, epoch, "screening")
        self._cycle_task = asyncio.create_task(self._text_cycle(text, epoch, speak), name=f"cycle-{epoch}")
        return self._cycle_task

    async def acknowledge_error(self) -> bool:
        """Leave the ERROR phase."""
        if self.phase != TurnPhase.ERROR:
            return False
        await self.machine.transition_to(TurnPhase.IDLE, "coordinator", metadata={'reason': 'acknowledged'})
        return True

    async def force_crisis_interrupt(self, screen: Optional[ScreenResult] = None) -> None:
        """Abort whatever is happening and redirect to emergency resources."""
        self._epoch += 1
        await self._interrupt_and_redirect(screen)

    async def _interrupt_and_redirect(self, screen: Optional[ScreenResult]):
        logger.critical("🆘 Crisis interrupt")
        await self._halt_audio()
        await self.machine.reset("crisis")
        self.navigation.redirect_to_emergency(screen)

    async def shutdown(self) -> None:
        """Stop capture, playback and any running cycle."""
        self._epoch += 1
        await self._halt_audio()

        tasks = [t for t in list(self._background) + [self._cycle_task] if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._background.clear()
        self._cycle_task = None
        await self.machine.reset("shutdown")

    # ---------------------------------------------------------------- cycles

    def _partial_handler(self, epoch: int) -> Callable[[str], None]:
        def on_partial(text: str):
            if not self._is_current(epoch):
                return
            self.navigation.on_partial_transcript(text)
            result = self.screen(text)
            if result.crisis_tier == CrisisTier.CRITICAL:
                # Invalidate the cycle now so later partials are ignored
                self._epoch += 1
                task = asyncio.ensure_future(self._interrupt_and_redirect(result))
                self._background.add(task)
                task.add_done_callback(self._background.discard)
        return on_partial

    async def _voice_cycle(self, audio: CapturedAudio, epoch: int) -> CycleResult:
        current_cycle.set(epoch)
        result = CycleResult(epoch=epoch)
        try:
            await self.journal.ensure_session()
            try:
                transcription = await self.transcriber.transcribe(
                    audio, on_partial=self._partial_handler(epoch)
                )
            except NoSpeechDetected:
                result.no_speech = True
                if self._is_current(epoch):
                    self._notify(NoticeKind.NO_SPEECH, NO_SPEECH_MESSAGE)
                    await self._advance(TurnPhase.IDLE, epoch)
                return self._finish(result)
            except TranscriptionError as e:
                result.error = str(e)
                if self._is_current(epoch):
                    self._notify(NoticeKind.TRANSCRIPTION_ERROR, TRANSCRIPTION_ERROR_MESSAGE)
                    await self._advance(TurnPhase.IDLE, epoch)
                return self._finish(result)

            if not self._is_current(epoch):
                result.discarded = True
                return self._finish(result)

            result.transcript = transcription.text
            await self.journal.record_transcription(transcription.text)

            if not await self._advance(TurnPhase.SCREENING, epoch, "screening"):
                result.discarded = True
                return self._finish(result)
            await self._respond(transcription.text, epoch, result, speak=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._fail(e, epoch, result)
        return self._finish(result)

    async def _text_cycle(self, text: str, epoch: int, speak: bool) -> CycleResult:
        current_cycle.set(epoch)
        result = CycleResult(epoch=epoch, transcript=text)
        try:
            await self.journal.ensure_session()
            await self._respond(text, epoch, result, speak=speak)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._fail(e, epoch, result)
        return self._finish(result)

    async def _respond(self, text: str, epoch: int, result: CycleResult, speak: bool):
        """SCREENING onwards."""
        screen = self.screen(text)
        result.screen = screen
        await self.journal.record_user(text, screen)

        if screen.crisis_tier == CrisisTier.CRITICAL:
            logger.critical(f"🆘 Critical content detected ('{screen.matched_phrase}')")
            result.redirected = True
            if await self._advance(TurnPhase.IDLE, epoch):
                self.navigation.redirect_to_emergency(screen)
            return
        if screen.crisis_tier == CrisisTier.ADVISORY:
            logger.warning(f"💛 Advisory content detected ('{screen.matched_phrase}')")
            self.navigation.show_crisis_banner(screen)

        if not await self._advance(TurnPhase.GENERATING, epoch, "completion"):
            result.discarded = True
            return
        reply = await self.replies.generate(self.journal.history_messages(), self.preferences)
        if not self._is_current(epoch):
            result.discarded = True
            return
        result.reply = reply
        await self.journal.record_assistant(reply)

        if not speak or self.synthesizer is None:
            await self._advance(TurnPhase.IDLE, epoch)
            return

        if not await self._advance(TurnPhase.SYNTHESIZING, epoch, "synthesis"):
            result.discarded = True
            return
        try:
            audio = await self.synthesizer.synthesize(reply)
            if not await self._advance(TurnPhase.PLAYING, epoch, "playback"):
                result.discarded = True
                return
            # Phase listeners may have yielded; a barge-in since then owns the output
            if not self._is_current(epoch):
                result.interrupted = True
                return
            completed = await self.synthesizer.play(audio, guard=lambda: self._is_current(epoch))
        except SynthesisError as e:
            result.error = str(e)
            if self._is_current(epoch):
                self._notify(NoticeKind.SYNTHESIS_ERROR, SYNTHESIS_ERROR_MESSAGE)
                await self._advance(TurnPhase.IDLE, epoch)
            return

        if not completed or not self._is_current(epoch):
            result.interrupted = True
            return
        result.spoken = True
        await self._advance(TurnPhase.IDLE, epoch)

    async def _fail(self, error: Exception, epoch: int, result: CycleResult):
        result.error = str(error) or type(error).__name__
        if not self._is_current(epoch):
            result.discarded = True
            return
        await self.error_handler.handle_error(ComponentError(
            component="coordinator",
            severity=ErrorSeverity.FATAL,
            message=f"Cycle failed in {self.phase.name}",
            exception=error,
            context={'epoch': epoch},
        ))
        try:
            await self._advance(TurnPhase.ERROR, epoch)
        except InvalidTransition:
            await self.machine.reset("unrecoverable error")
            return
        self._notify(NoticeKind.UNEXPECTED_ERROR, UNEXPECTED_ERROR_MESSAGE, dismissible=False)

    def _finish(self, result: CycleResult) -> CycleResult:
        self.last_result = result
        return result
