"""
Pytest configuration and shared fakes for companion framework tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from companion_framework.interfaces import (  # noqa: E402
    AudioCaptureInterface,
    CompletionInterface,
    NavigationInterface,
    TextToSpeechInterface,
    TranscriptionInterface,
)
from companion_framework.models.data_models import (  # noqa: E402
    AudioFormat,
    AudioOutput,
    CapturedAudio,
    ProviderVariant,
    TranscriptionResult,
)
from companion_framework.providers.session_store.memory_store import InMemorySessionStore  # noqa: E402
from companion_framework.providers.transcription.fallback import FallbackTranscriber  # noqa: E402
from companion_framework.providers.tts.fallback import FallbackSynthesizer  # noqa: E402
from companion_framework.reply_generator import ReplyGenerator  # noqa: E402
from companion_framework.utils.error_handling import PermissionDenied, PersistenceFailure  # noqa: E402
from companion_framework.utils.session_journal import SessionJournal  # noqa: E402


class FakeCapture(AudioCaptureInterface):
    """Microphone that records a fixed buffer."""

    def __init__(self, audio: bytes = b"RIFF-fake-wav", deny: bool = False):
        self.audio = audio
        self.deny = deny
        self._recording = False
        self.cancelled = 0

    async def start(self) -> None:
        if self.deny:
            raise PermissionDenied("Microphone access denied")
        self._recording = True

    async def stop(self) -> CapturedAudio:
        self._recording = False
        return CapturedAudio(audio_data=self.audio, duration=1.0)

    async def cancel(self) -> None:
        self._recording = False
        self.cancelled += 1

    @property
    def is_recording(self) -> bool:
        return self._recording


class FakeTranscriber(TranscriptionInterface):
    """
    Returns scripted results. Each entry is a transcript string or an
    exception instance to raise.
    """

    def __init__(self, variant: ProviderVariant, script: Optional[list] = None,
                 partials: Optional[List[str]] = None, gate: Optional[asyncio.Event] = None):
        self.variant = variant
        self.script = list(script or [])
        self.partials = partials or []
        self.gate = gate
        self.calls = 0

    async def initialize(self) -> bool:
        return True

    async def transcribe(self, audio, on_partial=None) -> TranscriptionResult:
        self.calls += 1
        for text in self.partials:
            if on_partial is not None:
                on_partial(text)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.script.pop(0) if self.script else "hello there"
        if isinstance(outcome, Exception):
            raise outcome
        return TranscriptionResult(text=outcome, provider=self.variant)

    async def cleanup(self) -> None:
        pass


class FakeTTS(TextToSpeechInterface):
    """
    Voice whose playback lasts until finish() or stop() is called,
    or returns at once when auto_finish is set.
    """

    def __init__(self, variant: ProviderVariant, fail_with: Optional[Exception] = None,
                 auto_finish: bool = True, play_error: Optional[Exception] = None):
        self.variant = variant
        self.fail_with = fail_with
        self.play_error = play_error
        self.auto_finish = auto_finish
        self.synthesized: List[str] = []
        self.played: List[AudioOutput] = []
        self.stops = 0
        self.playing = asyncio.Event()
        self._done: Optional[asyncio.Event] = None

    async def initialize(self) -> bool:
        return True

    async def synthesize(self, text: str, voice: Optional[str] = None) -> AudioOutput:
        self.synthesized.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        return AudioOutput(
            audio_data=b"audio",
            format=AudioFormat.MP3,
            sample_rate=24000,
            provider=self.variant,
            metadata={'text': text},
        )

    async def play(self, audio: AudioOutput) -> None:
        self.played.append(audio)
        if self.play_error is not None:
            raise self.play_error
        if self.auto_finish:
            return
        self._done = asyncio.Event()
        self.playing.set()
        await self._done.wait()

    def finish(self):
        if self._done is not None:
            self._done.set()

    async def stop(self) -> None:
        self.stops += 1
        if self._done is not None:
            self._done.set()

    async def cleanup(self) -> None:
        pass


class FakeCompletion(CompletionInterface):
    """Completion service with a canned reply, error or delay."""

    def __init__(self, reply: str = "That sounds hard. I'm here with you.",
                 error: Optional[Exception] = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.requests: List[list] = []

    async def initialize(self) -> bool:
        return True

    async def complete(self, messages, max_tokens, temperature) -> str:
        self.requests.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    async def cleanup(self) -> None:
        pass


class RecordingNavigation(NavigationInterface):
    """Collects everything the coordinator reports."""

    def __init__(self):
        self.phases = []
        self.partials: List[str] = []
        self.banners = []
        self.redirects = []
        self.notices = []

    def on_phase_change(self, previous, phase) -> None:
        self.phases.append(phase)

    def on_partial_transcript(self, text: str) -> None:
        self.partials.append(text)

    def show_crisis_banner(self, screen) -> None:
        self.banners.append(screen)

    def redirect_to_emergency(self, screen) -> None:
        self.redirects.append(screen)

    def show_notice(self, notice) -> None:
        self.notices.append(notice)


class HoldingNavigation(RecordingNavigation):
    """Async phase listener that blocks on entering hold_phase until release is set."""

    def __init__(self, hold_phase):
        super().__init__()
        self.hold_phase = hold_phase
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def on_phase_change(self, previous, phase) -> None:
        self.phases.append(phase)
        if phase == self.hold_phase and not self.entered.is_set():
            self.entered.set()
            await self.release.wait()


class FailingStore(InMemorySessionStore):
    """Store whose selected operations raise PersistenceFailure."""

    def __init__(self, fail_on=("append_turn",)):
        super().__init__()
        self.fail_on = set(fail_on)

    async def create_session(self, participant_id, channel):
        if "create_session" in self.fail_on:
            raise PersistenceFailure("insert failed", status=503)
        return await super().create_session(participant_id, channel)

    async def append_turn(self, session_id, turn):
        if "append_turn" in self.fail_on:
            raise PersistenceFailure("insert failed", status=503)
        return await super().append_turn(session_id, turn)

    async def clear_all(self, participant_id):
        if "clear_all" in self.fail_on:
            raise PersistenceFailure("delete failed", status=503)
        return await super().clear_all(participant_id)


@pytest.fixture
def navigation():
    return RecordingNavigation()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def make_pipeline(navigation, store):
    """
    Build the collaborators of a TurnCoordinator from fakes.

    Returns a factory taking optional overrides and returning a dict.
    """
    def build(capture=None, cloud_stt=None, local_stt=None, cloud_tts=None, local_tts=None,
              completion=None, session_store=None, timeout=1.0):
        parts = {
            'capture': capture or FakeCapture(),
            'cloud_stt': cloud_stt or FakeTranscriber(ProviderVariant.CLOUD),
            'local_stt': local_stt or FakeTranscriber(ProviderVariant.LOCAL),
            'cloud_tts': cloud_tts or FakeTTS(ProviderVariant.CLOUD),
            'local_tts': local_tts or FakeTTS(ProviderVariant.LOCAL),
            'completion': completion or FakeCompletion(),
            'store': session_store or store,
            'navigation': navigation,
        }
        parts['transcriber'] = FallbackTranscriber(parts['cloud_stt'], parts['local_stt'])
        parts['synthesizer'] = FallbackSynthesizer(parts['cloud_tts'], parts['local_tts'])
        parts['replies'] = ReplyGenerator(parts['completion'], timeout=timeout)
        parts['journal'] = SessionJournal(parts['store'], "participant-1")
        return parts
    return build
