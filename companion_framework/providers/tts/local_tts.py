"""
Local Text-to-Speech provider using pyttsx3.
Offline speech spoken as a queue of sentence utterances.
"""

import asyncio
import platform
import threading
from typing import Optional, Dict, Any, List

import pyttsx3

from ...interfaces.text_to_speech import TextToSpeechInterface
from ...models.data_models import AudioOutput, AudioFormat, ProviderVariant, Utterance
from ...utils.error_handling import SynthesisError
from ...utils.logging_config import get_logger
from ...utils.prosody import build_utterances, local_prosody, DEFAULT_MAX_UTTERANCES


logger = get_logger("tts")

# say pitch-base offset for a pitch factor change of 1.0
PBAS_PER_PITCH_UNIT = 40


class LocalTTSProvider(TextToSpeechInterface):
    """
    Local TTS implementation using pyttsx3 (or macOS 'say').

    Features:
    - No network, no credentials
    - Each utterance finishes before the next starts
    - Per-utterance rate and pitch jitter. Pitch reaches the macOS say voice
      through its [[pbas]] command; pyttsx3 drivers expose rate and volume only
    - Instant interruption between and during utterances

    Configuration options:
    - voice_id: System voice index (default: 0)
    - base_wpm: Words per minute at rate 1.0 (default: 175)
    - volume: Volume 0.0-1.0 (default: 0.9)
    - max_utterances: Queue bound per reply (default: 8)
    """

    variant = ProviderVariant.LOCAL

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        # pyttsx3's NSSpeech driver is unreliable off the main thread on macOS
        self.use_macos_say = config.get('use_macos_say', platform.system() == 'Darwin')

        self.voice_id = config.get('voice_id', 0)
        self.base_wpm = config.get('base_wpm', 175)
        self.volume = config.get('volume', 0.9)
        self.max_utterances = config.get('max_utterances', DEFAULT_MAX_UTTERANCES)

        self._stop_playback = threading.Event()
        self._engine = None
        self._engine_lock = threading.Lock()
        self._say_process: Optional[asyncio.subprocess.Process] = None

    async def initialize(self) -> bool:
        # Engine is created per utterance in the playback thread
        logger.info(f"✅ Local TTS ready ({'macOS say' if self.use_macos_say else 'pyttsx3'})")
        return True

    async def synthesize(self,
                         text: str,
                         voice: Optional[str] = None) -> AudioOutput:
        """Plan the utterance queue. Audio is produced during play()."""
        hints = local_prosody(text)
        utterances = build_utterances(text, hints, max_utterances=self.max_utterances)
        if not utterances:
            raise SynthesisError("Nothing to speak")

        return AudioOutput(
            audio_data=text.encode('utf-8'),
            format=AudioFormat.TEXT,
            sample_rate=22050,
            provider=self.variant,
            voice=voice or f"system_voice_{self.voice_id}",
            utterances=utterances,
            metadata={'text': text, 'rate': hints.rate, 'pitch': hints.pitch},
        )

    def prepare_playback(self) -> None:
        self._stop_playback.clear()

    async def play(self, audio: AudioOutput) -> None:
        loop = asyncio.get_running_loop()

        for index, utterance in enumerate(audio.utterances):
            if self._stop_playback.is_set():
                logger.info(f"🎤 Speech interrupted before utterance {index + 1}")
                return
            if self.use_macos_say:
                await self._speak_with_say(utterance)
            else:
                await loop.run_in_executor(None, self._speak_with_engine, utterance)

    def _wpm(self, utterance: Utterance) -> int:
        return max(80, int(self.base_wpm * utterance.rate))

    def say_command(self, utterance: Utterance) -> List[str]:
        """Arguments for macOS say, with the utterance pitch as a [[pbas]] offset."""
        offset = (utterance.pitch - 1.0) * PBAS_PER_PITCH_UNIT
        return ['say', '-r', str(self._wpm(utterance)), f"[[pbas {offset:+.1f}]] {utterance.text}"]

    async def _speak_with_say(self, utterance: Utterance):
        try:
            self._say_process = await asyncio.create_subprocess_exec(
                *self.say_command(utterance),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise SynthesisError(f"macOS say failed: {e}") from e
        try:
            if self._stop_playback.is_set():
                # stop() ran while say was starting
                self._terminate_say()
            await self._say_process.wait()
        finally:
            self._say_process = None

    def _terminate_say(self):
        process = self._say_process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass

    def _speak_with_engine(self, utterance: Utterance):
        """Speak one utterance (runs in executor thread)."""
        try:
            engine = pyttsx3.init()
        except (RuntimeError, OSError) as e:
            raise SynthesisError(f"pyttsx3 unavailable: {e}") from e

        voices = engine.getProperty('voices')
        if voices and 0 <= self.voice_id < len(voices):
            engine.setProperty('voice', voices[self.voice_id].id)
        engine.setProperty('rate', self._wpm(utterance))
        engine.setProperty('volume', self.volume)

        with self._engine_lock:
            if self._stop_playback.is_set():
                return
            self._engine = engine
        try:
            engine.say(utterance.text)
            engine.runAndWait()
        finally:
            with self._engine_lock:
                self._engine = None

    async def stop(self) -> None:
        """Stop audio playback immediately."""
        self._stop_playback.set()

        with self._engine_lock:
            engine = self._engine
        if engine is not None:
            engine.stop()

        self._terminate_say()

    async def cleanup(self) -> None:
        await self.stop()
