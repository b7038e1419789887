"""
Single-stream audio playback.

PlaybackManager is the one place that starts reply audio. Starting a new
playback stops the current one first, so at most one stream is audible.
A subprocess-based player (ffplay, or afplay on macOS) handles encoded audio.
"""

import asyncio
import platform
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional

from ..interfaces.text_to_speech import TextToSpeechInterface
from ..models.data_models import AudioOutput
from .error_handling import SynthesisError
from .logging_config import get_logger


logger = get_logger("playback")


class AudioFilePlayer:
    """
    Plays an encoded audio buffer through an external player process.

    A stop() is remembered until the next prepare(), so a stop that lands
    while the player process is still being spawned still ends playback.
    """

    def __init__(self, player: Optional[str] = None):
        self._player = player
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stopped = False

    def _command(self, path: str):
        player = self._player
        if player is None:
            if platform.system() == 'Darwin' and shutil.which('afplay'):
                player = 'afplay'
            elif shutil.which('ffplay'):
                player = 'ffplay'
        if player == 'afplay':
            return ['afplay', path]
        if player == 'ffplay':
            return ['ffplay', '-nodisp', '-autoexit', '-loglevel', 'quiet', path]
        raise SynthesisError("No audio player found (install ffmpeg for ffplay)")

    def prepare(self) -> None:
        """Clear an earlier stop before the next play()."""
        self._stopped = False

    async def play(self, audio_data: bytes, suffix: str = ".mp3") -> bool:
        """
        Play to completion.

        Returns:
            True if playback finished, False if it was stopped
        """
        if self._stopped:
            return False
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(audio_data)
            tmp_path = tmp.name

        try:
            command = self._command(tmp_path)
            try:
                self._process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as e:
                raise SynthesisError(f"Failed to start '{command[0]}': {e}") from e

            if self._stopped:
                # stop() ran while the process was starting
                await self._terminate(self._process)
            await self._process.wait()
            return not self._stopped
        finally:
            self._process = None
            Path(tmp_path).unlink(missing_ok=True)

    async def stop(self) -> None:
        """Terminate the player process if one is running."""
        self._stopped = True
        process = self._process
        if process is None:
            return
        await self._terminate(process)
        logger.debug("🛑 Stopped audio player")

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process):
        if process.returncode is not None:
            return
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=1.0)
        except asyncio.TimeoutError:
            process.kill()
        except ProcessLookupError:
            pass


class PlaybackManager:
    """
    Claims the shared output for one reply at a time.

    Every play() gets a ticket; a newer ticket invalidates older ones and the
    provider that owned the older ticket is stopped.
    """

    def __init__(self):
        self._ticket = 0
        self._provider: Optional[TextToSpeechInterface] = None
        self._lock = asyncio.Lock()

    @property
    def is_playing(self) -> bool:
        return self._provider is not None

    async def play(self,
                   provider: TextToSpeechInterface,
                   audio: AudioOutput,
                   guard: Optional[Callable[[], bool]] = None) -> bool:
        """
        Stop whatever is playing, then play audio with provider.

        Args:
            provider: Voice that produced audio
            audio: Output of provider.synthesize()
            guard: Checked once the output is claimed; False skips playback

        Returns:
            True if the audio played to the end, False if it was interrupted
            or refused by guard
        """
        async with self._lock:
            await self._stop_current()
            if guard is not None and not guard():
                logger.debug("Playback skipped for a superseded reply")
                return False
            self._ticket += 1
            ticket = self._ticket
            self._provider = provider
            provider.prepare_playback()

        try:
            await provider.play(audio)
        finally:
            if self._ticket == ticket:
                self._provider = None

        return self._ticket == ticket

    async def stop(self) -> None:
        """Stop the current playback immediately. Safe when nothing plays."""
        async with self._lock:
            self._ticket += 1
            await self._stop_current()

    async def _stop_current(self):
        provider, self._provider = self._provider, None
        if provider is None:
            return
        try:
            await provider.stop()
        except SynthesisError as e:
            logger.warning(f"Error stopping playback: {e}")
        logger.info("🛑 Playback stopped")
