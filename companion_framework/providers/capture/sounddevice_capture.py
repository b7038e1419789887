"""
Push-to-talk microphone capture using sounddevice.

ARCHITECTURE:
- sounddevice calls back on its own audio thread
- Frames are copied and handed to the event loop with call_soon_threadsafe
- stop() packs the buffered int16 frames into a WAV container
"""

import asyncio
import io
import threading
import wave
from typing import Dict, Any, List, Optional

import numpy as np
import sounddevice as sd

from ...interfaces.capture import AudioCaptureInterface
from ...models.data_models import CapturedAudio
from ...utils.error_handling import PermissionDenied
from ...utils.logging_config import get_logger


logger = get_logger("capture")


class SoundDeviceCapture(AudioCaptureInterface):
    """
    Records mono 16-bit PCM from the default (or configured) input device.

    Configuration options:
    - sample_rate: Capture rate in Hz (default: 16000)
    - device: Input device index or name (default: system default)
    - blocksize: Frames per callback (default: 1600, i.e. 100ms)
    - max_seconds: Hard cap on recording length (default: 60)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.sample_rate = config.get('sample_rate', 16000)
        self.device = config.get('device')
        self.blocksize = config.get('blocksize', 1600)
        self.max_seconds = config.get('max_seconds', 60)
        self.channels = 1

        self._stream: Optional[sd.InputStream] = None
        self._frames: List[np.ndarray] = []
        self._frame_count = 0
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_flag = threading.Event()

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status: sd.CallbackFlags):
        """Runs in sounddevice's audio thread."""
        if self._shutdown_flag.is_set():
            return
        if status:
            logger.debug(f"Audio callback status: {status}")
        if self._event_loop is None:
            return
        try:
            self._event_loop.call_soon_threadsafe(self._append_frames, indata.copy())
        except RuntimeError:
            # Loop already closed
            pass

    def _append_frames(self, frames: np.ndarray):
        if self._shutdown_flag.is_set():
            return
        if self._frame_count >= self.sample_rate * self.max_seconds:
            return
        self._frames.append(frames)
        self._frame_count += len(frames)

    async def start(self) -> None:
        if self._stream is not None:
            return

        self._event_loop = asyncio.get_running_loop()
        self._shutdown_flag.clear()
        self._frames = []
        self._frame_count = 0

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype='int16',
                blocksize=self.blocksize,
                device=self.device,
                callback=self._audio_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise PermissionDenied(f"Microphone unavailable: {e}") from e

        self._stream = stream
        logger.info("🎙️  Recording started")

    def _close_stream(self):
        self._shutdown_flag.set()
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"Error closing input stream: {e}")

    async def stop(self) -> CapturedAudio:
        self._close_stream()
        frames, self._frames = self._frames, []
        self._frame_count = 0

        if not frames:
            return CapturedAudio(audio_data=b"", sample_rate=self.sample_rate, duration=0.0)

        pcm = np.concatenate(frames).astype(np.int16)
        duration = len(pcm) / float(self.sample_rate)
        logger.info(f"🎙️  Recording stopped ({duration:.1f}s)")
        return CapturedAudio(
            audio_data=self._to_wav(pcm),
            mime_type="audio/wav",
            sample_rate=self.sample_rate,
            channels=self.channels,
            duration=duration,
        )

    async def cancel(self) -> None:
        self._close_stream()
        self._frames = []
        self._frame_count = 0
        logger.info("🎙️  Recording discarded")

    def _to_wav(self, pcm: np.ndarray) -> bytes:
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(2)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm.tobytes())
        return buffer.getvalue()
