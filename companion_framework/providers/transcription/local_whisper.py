"""
On-device transcription with faster-whisper.

The model is loaded lazily on first use and decoding runs in the default
executor. Segments are reported through on_partial as they are decoded.
"""

import asyncio
import io
import math
import threading
from typing import Dict, Any, Optional

from faster_whisper import WhisperModel

from ...interfaces.transcription import TranscriptionInterface, PartialCallback
from ...models.data_models import CapturedAudio, TranscriptionResult, ProviderVariant
from ...utils.error_handling import NetworkFailure, NoSpeechDetected
from ...utils.logging_config import get_logger


logger = get_logger("transcription")

DEFAULT_MODEL = "small.en"
DEVICE = "cpu"
COMPUTE_TYPE = "int8"


class LocalWhisperProvider(TranscriptionInterface):
    """
    Local transcription variant.

    Configuration options:
    - model: faster-whisper model size or path (default: "small.en")
    - device: "cpu" or "cuda" (default: "cpu")
    - compute_type: Quantization (default: "int8")
    - language: Language code passed to the decoder (default: "en")
    """

    variant = ProviderVariant.LOCAL

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.model_name = config.get('model', DEFAULT_MODEL)
        self.device = config.get('device', DEVICE)
        self.compute_type = config.get('compute_type', COMPUTE_TYPE)
        self.language = config.get('language', 'en')

        self._model: Optional[WhisperModel] = None
        self._load_error: Optional[str] = None
        self._model_lock = threading.Lock()

    @property
    def is_available(self) -> bool:
        return self._load_error is None

    async def initialize(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._ensure_model)
        except NetworkFailure:
            return False
        return True

    def _ensure_model(self) -> WhisperModel:
        """Load the model once (runs in executor thread)."""
        with self._model_lock:
            if self._model is not None:
                return self._model
            if self._load_error is not None:
                raise NetworkFailure(f"No local recognizer: {self._load_error}")
            try:
                logger.info(f"📦 Loading faster-whisper model '{self.model_name}'...")
                self._model = WhisperModel(
                    self.model_name, device=self.device, compute_type=self.compute_type
                )
            except (RuntimeError, OSError, ValueError) as e:
                self._load_error = str(e)
                raise NetworkFailure(f"No local recognizer: {e}") from e
            logger.info("✅ faster-whisper model loaded")
            return self._model

    async def transcribe(self,
                         audio: CapturedAudio,
                         on_partial: Optional[PartialCallback] = None) -> TranscriptionResult:
        if audio.is_empty:
            raise NoSpeechDetected("Empty recording")

        loop = asyncio.get_running_loop()

        def emit_partial(text: str):
            if on_partial is not None:
                loop.call_soon_threadsafe(on_partial, text)

        text, confidence, language = await loop.run_in_executor(
            None, self._decode, audio.audio_data, emit_partial
        )
        if not text:
            raise NoSpeechDetected("No speech in recording")

        logger.info(f"📝 Transcribed locally: {len(text.split())} words")
        return TranscriptionResult(
            text=text,
            is_final=True,
            confidence=confidence,
            language=language,
            provider=self.variant,
        )

    def _decode(self, audio_bytes: bytes, emit_partial):
        """Run the decoder (executor thread)."""
        model = self._ensure_model()
        try:
            segments, info = model.transcribe(
                io.BytesIO(audio_bytes), language=self.language, word_timestamps=False
            )
            pieces = []
            logprobs = []
            for segment in segments:
                piece = segment.text.strip()
                if not piece:
                    continue
                pieces.append(piece)
                logprobs.append(float(segment.avg_logprob))
                emit_partial(' '.join(pieces))
        except (RuntimeError, ValueError) as e:
            raise NetworkFailure(f"Local decoding failed: {e}") from e

        confidence = math.exp(sum(logprobs) / len(logprobs)) if logprobs else None
        return ' '.join(pieces).strip(), confidence, getattr(info, 'language', self.language)

    async def cleanup(self) -> None:
        self._model = None
