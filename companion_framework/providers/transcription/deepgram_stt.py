"""
Deepgram pre-recorded speech-to-text provider.

Posts one finished recording to /v1/listen and reads the top alternative.
"""

import asyncio
from typing import Dict, Any, Optional

import aiohttp

from ...interfaces.transcription import TranscriptionInterface, PartialCallback
from ...models.data_models import CapturedAudio, TranscriptionResult, ProviderVariant
from ...utils.error_handling import (
    NetworkFailure,
    NoSpeechDetected,
    classify_http_status,
)
from ...utils.logging_config import get_logger


logger = get_logger("transcription")

DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"


class DeepgramTranscriptionProvider(TranscriptionInterface):
    """
    Cloud transcription through Deepgram.

    Configuration options:
    - api_key: Deepgram API key (required)
    - model: Model name (default: "nova-2")
    - language: Language code (default: "en-US")
    - smart_format: Punctuation and formatting (default: True)
    - timeout: Request timeout in seconds (default: 15)
    """

    variant = ProviderVariant.CLOUD

    def __init__(self, config: Dict[str, Any]):
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("Deepgram API key is required")

        self.model = config.get('model', 'nova-2')
        self.language = config.get('language', 'en-US')
        self.smart_format = config.get('smart_format', True)
        self.timeout = config.get('timeout', 15.0)
        self.url = config.get('url', DEEPGRAM_LISTEN_URL)

        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> bool:
        """Create the persistent HTTP session."""
        if not self._session or self._session.closed:
            self._session = aiohttp.ClientSession()
            logger.info("✅ Deepgram transcription session created")
        return True

    async def transcribe(self,
                         audio: CapturedAudio,
                         on_partial: Optional[PartialCallback] = None) -> TranscriptionResult:
        if audio.is_empty:
            raise NoSpeechDetected("Empty recording")

        if not self._session or self._session.closed:
            await self.initialize()

        params = {
            'model': self.model,
            'language': self.language,
            'smart_format': 'true' if self.smart_format else 'false',
        }
        headers = {
            'Authorization': f"Token {self.api_key}",
            'Content-Type': audio.mime_type,
        }

        try:
            async with self._session.post(
                self.url,
                params=params,
                headers=headers,
                data=audio.audio_data,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise classify_http_status(response.status, body[:200])
                payload = await response.json()
        except asyncio.TimeoutError as e:
            raise NetworkFailure("Deepgram transcription timed out", timeout=True) from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(f"Deepgram transcription failed: {e}") from e

        text, confidence = self._extract(payload)
        if not text:
            raise NoSpeechDetected("No speech in recording")

        logger.info(f"📝 Transcribed {len(text.split())} words")
        return TranscriptionResult(
            text=text,
            is_final=True,
            confidence=confidence,
            language=self.language,
            provider=self.variant,
        )

    @staticmethod
    def _extract(payload: Dict[str, Any]):
        """Read results.channels[0].alternatives[0]."""
        try:
            alternative = payload['results']['channels'][0]['alternatives'][0]
        except (KeyError, IndexError, TypeError):
            return "", None
        return (alternative.get('transcript') or "").strip(), alternative.get('confidence')

    async def cleanup(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
