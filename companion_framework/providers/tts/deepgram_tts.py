"""
Deepgram Aura text-to-speech provider.
"""

import asyncio
from typing import Dict, Any, Optional

import aiohttp

from ...interfaces.text_to_speech import TextToSpeechInterface
from ...models.data_models import AudioOutput, AudioFormat, ProviderVariant
from ...utils.error_handling import NetworkFailure, classify_http_status
from ...utils.logging_config import get_logger
from ...utils.playback import AudioFilePlayer
from ...utils.prosody import cloud_prosody


logger = get_logger("tts")

DEEPGRAM_SPEAK_URL = "https://api.deepgram.com/v1/speak"


class DeepgramTTSProvider(TextToSpeechInterface):
    """
    Cloud speech through Deepgram /v1/speak, returned as MP3.

    Configuration options:
    - api_key: Deepgram API key (required)
    - voice: Voice model (default: "aura-asteria-en")
    - timeout: Request timeout in seconds (default: 15)
    - player: "ffplay" or "afplay" (default: auto-detect)
    """

    variant = ProviderVariant.CLOUD

    def __init__(self, config: Dict[str, Any]):
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("Deepgram API key is required")

        self.voice = config.get('voice', 'aura-asteria-en')
        self.timeout = config.get('timeout', 15.0)
        self.url = config.get('url', DEEPGRAM_SPEAK_URL)

        self._session: Optional[aiohttp.ClientSession] = None
        self._player = AudioFilePlayer(config.get('player'))

    async def initialize(self) -> bool:
        if not self._session or self._session.closed:
            self._session = aiohttp.ClientSession()
            logger.info("✅ Deepgram TTS session created")
        return True

    async def synthesize(self,
                         text: str,
                         voice: Optional[str] = None) -> AudioOutput:
        if not self._session or self._session.closed:
            await self.initialize()

        hints = cloud_prosody(text)
        # Aura accepts speed only; the pitch hint is reported in metadata
        params = {
            'model': voice or self.voice,
            'encoding': 'mp3',
            'speed': str(hints.rate),
        }
        headers = {
            'Authorization': f"Token {self.api_key}",
            'Content-Type': 'application/json',
        }

        try:
            async with self._session.post(
                self.url,
                params=params,
                headers=headers,
                json={'text': text},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise classify_http_status(response.status, body[:200])
                audio_data = await response.read()
        except asyncio.TimeoutError as e:
            raise NetworkFailure("Deepgram synthesis timed out", timeout=True) from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(f"Deepgram synthesis failed: {e}") from e

        if not audio_data:
            raise NetworkFailure("Deepgram returned no audio")

        logger.info(f"🔊 Synthesized {len(audio_data) / 1024:.0f} KB (speed {hints.rate})")
        return AudioOutput(
            audio_data=audio_data,
            format=AudioFormat.MP3,
            sample_rate=24000,
            provider=self.variant,
            voice=params['model'],
            metadata={'text': text, 'rate': hints.rate, 'pitch': hints.pitch},
        )

    def prepare_playback(self) -> None:
        self._player.prepare()

    async def play(self, audio: AudioOutput) -> None:
        await self._player.play(audio.audio_data, suffix=".mp3")

    async def stop(self) -> None:
        await self._player.stop()

    async def cleanup(self) -> None:
        await self.stop()
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
