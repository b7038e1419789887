"""
Abstract interface for text-to-speech providers.
"""

from abc import ABC, abstractmethod
from typing import Optional
from ..models.data_models import AudioOutput, ProviderVariant


class TextToSpeechInterface(ABC):
    """Abstract base class for all text-to-speech providers."""

    variant: ProviderVariant = ProviderVariant.CLOUD

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the TTS provider.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def synthesize(self,
                         text: str,
                         voice: Optional[str] = None) -> AudioOutput:
        """
        Synthesize speech from already-cleaned reply text.

        Prosody is derived by the provider from the text itself.

        Args:
            text: Text to synthesize
            voice: Optional voice identifier

        Returns:
            AudioOutput: Encoded audio (cloud) or a queue of utterances (local)

        Raises:
            AuthFailure, RateLimited: The service refused the request
            NetworkFailure: Transport failure or timeout
        """
        pass

    def prepare_playback(self) -> None:
        """
        Clear an earlier stop before the next play().

        PlaybackManager calls this while it holds the output. A stop() that
        arrives after it, even before play() has started any audio, must
        still prevent or end that playback.
        """
        pass

    @abstractmethod
    async def play(self, audio: AudioOutput) -> None:
        """
        Play synthesized audio until it finishes or is stopped.

        Args:
            audio: Output of synthesize()
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop any playback started by this provider immediately."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the TTS provider."""
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'batch': True,
            'voices': [],
            'audio_formats': ['mp3'],
            'speed_range': (0.5, 1.5),
        }
