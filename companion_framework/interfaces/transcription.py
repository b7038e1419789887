"""
Abstract interface for transcription/speech-to-text providers.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional
from ..models.data_models import CapturedAudio, TranscriptionResult, ProviderVariant


PartialCallback = Callable[[str], None]


class TranscriptionInterface(ABC):
    """Abstract base class for all transcription providers."""

    variant: ProviderVariant = ProviderVariant.CLOUD

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the transcription provider.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def transcribe(self,
                         audio: CapturedAudio,
                         on_partial: Optional[PartialCallback] = None) -> TranscriptionResult:
        """
        Transcribe a finished recording.

        Args:
            audio: The captured audio buffer
            on_partial: Optional callback for live partial text (local engines only)

        Returns:
            TranscriptionResult: The final transcript

        Raises:
            NoSpeechDetected: The recording contained no speech
            AuthFailure, RateLimited: The service refused the request
            NetworkFailure: Transport failure, timeout, or no recognizer available
        """
        pass

    @property
    def is_available(self) -> bool:
        """Whether the provider can currently accept work."""
        return True

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the transcription provider."""
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'batch': True,
            'partials': False,
            'languages': ['en-US'],
        }
