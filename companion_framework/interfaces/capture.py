"""
Abstract interface for microphone capture.
"""

from abc import ABC, abstractmethod
from ..models.data_models import CapturedAudio


class AudioCaptureInterface(ABC):
    """Abstract base class for microphone recorders."""

    @abstractmethod
    async def start(self) -> None:
        """
        Acquire the microphone and begin buffering audio.

        Raises:
            PermissionDenied: Microphone access was refused or no input device exists
        """
        pass

    @abstractmethod
    async def stop(self) -> CapturedAudio:
        """
        Stop recording, release the microphone and return what was captured.

        Returns:
            CapturedAudio: Possibly empty recording
        """
        pass

    @abstractmethod
    async def cancel(self) -> None:
        """Stop recording, release the microphone and discard the buffer."""
        pass

    @property
    @abstractmethod
    def is_recording(self) -> bool:
        pass

    async def cleanup(self) -> None:
        if self.is_recording:
            await self.cancel()
