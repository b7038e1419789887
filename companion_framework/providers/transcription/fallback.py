"""
Cloud-first transcription with sticky degradation to the local variant.
"""

from typing import Optional

from ...interfaces.transcription import TranscriptionInterface, PartialCallback
from ...models.data_models import (
    CapturedAudio,
    TranscriptionResult,
    ProviderState,
    ProviderVariant,
    Capability,
)
from ...utils.error_handling import (
    CompanionError,
    DEGRADING_ERRORS,
    NetworkFailure,
    NoSpeechDetected,
    TranscriptionError,
)
from ...utils.logging_config import get_logger


logger = get_logger("transcription")


class FallbackTranscriber:
    """
    Owns a cloud/local provider pair and the session's ProviderState.

    - auth / rate-limit on cloud: degrade for the rest of the session and
      retry the same audio locally
    - network failure on cloud: retry locally for this capture only
    - no speech: returned to the caller as NoSpeechDetected, no switch
    - any failure on local: TranscriptionError
    """

    def __init__(self,
                 cloud: Optional[TranscriptionInterface],
                 local: Optional[TranscriptionInterface],
                 state: Optional[ProviderState] = None):
        self.cloud = cloud
        self.local = local
        self.state = state or ProviderState(Capability.TRANSCRIPTION)
        if cloud is None and not self.state.degraded:
            # No credentials: start on the local variant
            self.state.degrade()

    async def initialize(self) -> bool:
        ok = False
        if self.cloud is not None:
            ok = await self.cloud.initialize() or ok
        if self.local is not None:
            ok = await self.local.initialize() or ok
        return ok

    async def transcribe(self,
                         audio: CapturedAudio,
                         on_partial: Optional[PartialCallback] = None) -> TranscriptionResult:
        """
        Transcribe one capture.

        Raises:
            NoSpeechDetected: Empty transcript (soft outcome)
            TranscriptionError: Neither variant could produce a transcript
        """
        if self.state.active == ProviderVariant.CLOUD and self.cloud is not None:
            try:
                return await self.cloud.transcribe(audio)
            except NoSpeechDetected:
                raise
            except DEGRADING_ERRORS as e:
                if self.state.degrade():
                    logger.warning(f"☁️  Cloud transcription degraded ({e.kind}); using local for this session")
            except NetworkFailure as e:
                logger.warning(f"☁️  Cloud transcription unavailable ({e}); using local for this capture")
            except CompanionError as e:
                logger.warning(f"☁️  Cloud transcription failed ({e.kind}); using local for this capture")

        return await self._transcribe_local(audio, on_partial)

    async def _transcribe_local(self, audio: CapturedAudio,
                                on_partial: Optional[PartialCallback]) -> TranscriptionResult:
        if self.local is None or not self.local.is_available:
            raise TranscriptionError("No speech recognizer available")
        try:
            return await self.local.transcribe(audio, on_partial=on_partial)
        except NoSpeechDetected:
            raise
        except CompanionError as e:
            raise TranscriptionError(f"Local transcription failed: {e}") from e

    async def cleanup(self) -> None:
        if self.cloud is not None:
            await self.cloud.cleanup()
        if self.local is not None:
            await self.local.cleanup()
