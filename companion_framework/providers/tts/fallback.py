"""
Cloud-first speech synthesis with sticky degradation to the local engine.
"""

from typing import Callable, Optional

from ...interfaces.text_to_speech import TextToSpeechInterface
from ...models.data_models import AudioOutput, ProviderState, ProviderVariant, Capability
from ...utils.error_handling import (
    CompanionError,
    DEGRADING_ERRORS,
    NetworkFailure,
    SynthesisError,
)
from ...utils.logging_config import get_logger
from ...utils.playback import PlaybackManager
from ...utils.prosody import clean_text


logger = get_logger("tts")


class FallbackSynthesizer:
    """
    Speaks replies through the cloud voice, falling back to the local one.

    All playback goes through the shared PlaybackManager.
    """

    def __init__(self,
                 cloud: Optional[TextToSpeechInterface],
                 local: Optional[TextToSpeechInterface],
                 playback: Optional[PlaybackManager] = None,
                 state: Optional[ProviderState] = None):
        self.cloud = cloud
        self.local = local
        self.playback = playback or PlaybackManager()
        self.state = state or ProviderState(Capability.SYNTHESIS)
        if cloud is None and not self.state.degraded:
            self.state.degrade()

    async def initialize(self) -> bool:
        ok = False
        if self.cloud is not None:
            ok = await self.cloud.initialize() or ok
        if self.local is not None:
            ok = await self.local.initialize() or ok
        return ok

    async def synthesize(self, text: str) -> AudioOutput:
        """
        Clean reply text and synthesize it.

        Raises:
            SynthesisError: Nothing to speak, or neither variant succeeded
        """
        cleaned = clean_text(text)
        if not cleaned:
            raise SynthesisError("Nothing to speak")

        if self.state.active == ProviderVariant.CLOUD and self.cloud is not None:
            try:
                return await self.cloud.synthesize(cleaned)
            except DEGRADING_ERRORS as e:
                if self.state.degrade():
                    logger.warning(f"☁️  Cloud speech degraded ({e.kind}); using local voice for this session")
            except NetworkFailure as e:
                logger.warning(f"☁️  Cloud speech unavailable ({e}); using local voice for this reply")
            except CompanionError as e:
                logger.warning(f"☁️  Cloud speech failed ({e.kind}); using local voice for this reply")

        return await self._synthesize_local(cleaned)

    async def _synthesize_local(self, text: str) -> AudioOutput:
        if self.local is None:
            raise SynthesisError("No local voice available")
        try:
            return await self.local.synthesize(text)
        except SynthesisError:
            raise
        except CompanionError as e:
            raise SynthesisError(f"Local synthesis failed: {e}") from e

    def _provider_for(self, audio: AudioOutput) -> TextToSpeechInterface:
        if audio.provider == ProviderVariant.CLOUD and self.cloud is not None:
            return self.cloud
        if self.local is None:
            raise SynthesisError("No local voice available")
        return self.local

    async def play(self, audio: AudioOutput, guard: Optional[Callable[[], bool]] = None) -> bool:
        """
        Play synthesized audio, exclusively.

        A cloud clip that cannot be played is re-spoken with the local voice.

        Args:
            audio: Output of synthesize()
            guard: Checked after the output is claimed; False skips playback

        Returns:
            True if playback completed, False if it was interrupted or skipped
        """
        provider = self._provider_for(audio)
        try:
            return await self.playback.play(provider, audio, guard=guard)
        except SynthesisError as e:
            if provider is self.local:
                raise
            logger.warning(f"Cloud audio playback failed ({e}); speaking locally")
        local_audio = await self._synthesize_local(audio.metadata.get('text', ''))
        return await self.playback.play(self.local, local_audio, guard=guard)

    async def stop(self) -> None:
        await self.playback.stop()

    async def cleanup(self) -> None:
        await self.playback.stop()
        if self.cloud is not None:
            await self.cloud.cleanup()
        if self.local is not None:
            await self.local.cleanup()
