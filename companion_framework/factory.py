"""
Factory for creating provider instances based on configuration.

Provider modules are imported on first use: the local speech stack pulls in
sounddevice, faster-whisper and pyttsx3, which need system libraries that a
text-only deployment may not have.
"""

import importlib
from typing import Dict, Any, Optional

from .interfaces import (
    AudioCaptureInterface,
    CompletionInterface,
    SessionStoreInterface,
    TextToSpeechInterface,
    TranscriptionInterface,
)
from .providers.transcription.fallback import FallbackTranscriber
from .providers.tts.fallback import FallbackSynthesizer
from .reply_generator import ReplyGenerator
from .utils.logging_config import get_logger
from .utils.playback import PlaybackManager


logger = get_logger("factory")


def _load(path: str):
    """Resolve 'module:Class' relative to this package."""
    module_name, class_name = path.split(':')
    module = importlib.import_module(module_name, package=__package__)
    return getattr(module, class_name)


class ProviderFactory:
    """Factory for creating provider instances."""

    # Provider registries ('relative.module:ClassName')
    CAPTURE_PROVIDERS = {
        'sounddevice': '.providers.capture.sounddevice_capture:SoundDeviceCapture',
    }

    TRANSCRIPTION_PROVIDERS = {
        'deepgram': '.providers.transcription.deepgram_stt:DeepgramTranscriptionProvider',
        'faster_whisper': '.providers.transcription.local_whisper:LocalWhisperProvider',
    }

    TTS_PROVIDERS = {
        'deepgram': '.providers.tts.deepgram_tts:DeepgramTTSProvider',
        'local_tts': '.providers.tts.local_tts:LocalTTSProvider',
    }

    COMPLETION_PROVIDERS = {
        'groq': '.providers.response.groq_completion:GroqCompletionProvider',
    }

    STORE_PROVIDERS = {
        'memory': '.providers.session_store.memory_store:InMemorySessionStore',
        'supabase': '.providers.session_store.supabase_store:SupabaseSessionStore',
    }

    @classmethod
    def _create(cls, registry: Dict[str, str], kind: str, provider_name: str, *args):
        if provider_name not in registry:
            available = list(registry.keys())
            raise ValueError(f"Unknown {kind} provider '{provider_name}'. Available: {available}")
        provider_class = _load(registry[provider_name])
        return provider_class(*args)

    @classmethod
    def create_capture_provider(cls, provider_name: str, config: Dict[str, Any]) -> AudioCaptureInterface:
        """
        Create a microphone capture provider.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.CAPTURE_PROVIDERS, 'capture', provider_name, config)

    @classmethod
    def create_transcription_provider(cls, provider_name: str, config: Dict[str, Any]) -> TranscriptionInterface:
        """
        Create a single transcription provider instance.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.TRANSCRIPTION_PROVIDERS, 'transcription', provider_name, config)

    @classmethod
    def create_tts_provider(cls, provider_name: str, config: Dict[str, Any]) -> TextToSpeechInterface:
        """
        Create a single TTS provider instance.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.TTS_PROVIDERS, 'TTS', provider_name, config)

    @classmethod
    def create_completion_provider(cls, provider_name: str, config: Dict[str, Any]) -> CompletionInterface:
        """
        Create a chat completion provider instance.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.COMPLETION_PROVIDERS, 'completion', provider_name, config)

    @classmethod
    def create_session_store(cls, provider_name: str, config: Dict[str, Any]) -> SessionStoreInterface:
        """
        Create the session store.

        Raises:
            ValueError: If provider name is not supported
        """
        if provider_name == 'supabase':
            return cls._create(cls.STORE_PROVIDERS, 'store', provider_name,
                               config.get('supabase_url'), config.get('supabase_key'))
        return cls._create(cls.STORE_PROVIDERS, 'store', provider_name)

    # ------------------------------------------------------------ composites

    @classmethod
    def create_transcriber(cls, config: Dict[str, Any]) -> FallbackTranscriber:
        """Cloud/local transcription pair from the 'transcription' section."""
        cloud = None
        if config.get('cloud_provider'):
            cloud = cls.create_transcription_provider(config['cloud_provider'], config.get('cloud', {}))
        local = None
        if config.get('local_provider'):
            local = cls.create_transcription_provider(config['local_provider'], config.get('local', {}))
        return FallbackTranscriber(cloud, local)

    @classmethod
    def create_synthesizer(cls, config: Dict[str, Any],
                           playback: Optional[PlaybackManager] = None) -> FallbackSynthesizer:
        """Cloud/local speech pair from the 'tts' section."""
        cloud = None
        if config.get('cloud_provider'):
            cloud = cls.create_tts_provider(config['cloud_provider'], config.get('cloud', {}))
        local = None
        if config.get('local_provider'):
            local = cls.create_tts_provider(config['local_provider'], config.get('local', {}))
        return FallbackSynthesizer(cloud, local, playback=playback)

    @classmethod
    def create_reply_generator(cls, config: Dict[str, Any]) -> ReplyGenerator:
        """Reply generator from the 'completion' and 'reply' sections."""
        completion_section = config.get('completion', {})
        completion = None
        if completion_section.get('provider'):
            completion = cls.create_completion_provider(
                completion_section['provider'], completion_section.get('config', {})
            )
        else:
            logger.warning("No completion provider configured; replies will use fallback lines")
        reply = config.get('reply', {})
        return ReplyGenerator(
            completion,
            timeout=reply.get('timeout', 10.0),
            max_tokens=reply.get('max_tokens', 150),
            temperature=reply.get('temperature', 0.7),
        )

    @classmethod
    def create_all_providers(cls, config: Dict[str, Any], voice: bool = True) -> Dict[str, Any]:
        """
        Create every provider the framework needs.

        Args:
            config: Output of get_framework_config()
            voice: Build capture, transcription and speech providers

        Returns:
            Dictionary of provider instances
        """
        store_section = config.get('store', {})
        providers = {
            'store': cls.create_session_store(store_section.get('provider', 'memory'),
                                              store_section.get('config', {})),
            'replies': cls.create_reply_generator(config),
        }
        if voice:
            capture_section = config.get('capture', {})
            providers['capture'] = cls.create_capture_provider(
                capture_section.get('provider', 'sounddevice'), capture_section.get('config', {})
            )
            providers['transcriber'] = cls.create_transcriber(config.get('transcription', {}))
            providers['synthesizer'] = cls.create_synthesizer(config.get('tts', {}))
        return providers

    @classmethod
    def list_providers(cls) -> Dict[str, list]:
        """List all available providers."""
        return {
            'capture': list(cls.CAPTURE_PROVIDERS.keys()),
            'transcription': list(cls.TRANSCRIPTION_PROVIDERS.keys()),
            'tts': list(cls.TTS_PROVIDERS.keys()),
            'completion': list(cls.COMPLETION_PROVIDERS.keys()),
            'store': list(cls.STORE_PROVIDERS.keys()),
        }
