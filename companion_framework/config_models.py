"""
Pydantic configuration models with validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any
import os


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else None


class DeepgramConfig(BaseModel):
    """Deepgram speech-to-text and text-to-speech configuration."""
    api_key: Optional[str] = Field(None, description="Deepgram API key")
    stt_model: str = Field("nova-2", description="Transcription model")
    language: str = Field("en-US", description="Transcription language")
    smart_format: bool = Field(True, description="Punctuation and formatting")
    voice: str = Field("aura-asteria-en", description="Aura voice model")
    timeout: float = Field(15.0, gt=0, le=120, description="Request timeout in seconds")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v):
        if v is not None and len(v) < 10:
            raise ValueError('Invalid Deepgram API key (too short)')
        return v


class LocalWhisperConfig(BaseModel):
    """faster-whisper configuration."""
    model: str = Field("small.en", description="Model size or path")
    device: str = Field("cpu", description="cpu or cuda")
    compute_type: str = Field("int8", description="Quantization")
    language: str = Field("en", description="Decoder language")


class LocalTTSConfig(BaseModel):
    """On-device speech configuration."""
    voice_id: int = Field(0, ge=0, description="System voice index")
    base_wpm: int = Field(175, ge=80, le=400, description="Words per minute at rate 1.0")
    volume: float = Field(0.9, ge=0.0, le=1.0, description="Volume")
    max_utterances: int = Field(8, ge=1, le=64, description="Utterance queue bound per reply")


class CompletionConfig(BaseModel):
    """Groq chat completion configuration."""
    api_key: Optional[str] = Field(None, description="Groq API key")
    model: str = Field("llama-3.1-8b-instant", description="Model id")
    base_url: str = Field("https://api.groq.com/openai/v1", description="OpenAI-compatible base URL")
    timeout: float = Field(10.0, gt=0, le=60, description="Reply timeout in seconds")
    max_tokens: int = Field(150, ge=16, le=1024, description="Reply token budget")
    temperature: float = Field(0.7, ge=0.0, le=2.0, description="Temperature")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v):
        if v is not None and len(v) < 20:
            raise ValueError('Invalid Groq API key')
        return v


class CaptureConfig(BaseModel):
    """Microphone capture configuration."""
    sample_rate: int = Field(16000, ge=8000, le=48000, description="Capture rate")
    device: Optional[int] = Field(None, description="Input device index")
    blocksize: int = Field(1600, ge=128, le=16000, description="Frames per callback")
    max_seconds: int = Field(60, ge=1, le=600, description="Maximum recording length")


class StoreConfig(BaseModel):
    """Session store configuration."""
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(None, description="Supabase service key")

    @field_validator('supabase_url')
    @classmethod
    def validate_url(cls, v):
        if v is not None and not v.startswith(('http://', 'https://')):
            raise ValueError('SUPABASE_URL must be an http(s) URL')
        return v

    @property
    def enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


class AnalysisConfig(BaseModel):
    """Background re-analysis configuration."""
    enabled: bool = Field(True, description="Run the periodic analysis")
    interval_seconds: float = Field(1800.0, gt=0, description="Re-analysis interval")


class FrameworkConfig(BaseModel):
    """Complete framework configuration."""
    deepgram: DeepgramConfig = Field(default_factory=DeepgramConfig)
    local_whisper: LocalWhisperConfig = Field(default_factory=LocalWhisperConfig)
    local_tts: LocalTTSConfig = Field(default_factory=LocalTTSConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    log_level: str = Field("INFO", description="Logging level")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Invalid log level: {v}')
        return level

    @classmethod
    def from_env(cls, sections: Optional[Dict[str, Dict[str, Any]]] = None) -> 'FrameworkConfig':
        """
        Load configuration from environment variables.

        Args:
            sections: Non-secret defaults per section, overriding model defaults
        """
        sections = sections or {}
        return cls(
            deepgram=DeepgramConfig(api_key=_env('DEEPGRAM_API_KEY'), **sections.get('deepgram', {})),
            local_whisper=LocalWhisperConfig(**sections.get('local_whisper', {})),
            local_tts=LocalTTSConfig(**sections.get('local_tts', {})),
            completion=CompletionConfig(api_key=_env('GROQ_API_KEY'), **sections.get('completion', {})),
            capture=CaptureConfig(**sections.get('capture', {})),
            store=StoreConfig(
                supabase_url=_env('SUPABASE_URL'),
                supabase_key=_env('SUPABASE_KEY'),
            ),
            analysis=AnalysisConfig(**sections.get('analysis', {})),
            log_level=_env('LOG_LEVEL') or 'INFO',
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the provider/config dictionary layout used by the factory."""
        has_deepgram = bool(self.deepgram.api_key)
        return {
            'transcription': {
                'cloud_provider': 'deepgram' if has_deepgram else None,
                'cloud': {
                    'api_key': self.deepgram.api_key,
                    'model': self.deepgram.stt_model,
                    'language': self.deepgram.language,
                    'smart_format': self.deepgram.smart_format,
                    'timeout': self.deepgram.timeout,
                },
                'local_provider': 'faster_whisper',
                'local': self.local_whisper.model_dump(),
            },
            'tts': {
                'cloud_provider': 'deepgram' if has_deepgram else None,
                'cloud': {
                    'api_key': self.deepgram.api_key,
                    'voice': self.deepgram.voice,
                    'timeout': self.deepgram.timeout,
                },
                'local_provider': 'local_tts',
                'local': self.local_tts.model_dump(),
            },
            'completion': {
                'provider': 'groq' if self.completion.api_key else None,
                'config': {
                    'api_key': self.completion.api_key,
                    'model': self.completion.model,
                    'base_url': self.completion.base_url,
                    'request_timeout': self.completion.timeout,
                },
            },
            'reply': {
                'timeout': self.completion.timeout,
                'max_tokens': self.completion.max_tokens,
                'temperature': self.completion.temperature,
            },
            'capture': {
                'provider': 'sounddevice',
                'config': self.capture.model_dump(),
            },
            'store': {
                'provider': 'supabase' if self.store.enabled else 'memory',
                'config': self.store.model_dump(),
            },
            'analysis': self.analysis.model_dump(),
            'logging': {'level': self.log_level},
        }
