"""
Transcription providers.

Engines (deepgram_stt, local_whisper) are loaded by ProviderFactory on demand;
faster-whisper is only imported when the local recognizer is configured.
"""

from .fallback import FallbackTranscriber

__all__ = ['FallbackTranscriber']
