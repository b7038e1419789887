"""
Text-to-speech providers.

Engines (deepgram_tts, local_tts) are loaded by ProviderFactory on demand;
pyttsx3 is only imported when the local voice is configured.
"""

from .fallback import FallbackSynthesizer

__all__ = ['FallbackSynthesizer']
