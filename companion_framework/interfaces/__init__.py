"""
Abstract interfaces for the companion framework components.
"""

from .capture import AudioCaptureInterface
from .transcription import TranscriptionInterface
from .response import CompletionInterface
from .text_to_speech import TextToSpeechInterface
from .session_store import SessionStoreInterface
from .navigation import NavigationInterface, IdentityInterface, ConsoleNavigation, StaticIdentity

__all__ = [
    'AudioCaptureInterface',
    'TranscriptionInterface',
    'CompletionInterface',
    'TextToSpeechInterface',
    'SessionStoreInterface',
    'NavigationInterface',
    'IdentityInterface',
    'ConsoleNavigation',
    'StaticIdentity',
]
