"""
Data models for the companion framework.
"""

from .data_models import (
    Author,
    Channel,
    CrisisTier,
    Capability,
    ProviderVariant,
    AudioFormat,
    NoticeKind,
    Turn,
    ConversationSession,
    ProviderState,
    CapturedAudio,
    TranscriptionResult,
    ProsodyHints,
    Utterance,
    AudioOutput,
    ScreenResult,
    UserPreferences,
    Notice,
    CycleResult,
    utc_now,
)

__all__ = [
    'Author',
    'Channel',
    'CrisisTier',
    'Capability',
    'ProviderVariant',
    'AudioFormat',
    'NoticeKind',
    'Turn',
    'ConversationSession',
    'ProviderState',
    'CapturedAudio',
    'TranscriptionResult',
    'ProsodyHints',
    'Utterance',
    'AudioOutput',
    'ScreenResult',
    'UserPreferences',
    'Notice',
    'CycleResult',
    'utc_now',
]
