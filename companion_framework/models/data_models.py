"""
Common data structures for the companion framework.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    """Timezone-aware current time used for every persisted timestamp."""
    return datetime.now(timezone.utc)


class Author(str, Enum):
    """Who wrote a turn."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Channel(str, Enum):
    """Conversation channel a session was opened on."""
    TEXT = "text"
    VOICE = "voice"


class CrisisTier(str, Enum):
    """Outcome of crisis-content screening."""
    NONE = "none"
    ADVISORY = "advisory"
    CRITICAL = "critical"


class Capability(str, Enum):
    """Speech capabilities that have a cloud and a local variant."""
    TRANSCRIPTION = "transcription"
    SYNTHESIS = "synthesis"


class ProviderVariant(str, Enum):
    """Which implementation of a capability is in use."""
    CLOUD = "cloud"
    LOCAL = "local"


class AudioFormat(str, Enum):
    """Enum for audio formats."""
    MP3 = "mp3"
    WAV = "wav"
    PCM16 = "pcm16"
    TEXT = "text"  # local engines speak text directly


class NoticeKind(str, Enum):
    """User-facing notices raised by the coordinator."""
    NO_SPEECH = "no_speech"
    TRANSCRIPTION_ERROR = "transcription_error"
    SYNTHESIS_ERROR = "synthesis_error"
    PERMISSION_DENIED = "permission_denied"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass
class Turn:
    """One authored message within a session."""
    author: Author
    content: str
    session_id: Optional[str] = None
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    emotion: Optional[str] = None
    sentiment: Optional[float] = None
    crisis_tier: Optional[CrisisTier] = None
    is_raw_transcription: bool = False

    @property
    def is_conversational(self) -> bool:
        """Raw transcription logs and system notes are not sent to the model."""
        return not self.is_raw_transcription and self.author != Author.SYSTEM

    def to_message(self) -> Dict[str, str]:
        """Convert to a chat-completion message."""
        role = "user" if self.author == Author.USER else "assistant"
        return {'role': role, 'content': self.content}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted layout."""
        return {
            'id': self.id,
            'session_id': self.session_id,
            'author': self.author.value,
            'content': self.content,
            'created_at': self.created_at.isoformat(),
            'emotion': self.emotion,
            'sentiment': self.sentiment,
            'crisis_tier': self.crisis_tier.value if self.crisis_tier else None,
            'is_raw_transcription': self.is_raw_transcription,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Turn':
        """Create from the persisted layout."""
        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        crisis_tier = data.get('crisis_tier')
        return cls(
            author=Author(data['author']),
            content=data.get('content', ''),
            session_id=data.get('session_id'),
            id=data.get('id'),
            created_at=created_at or utc_now(),
            emotion=data.get('emotion'),
            sentiment=data.get('sentiment'),
            crisis_tier=CrisisTier(crisis_tier) if crisis_tier else None,
            is_raw_transcription=bool(data.get('is_raw_transcription', False)),
        )


@dataclass
class ConversationSession:
    """Ordered conversation between one participant and the companion."""
    id: str
    participant_id: str
    channel: Channel
    created_at: datetime = field(default_factory=utc_now)
    closed_at: Optional[datetime] = None
    turns: List[Turn] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    @property
    def last_timestamp(self) -> Optional[datetime]:
        return self.turns[-1].created_at if self.turns else None

    def conversational_turns(self) -> List[Turn]:
        """Turns that make up the dialogue (no transcription logs)."""
        return [turn for turn in self.turns if turn.is_conversational]


@dataclass
class ProviderState:
    """
    Session-scoped selection of a capability variant.

    Degradation is one-way: once cloud is degraded the session stays on local.
    """
    capability: Capability
    active: ProviderVariant = ProviderVariant.CLOUD
    degraded: bool = False

    def degrade(self) -> bool:
        """Mark cloud degraded. Returns True only on the first call."""
        if self.degraded:
            return False
        self.degraded = True
        self.active = ProviderVariant.LOCAL
        return True


@dataclass
class CapturedAudio:
    """A finished microphone recording."""
    audio_data: bytes
    mime_type: str = "audio/wav"
    sample_rate: int = 16000
    channels: int = 1
    duration: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return len(self.audio_data) == 0


@dataclass
class TranscriptionResult:
    """Standardized output from all STT providers."""
    text: str
    is_final: bool = True
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    confidence: Optional[float] = None
    language: Optional[str] = None
    provider: Optional[ProviderVariant] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{'[FINAL]' if self.is_final else '[PARTIAL]'} {self.text}"


@dataclass
class ProsodyHints:
    """Speech rate/pitch derived from reply text."""
    rate: float = 1.0
    pitch: float = 1.0
    word_count: int = 0
    is_question: bool = False
    is_exclamation: bool = False
    punctuation_density: float = 0.0


@dataclass
class Utterance:
    """One sequentially spoken chunk of a local reply."""
    text: str
    rate: float
    pitch: float


@dataclass
class AudioOutput:
    """Standardized output from all TTS providers."""
    audio_data: bytes
    format: AudioFormat
    sample_rate: int
    provider: Optional[ProviderVariant] = None
    duration: Optional[float] = None
    voice: Optional[str] = None
    utterances: List[Utterance] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_size_mb(self) -> float:
        """Get audio data size in megabytes."""
        return len(self.audio_data) / (1024 * 1024)

    def is_valid(self) -> bool:
        """Check if audio output is valid."""
        if self.format == AudioFormat.TEXT:
            return bool(self.utterances)
        return len(self.audio_data) > 0 and self.sample_rate > 0


@dataclass
class ScreenResult:
    """Sentiment and crisis classification of one piece of text."""
    emotion: str
    sentiment: float
    raw_score: float
    crisis_tier: CrisisTier
    matched_phrase: Optional[str] = None


@dataclass
class UserPreferences:
    """Profile preferences that condition the reply prompt."""
    display_name: Optional[str] = None
    locale: Optional[str] = None
    message_length: Optional[str] = None   # concise | medium | detailed
    response_style: Optional[str] = None   # conversational | professional | friendly
    support_style: Optional[str] = None    # empathetic | balanced | motivational | practical | reflective


@dataclass
class Notice:
    """Message for the UI layer."""
    kind: NoticeKind
    message: str
    dismissible: bool = True


@dataclass
class CycleResult:
    """What one coordinator cycle produced."""
    epoch: int
    transcript: Optional[str] = None
    reply: Optional[str] = None
    screen: Optional[ScreenResult] = None
    spoken: bool = False
    interrupted: bool = False
    discarded: bool = False
    no_speech: bool = False
    redirected: bool = False
    error: Optional[str] = None
