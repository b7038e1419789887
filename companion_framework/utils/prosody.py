"""
Text cleanup and prosody heuristics for reply speech.
"""

import random
import re
from typing import List, Optional

from ..models.data_models import ProsodyHints, Utterance


_EMOJI = re.compile(
    "["
    "\U0001F300-\U0001FAFF"  # symbols, pictographs, emoticons, transport
    "\U00002600-\U000027BF"  # misc symbols, dingbats
    "\U0001F1E6-\U0001F1FF"  # flags
    "\uFE0F\u200D"              # variation selector, zero-width joiner
    "]+"
)
_REPEATED_MARK = re.compile(r"([!?])\1+")
_DOT_RUN = re.compile(r"\.{2,}")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_SPLIT = re.compile(r"([.!?]+)")
_PAUSE_MARKS = re.compile(r"[,;:.!?]")

DENSE_PUNCTUATION = 0.2
JITTER = 0.05
DEFAULT_MAX_UTTERANCES = 8


def clean_text(text: str) -> str:
    """Remove emoji, collapse repeated !/? and dot runs, normalize whitespace."""
    cleaned = _EMOJI.sub('', text or '')
    cleaned = _REPEATED_MARK.sub(r'\1', cleaned)
    cleaned = _DOT_RUN.sub('...', cleaned)
    return _WHITESPACE.sub(' ', cleaned).strip()


def _features(text: str) -> ProsodyHints:
    words = len(text.split())
    marks = len(_PAUSE_MARKS.findall(text))
    return ProsodyHints(
        word_count=words,
        is_question='?' in text,
        is_exclamation='!' in text,
        punctuation_density=(marks / words) if words else 0.0,
    )


def cloud_prosody(text: str) -> ProsodyHints:
    """Speed/pitch for the cloud voice. First matching rule wins."""
    hints = _features(text)

    if hints.word_count > 30:
        hints.rate = 1.05
    elif hints.is_question:
        hints.rate = 0.95
    elif hints.is_exclamation:
        hints.rate = 1.1
    elif hints.word_count < 10:
        hints.rate = 0.92
    else:
        hints.rate = 1.0

    if hints.punctuation_density > DENSE_PUNCTUATION:
        hints.rate = round(hints.rate * 0.97, 4)

    hints.pitch = 1.05 if hints.is_question else 1.1 if hints.is_exclamation else 1.0
    return hints


def local_prosody(text: str) -> ProsodyHints:
    """Base rate/pitch for the on-device voice."""
    hints = _features(text)

    if hints.word_count < 10:
        rate = 0.95
    elif hints.word_count > 30:
        rate = 0.85
    else:
        rate = 0.9

    pitch = 1.0
    if hints.is_question:
        rate *= 0.95
        pitch = 1.05
    elif hints.is_exclamation:
        rate *= 1.1
        pitch = 1.1

    hints.rate = rate
    hints.pitch = pitch
    return hints


def split_sentences(text: str) -> List[str]:
    """Split into sentences keeping their terminal punctuation."""
    parts = _SENTENCE_SPLIT.split(text)
    sentences = []
    for i in range(0, len(parts), 2):
        sentence = ''.join(parts[i:i + 2]).strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def build_utterances(
    text: str,
    hints: Optional[ProsodyHints] = None,
    max_utterances: int = DEFAULT_MAX_UTTERANCES,
    rng: Optional[random.Random] = None,
) -> List[Utterance]:
    """
    Turn a reply into the queue of utterances the local engine speaks in order.

    Each utterance gets its own jitter of up to ±0.05 on rate and pitch.
    Sentences past max_utterances are merged into the last utterance.
    """
    hints = hints or local_prosody(text)
    rng = rng or random.Random()
    sentences = split_sentences(text)
    if not sentences:
        return []

    if len(sentences) == 1:
        return [Utterance(text=sentences[0], rate=hints.rate, pitch=hints.pitch)]

    limit = max(1, max_utterances)
    if len(sentences) > limit:
        sentences = sentences[:limit - 1] + [' '.join(sentences[limit - 1:])]

    return [
        Utterance(
            text=sentence,
            rate=hints.rate + rng.uniform(-JITTER, JITTER),
            pitch=hints.pitch + rng.uniform(-JITTER, JITTER),
        )
        for sentence in sentences
    ]
