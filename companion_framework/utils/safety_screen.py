"""
Sentiment scoring and crisis-content screening.

Scoring uses the AFINN-165 lexicon. The emotion label is bucketed from the
raw (summed) score while the stored sentiment is the comparative score, i.e.
raw score divided by the number of tokens.

Crisis detection is a case-insensitive substring match against two ordered
phrase lists. Critical phrases are checked first and the first hit wins.
"""

import re
from functools import lru_cache
from typing import List, Optional, Tuple

from afinn import Afinn

from ..models.data_models import CrisisTier, ScreenResult


CRITICAL_PHRASES: Tuple[str, ...] = (
    'suicide',
    'kill myself',
    'end my life',
    'die',
    'wanna commit suicide',
    'i wanna commit suicide',
    'she is abusing me',
    'he is abusing me',
    'being abused',
    'abusing me',
    'help me',
    'emergency',
    'in danger',
    'want to die',
    'going to kill',
    'hurt myself',
    'self-harm',
    'khudkhushi',
    'aatmahatya',
    'marna chahta',
)

ADVISORY_KEYWORDS: Tuple[str, ...] = (
    "don't want to live",
    'overdose',
    'no reason to live',
    'better off dead',
    "can't take it anymore",
    'unbearable pain',
    'life is meaningless',
    'urgent help',
    'severe anxiety',
    'panic attack',
    'assault',
    'violence',
    'abuse',
    'trauma',
    'mental tension',
    'tension',
    'under pressure',
    # Hindi / Hinglish
    'bhaar',
    'pareshani',
    'udaas',
    'tanha',
    'akela',
    'helpless',
    'nirasha',
    'depression',
    'jeena nahi chahta',
    'pareshan',
    'chinta',
    'ghabrahat',
    'dar',
    'dukhi',
    'child abuse',
    'bachon ka shoshan',
    'takleef',
    'dard',
    'peedha',
)

VERY_NEGATIVE = "Very Negative"
NEGATIVE = "Negative"
NEUTRAL = "Neutral"
POSITIVE = "Positive"
VERY_POSITIVE = "Very Positive"

_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=_`\"~()?\-]")


@lru_cache(maxsize=1)
def _lexicon() -> Afinn:
    return Afinn(language='en')


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation and split on whitespace."""
    return _PUNCTUATION.sub(' ', text.lower()).split()


def emotion_for_score(raw_score: float) -> str:
    """Bucket a raw lexicon score into an emotion label."""
    if raw_score <= -5:
        return VERY_NEGATIVE
    if raw_score < -2:
        return NEGATIVE
    if raw_score < 2:
        return NEUTRAL
    if raw_score < 5:
        return POSITIVE
    return VERY_POSITIVE


def crisis_tier_for(text: str) -> Tuple[CrisisTier, Optional[str]]:
    """
    Classify text by the first matching crisis phrase.

    Returns:
        (tier, matched phrase or None)
    """
    lowered = text.lower()
    for phrase in CRITICAL_PHRASES:
        if phrase in lowered:
            return CrisisTier.CRITICAL, phrase
    for phrase in ADVISORY_KEYWORDS:
        if phrase in lowered:
            return CrisisTier.ADVISORY, phrase
    return CrisisTier.NONE, None


def sentiment_scores(text: str) -> Tuple[float, float]:
    """Return (raw score, comparative score) for text."""
    tokens = tokenize(text)
    if not tokens:
        return 0.0, 0.0
    raw = float(_lexicon().score(text))
    return raw, raw / len(tokens)


def screen_text(text: str) -> ScreenResult:
    """
    Score and classify one piece of user text.

    Pure function: no side effects, same input always gives the same result.
    """
    raw, comparative = sentiment_scores(text or "")
    tier, phrase = crisis_tier_for(text or "")
    return ScreenResult(
        emotion=emotion_for_score(raw),
        sentiment=comparative,
        raw_score=raw,
        crisis_tier=tier,
        matched_phrase=phrase,
    )
