"""
Tests for sentiment scoring and crisis classification.
"""

import pytest

from companion_framework.models.data_models import CrisisTier
from companion_framework.utils.safety_screen import (
    crisis_tier_for,
    emotion_for_score,
    screen_text,
    sentiment_scores,
    tokenize,
)


class TestEmotionBuckets:
    """Raw lexicon score → emotion label."""

    @pytest.mark.parametrize("raw, expected", [
        (-6, "Very Negative"),
        (-5, "Very Negative"),
        (-3, "Negative"),
        (-2, "Neutral"),
        (0, "Neutral"),
        (2, "Positive"),
        (3, "Positive"),
        (5, "Very Positive"),
        (6, "Very Positive"),
    ])
    def test_bucket_boundaries(self, raw, expected):
        assert emotion_for_score(raw) == expected


class TestSentiment:

    def test_tokenize_strips_punctuation(self):
        assert tokenize("Hello, World! (really?)") == ["hello", "world", "really"]

    def test_comparative_is_raw_over_token_count(self):
        raw, comparative = sentiment_scores("I am happy")
        assert raw > 0
        assert comparative == pytest.approx(raw / 3)

    def test_empty_text_scores_zero(self):
        assert sentiment_scores("") == (0.0, 0.0)
        assert sentiment_scores("?!...") == (0.0, 0.0)

    def test_screen_stores_comparative_score(self):
        result = screen_text("I am happy")
        raw, comparative = sentiment_scores("I am happy")
        assert result.raw_score == raw
        assert result.sentiment == pytest.approx(comparative)
        assert result.emotion == emotion_for_score(raw)


class TestCrisisTier:

    def test_want_to_die_is_critical(self):
        tier, phrase = crisis_tier_for("I want to die")
        assert tier == CrisisTier.CRITICAL
        assert phrase in ("die", "want to die")

    def test_tension_is_advisory(self):
        tier, phrase = crisis_tier_for("There is so much tension at home")
        assert tier == CrisisTier.ADVISORY
        assert phrase == "tension"

    def test_matching_is_case_insensitive(self):
        assert crisis_tier_for("I had a PANIC ATTACK")[0] == CrisisTier.ADVISORY
        assert crisis_tier_for("This is an EMERGENCY")[0] == CrisisTier.CRITICAL

    def test_critical_wins_over_advisory(self):
        tier, _ = crisis_tier_for("The tension is so bad I want to end my life")
        assert tier == CrisisTier.CRITICAL

    def test_hinglish_phrases(self):
        assert crisis_tier_for("main bahut udaas hoon")[0] == CrisisTier.ADVISORY
        assert crisis_tier_for("aatmahatya ke khayal aate hain")[0] == CrisisTier.CRITICAL

    def test_ordinary_text_has_no_tier(self):
        tier, phrase = crisis_tier_for("I went for a walk this morning")
        assert tier == CrisisTier.NONE
        assert phrase is None

    def test_screen_text_carries_tier_and_phrase(self):
        result = screen_text("I want to die")
        assert result.crisis_tier == CrisisTier.CRITICAL
        assert result.matched_phrase is not None
