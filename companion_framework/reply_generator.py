"""
Companion reply generation.

Builds the preference-conditioned system prompt, calls the completion
service under a hard timeout and maps every failure to a supportive
fallback line. generate() never raises.
"""

import asyncio
import random
from typing import Dict, List, Optional

from .interfaces.response import CompletionInterface
from .models.data_models import UserPreferences
from .utils.error_handling import (
    AuthFailure,
    CompanionError,
    EmptyReply,
    NetworkFailure,
    NotFound,
    PaymentRequired,
    RateLimited,
)
from .utils.logging_config import get_logger


logger = get_logger("reply")


BASE_PROMPT = (
    "You are EmotiCare, a friendly and empathetic AI companion. Your purpose is to "
    "provide emotional support through brief, conversational messages."
)
DEFAULT_REGION_CLAUSE = " Your primary user is from India."
CLOSING_CLAUSE = " Avoid lengthy explanations or clinical language."

MESSAGE_LENGTH_CLAUSES = {
    'concise': " Keep responses extremely brief (1 sentence max). Be direct and to-the-point.",
    'medium': " Keep responses short (1-2 sentences max). Balance brevity with warmth.",
    'detailed': " Provide thoughtful, more detailed responses (2-3 sentences). Offer more context and depth.",
}
DEFAULT_MESSAGE_LENGTH_CLAUSE = " Keep responses very short (1-2 sentences max)."

RESPONSE_STYLE_CLAUSES = {
    'conversational': " Use a casual, friendly tone with occasional emojis. Respond as if texting a friend who needs support.",
    'professional': " Use a clear, respectful and slightly more formal tone. Be supportive yet professional in your approach.",
    'friendly': " Use a warm, encouraging tone with supportive language and appropriate emojis. Be like a caring friend.",
}
DEFAULT_RESPONSE_STYLE_CLAUSE = " Use a casual, friendly tone with occasional emojis."

SUPPORT_STYLE_CLAUSES = {
    'empathetic': " Focus on validating feelings and showing deep empathy. Prioritize emotional connection over solutions.",
    'balanced': " Balance empathy with gentle guidance. Validate feelings while offering perspective when appropriate.",
    'motivational': " Be encouraging and uplifting. Focus on positive reframing and inspiring confidence.",
    'practical': " Offer practical suggestions and action-oriented support. Focus on tangible next steps.",
    'reflective': " Ask thoughtful questions and help the user explore their feelings more deeply.",
}

COUNTRY_NAMES = {
    'IN': 'India',
    'US': 'United States',
    'GB': 'United Kingdom',
    'CA': 'Canada',
    'AU': 'Australia',
    'NZ': 'New Zealand',
    'IE': 'Ireland',
    'PK': 'Pakistan',
    'BD': 'Bangladesh',
    'NP': 'Nepal',
    'LK': 'Sri Lanka',
    'AE': 'United Arab Emirates',
    'SG': 'Singapore',
    'ZA': 'South Africa',
    'DE': 'Germany',
    'FR': 'France',
}

TIMEOUT_REPLY = "I'm having trouble connecting right now. Let's continue our conversation. How are you feeling?"
PAYMENT_REPLY = "I'm having a brief technical issue. But I'm still here for you. How can I help?"
AUTH_REPLY = "I'm experiencing a temporary authentication problem. Let's keep talking. What's on your mind?"
NOT_FOUND_REPLY = "I'm having trouble with my thinking process right now. But I'm still here to listen. How are you feeling?"
RATE_LIMIT_REPLY = "I'm a bit overwhelmed with requests right now. Let's continue our conversation. How are you doing?"
EMPTY_REPLY = "I'm still here with you. Could you tell me a little more about how you're feeling?"

FALLBACK_REPLIES = (
    "I'm here for you. How can I help you feel better today?",
    "That sounds challenging. Would you like to talk more about it?",
    "I understand how you feel. Let's work through this together.",
    "Thank you for sharing that with me. How are you coping?",
    "I'm listening and I care about what you're going through.",
    "Your feelings are valid. What would help you right now?",
    "I appreciate you opening up. Is there anything specific you need?",
    "I'm sorry you're experiencing this. What might make things a bit easier?",
    "You're not alone in this. I'm here to support you.",
    "That's completely understandable. How can I best support you today?",
)


def _region_clause(locale: Optional[str]) -> str:
    if not locale:
        return DEFAULT_REGION_CLAUSE
    locale = locale.strip()
    # en-GB, en_GB → GB
    region = locale.replace("_", "-").split("-")[-1]
    if len(region) == 2:
        name = COUNTRY_NAMES.get(region.upper())
    else:
        name = locale
    if not name:
        return DEFAULT_REGION_CLAUSE
    return (
        f" The user is from {name}. Provide culturally appropriate responses that "
        f"respect the norms and context of {name}."
    )


def build_system_prompt(preferences: Optional[UserPreferences] = None) -> str:
    """Concatenate prompt clauses for the given preferences. Deterministic."""
    prefs = preferences or UserPreferences()

    prompt = BASE_PROMPT
    prompt += _region_clause(prefs.locale)
    if prefs.display_name:
        prompt += f" The user's name is {prefs.display_name}. Address them by name occasionally."
    prompt += MESSAGE_LENGTH_CLAUSES.get(prefs.message_length or '', DEFAULT_MESSAGE_LENGTH_CLAUSE)
    prompt += RESPONSE_STYLE_CLAUSES.get(prefs.response_style or '', DEFAULT_RESPONSE_STYLE_CLAUSE)
    prompt += SUPPORT_STYLE_CLAUSES.get(prefs.support_style or '', '')
    prompt += CLOSING_CLAUSE
    return prompt


def with_system_prompt(messages: List[Dict[str, str]], prompt: str) -> List[Dict[str, str]]:
    """Prepend the prompt, replacing a leading system message if present."""
    system = {'role': 'system', 'content': prompt}
    if messages and messages[0].get('role') == 'system':
        return [system] + list(messages[1:])
    return [system] + list(messages)


class ReplyGenerator:
    """Turns conversation history into the companion's next line."""

    def __init__(self,
                 completion: Optional[CompletionInterface],
                 timeout: float = 10.0,
                 max_tokens: int = 150,
                 temperature: float = 0.7,
                 rng: Optional[random.Random] = None):
        self.completion = completion
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._rng = rng or random.Random()

    def fallback_reply(self) -> str:
        return self._rng.choice(FALLBACK_REPLIES)

    async def generate(self,
                       history: List[Dict[str, str]],
                       preferences: Optional[UserPreferences] = None) -> str:
        """
        Produce a reply for the latest user message in history.

        Args:
            history: Prior dialogue as chat messages, latest user message last
            preferences: Profile preferences for the system prompt

        Returns:
            Reply text. Failures yield a fallback line instead of raising.
        """
        if self.completion is None:
            logger.warning("No completion service configured; using fallback reply")
            return self.fallback_reply()

        messages = with_system_prompt(history, build_system_prompt(preferences))
        try:
            reply = await asyncio.wait_for(
                self.completion.complete(messages, self.max_tokens, self.temperature),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⏱️  Completion exceeded {self.timeout}s")
            return TIMEOUT_REPLY
        except CompanionError as e:
            logger.warning(f"Completion failed ({e.kind}): {e}")
            return self._reply_for(e)
        except Exception:
            logger.exception("Unexpected completion failure")
            return self.fallback_reply()

        return reply

    def _reply_for(self, error: CompanionError) -> str:
        if isinstance(error, NetworkFailure) and error.timeout:
            return TIMEOUT_REPLY
        if isinstance(error, PaymentRequired):
            return PAYMENT_REPLY
        if isinstance(error, AuthFailure):
            return AUTH_REPLY
        if isinstance(error, NotFound):
            return NOT_FOUND_REPLY
        if isinstance(error, RateLimited):
            return RATE_LIMIT_REPLY
        if isinstance(error, EmptyReply):
            return EMPTY_REPLY
        return self.fallback_reply()
