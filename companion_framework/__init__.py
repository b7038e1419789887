"""
Companion Framework - a voice-first emotional support companion.

This framework provides:
- Speech-to-text with a cloud provider (Deepgram) and an on-device fallback (faster-whisper)
- Safety screening of every user message (sentiment, emotion bucket, crisis tier)
- Reply generation through an OpenAI-compatible completion service (Groq)
- Text-to-speech with a cloud voice (Deepgram Aura) and an on-device fallback
- A turn coordinator with barge-in, epoch tokens and crisis override
- Session journaling to Supabase or memory

Usage:
    from companion_framework import CompanionOrchestrator, get_framework_config
    from companion_framework.interfaces import StaticIdentity

    orchestrator = CompanionOrchestrator(get_framework_config(), StaticIdentity("alex"), voice=False)
    await orchestrator.initialize()
    task = await orchestrator.coordinator.submit_text("I had a rough day")
    result = await task
"""

from .orchestrator import CompanionOrchestrator
from .coordinator import TurnCoordinator
from .factory import ProviderFactory
from .config import get_framework_config
from . import interfaces
from . import models
from . import providers

__version__ = "1.0.0"

__all__ = [
    'CompanionOrchestrator',
    'TurnCoordinator',
    'ProviderFactory',
    'get_framework_config',
    'interfaces',
    'models',
    'providers'
]
