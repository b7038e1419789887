"""
Completion providers.
"""

from .groq_completion import GroqCompletionProvider

__all__ = ['GroqCompletionProvider']
