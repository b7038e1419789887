"""
Abstract interface for chat-completion providers.
"""

from abc import ABC, abstractmethod
from typing import List, Dict


class CompletionInterface(ABC):
    """Abstract base class for all completion providers."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the completion client.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def complete(self,
                       messages: List[Dict[str, str]],
                       max_tokens: int,
                       temperature: float) -> str:
        """
        Request one chat completion.

        Args:
            messages: Chat messages, system prompt first
            max_tokens: Token budget for the reply
            temperature: Sampling temperature

        Returns:
            The reply text

        Raises:
            AuthFailure, RateLimited, NotFound, PaymentRequired: Classified HTTP failures
            EmptyReply: The service answered without content
            NetworkFailure: Transport failure or unclassified server error
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the completion client."""
        pass
